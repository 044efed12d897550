"""
Tests for polygon geometry and border construction
"""

import pytest
import os
from unittest.mock import Mock, patch, call

import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from polygon_overlay.config import DEFAULT_POLYGON_COORDINATES, DEFAULT_BORDER_COLORS
from polygon_overlay.polygons import (
    is_closed_ring,
    close_ring,
    validate_ring,
    polygons_bbox,
    build_polygons,
    build_feature_collection,
    paint_border,
    build_borders,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def mock_ee():
    """Mock Earth Engine module"""
    with patch('polygon_overlay.polygons.ee') as mock:
        yield mock


@pytest.fixture
def square_ring():
    return [[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 0.0], [0.0, 0.0]]


# ============================================================================
# TESTS FOR RING HELPERS
# ============================================================================

class TestRingHelpers:
    """Tests for ring closure helpers"""

    def test_default_polygons_are_closed(self):
        """Every default polygon ring starts and ends on the same point"""
        assert len(DEFAULT_POLYGON_COORDINATES) == 3
        for ring in DEFAULT_POLYGON_COORDINATES:
            assert ring[0] == ring[-1]
            assert is_closed_ring(ring)

    def test_open_ring_is_not_closed(self):
        assert not is_closed_ring([[0, 0], [0, 1], [1, 1]])
        assert not is_closed_ring([])

    def test_close_ring_appends_first_point(self):
        ring = [[0, 0], [0, 1], [1, 1]]
        closed = close_ring(ring)

        assert closed == [[0, 0], [0, 1], [1, 1], [0, 0]]
        # Input is left untouched
        assert ring == [[0, 0], [0, 1], [1, 1]]

    def test_close_ring_keeps_closed_ring(self, square_ring):
        assert close_ring(square_ring) == square_ring

    def test_close_ring_accepts_tuples(self):
        closed = close_ring([(0, 0), (0, 1), (1, 1)])
        assert closed[-1] == [0, 0]

    def test_validate_ring_rejects_open_ring(self):
        with pytest.raises(ValueError, match="not closed"):
            validate_ring([[0, 0], [0, 1], [1, 1], [1, 0]])

    def test_validate_ring_rejects_short_ring(self):
        with pytest.raises(ValueError, match="at least 4 points"):
            validate_ring([[0, 0], [0, 1], [0, 0]])

    def test_validate_ring_accepts_closed_ring(self, square_ring):
        validate_ring(square_ring)


class TestPolygonsBbox:
    """Tests for polygons_bbox function"""

    def test_bbox_of_default_polygons(self):
        bbox = polygons_bbox(DEFAULT_POLYGON_COORDINATES)

        assert bbox == (-47.21671, -22.97828, -47.18671, -22.95828)

    def test_bbox_of_single_ring(self, square_ring):
        assert polygons_bbox([square_ring]) == (0.0, 0.0, 1.0, 1.0)

    def test_bbox_empty_raises_error(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            polygons_bbox([])


# ============================================================================
# TESTS FOR GEOMETRY CONSTRUCTION
# ============================================================================

class TestBuildPolygons:
    """Tests for build_polygons function"""

    def test_builds_one_polygon_per_ring(self, mock_ee):
        """Each ring is wrapped in an outer list, like ee.Geometry.Polygon([coords])"""
        geometries = [Mock(), Mock(), Mock()]
        mock_ee.Geometry.Polygon.side_effect = geometries

        result = build_polygons(DEFAULT_POLYGON_COORDINATES)

        assert result == geometries
        assert mock_ee.Geometry.Polygon.call_args_list == [
            call([ring]) for ring in DEFAULT_POLYGON_COORDINATES
        ]

    def test_open_ring_raises_before_building(self, mock_ee):
        with pytest.raises(ValueError, match="not closed"):
            build_polygons([[[0, 0], [0, 1], [1, 1], [1, 0]]])

        mock_ee.Geometry.Polygon.assert_not_called()


class TestBuildFeatureCollection:
    """Tests for build_feature_collection function"""

    def test_wraps_each_polygon_in_a_feature(self, mock_ee):
        polygons = [Mock(), Mock()]
        features = [Mock(), Mock()]
        mock_ee.Feature.side_effect = features

        result = build_feature_collection(polygons)

        assert mock_ee.Feature.call_args_list == [call(polygons[0]), call(polygons[1])]
        mock_ee.FeatureCollection.assert_called_once_with(features)
        assert result == mock_ee.FeatureCollection.return_value


# ============================================================================
# TESTS FOR BORDERS
# ============================================================================

class TestPaintBorder:
    """Tests for paint_border function"""

    def test_paints_outline_on_empty_byte_image(self, mock_ee):
        polygon = Mock()
        empty = mock_ee.Image.return_value.byte.return_value
        outline = empty.paint.return_value

        result = paint_border(polygon, 'F3933A')

        mock_ee.Image.assert_called_once_with()
        mock_ee.Feature.assert_called_once_with(polygon)
        mock_ee.FeatureCollection.assert_called_once_with([mock_ee.Feature.return_value])
        empty.paint.assert_called_once_with(
            featureCollection=mock_ee.FeatureCollection.return_value,
            color=1,
            width=3
        )
        outline.visualize.assert_called_once_with(palette=['F3933A'])
        assert result == outline.visualize.return_value

    def test_custom_width(self, mock_ee):
        paint_border(Mock(), '12B5E8', width=5)

        empty = mock_ee.Image.return_value.byte.return_value
        assert empty.paint.call_args.kwargs['width'] == 5


class TestBuildBorders:
    """Tests for build_borders function"""

    @patch('polygon_overlay.polygons.paint_border')
    def test_palette_is_index_aligned(self, mock_paint):
        """Polygon i is always painted with border_colors[i]"""
        polygons = [Mock(), Mock(), Mock()]
        mock_paint.side_effect = lambda polygon, color, width: (polygon, color)

        borders = build_borders(polygons, DEFAULT_BORDER_COLORS)

        assert borders == [
            (polygons[0], 'B3B3B3'),
            (polygons[1], '12B5E8'),
            (polygons[2], 'F3933A'),
        ]

    @patch('polygon_overlay.polygons.paint_border')
    def test_extra_colors_are_ignored(self, mock_paint):
        borders = build_borders([Mock()], DEFAULT_BORDER_COLORS)

        assert len(borders) == 1
        mock_paint.assert_called_once()

    @patch('polygon_overlay.polygons.paint_border')
    def test_width_is_forwarded(self, mock_paint):
        polygon = Mock()
        build_borders([polygon], ['B3B3B3'], width=2)

        mock_paint.assert_called_once_with(polygon, 'B3B3B3', width=2)

    def test_short_palette_raises_error(self):
        with pytest.raises(ValueError, match="Need a border color for each polygon"):
            build_borders([Mock(), Mock()], ['B3B3B3'])


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
