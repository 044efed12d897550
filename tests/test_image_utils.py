"""
Tests for local composite utilities
"""

import pytest
import numpy as np
import tempfile
import shutil
import os
import rasterio
from rasterio.transform import from_bounds
from PIL import Image

import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from polygon_overlay.config import DEFAULT_POLYGON_COORDINATES
from polygon_overlay.image_utils import crop_image, save_rgb_preview
from polygon_overlay.polygons import polygons_bbox


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir)


@pytest.fixture
def create_test_geotiff():
    """Factory fixture to create visualized (uint8) test GeoTIFF files"""
    def _create(filepath, width=100, height=100, num_bands=3, band_descriptions=None,
                bounds=(-47.25, -23.0, -47.15, -22.9)):
        data = np.random.randint(0, 256, size=(num_bands, height, width)).astype(np.uint8)

        transform = from_bounds(*bounds, width, height)
        meta = {
            'driver': 'GTiff',
            'height': height,
            'width': width,
            'count': num_bands,
            'dtype': 'uint8',
            'crs': 'EPSG:4326',
            'transform': transform
        }

        with rasterio.open(filepath, 'w', **meta) as dst:
            dst.write(data)
            if band_descriptions:
                for idx, desc in enumerate(band_descriptions, 1):
                    dst.set_band_description(idx, desc)

        return filepath

    return _create


# ============================================================================
# TESTS FOR CROP IMAGE
# ============================================================================

class TestCropImage:
    """Tests for crop_image function"""

    def test_crop_to_polygons(self, temp_dir, create_test_geotiff):
        """Cropping the buffered download back to the polygons' bounding box"""
        input_img = create_test_geotiff(os.path.join(temp_dir, 'composite.tif'))
        output_img = os.path.join(temp_dir, 'composite_polygons.tif')

        result = crop_image(input_img, polygons_bbox(DEFAULT_POLYGON_COORDINATES), output_img)

        assert result == output_img
        with rasterio.open(output_img) as src:
            assert src.count == 3
            # 0.03 x 0.02 degrees out of a 0.1 x 0.1 degree, 100 x 100 pixel image
            assert abs(src.width - 30) <= 1
            assert abs(src.height - 20) <= 1
            assert src.crs.to_string() == 'EPSG:4326'
            assert src.tags()['crop_bounds'] == f"{polygons_bbox(DEFAULT_POLYGON_COORDINATES)}"

    def test_crop_return_array_without_saving(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(os.path.join(temp_dir, 'composite.tif'))

        result = crop_image(input_img, [-47.22, -22.98, -47.18, -22.95], output_path=None)

        assert isinstance(result, tuple)
        arr, transform, crs = result
        assert isinstance(arr, np.ndarray)
        assert arr.shape[0] == 3
        assert arr.shape[1] > 0
        assert arr.shape[2] > 0
        assert arr.dtype == np.uint8

    def test_crop_preserves_band_descriptions(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(
            os.path.join(temp_dir, 'composite.tif'),
            band_descriptions=['vis-red', 'vis-green', 'vis-blue']
        )
        output_img = os.path.join(temp_dir, 'cropped.tif')

        crop_image(input_img, [-47.22, -22.98, -47.18, -22.95], output_img)

        with rasterio.open(output_img) as src:
            assert src.descriptions == ('vis-red', 'vis-green', 'vis-blue')

    def test_crop_invalid_bbox_raises_error(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(os.path.join(temp_dir, 'composite.tif'))

        with pytest.raises(ValueError, match="Bounding box coordinates must be"):
            crop_image(input_img, [-47.22, -22.98])

    def test_crop_nonexistent_file_raises_error(self):
        with pytest.raises(FileNotFoundError, match="Input file not found"):
            crop_image('nonexistent.tif', [-47.22, -22.98, -47.18, -22.95])


# ============================================================================
# TESTS FOR RGB PREVIEW
# ============================================================================

class TestSaveRgbPreview:
    """Tests for save_rgb_preview function"""

    def test_preview_matches_bands(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(os.path.join(temp_dir, 'composite.tif'), width=40, height=20)
        output_png = os.path.join(temp_dir, 'previews', 'composite.png')

        result = save_rgb_preview(input_img, output_png)

        assert result == output_png
        with rasterio.open(input_img) as src:
            expected = np.stack([src.read(1), src.read(2), src.read(3)], axis=-1)

        with Image.open(output_png) as png:
            assert png.mode == 'RGB'
            assert png.size == (40, 20)
            np.testing.assert_array_equal(np.asarray(png), expected)

    def test_preview_requires_three_bands(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(os.path.join(temp_dir, 'mask.tif'), num_bands=1)

        with pytest.raises(ValueError, match="Expected a 3-band RGB image"):
            save_rgb_preview(input_img, os.path.join(temp_dir, 'mask.png'))

    def test_preview_nonexistent_file_raises_error(self, temp_dir):
        with pytest.raises(FileNotFoundError, match="Input file not found"):
            save_rgb_preview('nonexistent.tif', os.path.join(temp_dir, 'out.png'))


# ============================================================================
# INTEGRATION TESTS
# ============================================================================

class TestIntegration:
    """Integration tests for combined workflows"""

    def test_crop_then_preview_workflow(self, temp_dir, create_test_geotiff):
        input_img = create_test_geotiff(os.path.join(temp_dir, 'composite.tif'), width=200, height=200)

        cropped = crop_image(
            input_img,
            polygons_bbox(DEFAULT_POLYGON_COORDINATES),
            os.path.join(temp_dir, 'composite_polygons.tif')
        )
        preview = save_rgb_preview(cropped, os.path.join(temp_dir, 'composite_polygons.png'))

        with Image.open(preview) as png:
            width, height = png.size
            assert abs(width - 60) <= 1
            assert abs(height - 40) <= 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
