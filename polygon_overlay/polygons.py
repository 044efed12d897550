"""
Polygon geometry and border image construction.

Everything here builds lazy Earth Engine descriptors; painting and
rasterization run on Earth Engine when the composite is rendered or exported.
"""

import ee
from typing import List, Sequence, Tuple


# ============================================================================
# RING HELPERS
# ============================================================================

def is_closed_ring(ring: Sequence[Sequence[float]]) -> bool:
    """Return True if the ring's first and last points are identical."""
    if not ring:
        return False
    return list(ring[0]) == list(ring[-1])


def close_ring(ring: Sequence[Sequence[float]]) -> List[List[float]]:
    """Return a copy of the ring with the first point repeated at the end if needed."""
    points = [list(point) for point in ring]
    if points and not is_closed_ring(points):
        points.append(list(points[0]))
    return points


def validate_ring(ring: Sequence[Sequence[float]]) -> None:
    """
    Check that a ring describes a closed polygon.

    Raises:
    -------
    ValueError
        If the ring has fewer than 4 points or is not closed
    """
    if len(ring) < 4:
        raise ValueError(f"Polygon ring needs at least 4 points (3 vertices + closing point), got {len(ring)}")
    if not is_closed_ring(ring):
        raise ValueError(f"Polygon ring is not closed: first point {list(ring[0])} != last point {list(ring[-1])}")


def polygons_bbox(polygon_coordinates: Sequence[Sequence[Sequence[float]]]) -> Tuple[float, float, float, float]:
    """
    Bounding box of all rings as (min_lon, min_lat, max_lon, max_lat).

    Computed locally from the literals, without a round trip to Earth Engine.
    """
    points = [point for ring in polygon_coordinates for point in ring]
    if not points:
        raise ValueError("polygon_coordinates cannot be empty")

    lons = [point[0] for point in points]
    lats = [point[1] for point in points]
    return (min(lons), min(lats), max(lons), max(lats))


# ============================================================================
# GEOMETRY CONSTRUCTION
# ============================================================================

def build_polygons(polygon_coordinates: Sequence[Sequence[Sequence[float]]]) -> List[ee.Geometry]:
    """
    Convert closed coordinate rings to ee.Geometry.Polygon objects.

    Parameters:
    -----------
    polygon_coordinates : Sequence of rings
        Each ring is a list of [lon, lat] pairs with the first point repeated last

    Returns:
    --------
    List[ee.Geometry] : One polygon geometry per ring, in input order
    """
    polygons = []
    for ring in polygon_coordinates:
        validate_ring(ring)
        polygons.append(ee.Geometry.Polygon([[list(point) for point in ring]]))
    return polygons


def build_feature_collection(polygons: Sequence[ee.Geometry]) -> ee.FeatureCollection:
    """Wrap each polygon in an ee.Feature and group them in a FeatureCollection."""
    return ee.FeatureCollection([ee.Feature(polygon) for polygon in polygons])


# ============================================================================
# BORDERS
# ============================================================================

def paint_border(polygon: ee.Geometry, color: str, width: int = 3) -> ee.Image:
    """
    Paint the outline of a single polygon and color it.

    The outline is painted with value 1 onto an empty byte image, so every
    pixel off the outline stays masked and the border can be mosaicked on top
    of other imagery.

    Parameters:
    -----------
    polygon : ee.Geometry
        Polygon whose outline is drawn
    color : str
        Hex color for the outline (e.g., 'F3933A')
    width : int
        Outline width in pixels (default: 3)

    Returns:
    --------
    ee.Image : 3-band RGB visualization of the outline
    """
    empty = ee.Image().byte()
    outline = empty.paint(
        featureCollection=ee.FeatureCollection([ee.Feature(polygon)]),
        color=1,
        width=width
    )
    return outline.visualize(palette=[color])


def build_borders(
    polygons: Sequence[ee.Geometry],
    border_colors: Sequence[str],
    width: int = 3
) -> List[ee.Image]:
    """
    Build one colored border image per polygon.

    Polygon i is always painted with border_colors[i]; palette entries beyond
    the number of polygons are ignored.

    Raises:
    -------
    ValueError
        If there are fewer colors than polygons
    """
    if len(border_colors) < len(polygons):
        raise ValueError(
            f"Need a border color for each polygon: got {len(border_colors)} colors "
            f"for {len(polygons)} polygons"
        )

    return [
        paint_border(polygon, border_colors[index], width=width)
        for index, polygon in enumerate(polygons)
    ]
