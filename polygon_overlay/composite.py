import ee
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from .polygons import build_feature_collection


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _extract_metadata(image: ee.Image, region: ee.Geometry) -> Dict:
    """
    Extract metadata from an ee.Image.

    Parameters:
    -----------
    image : ee.Image
        Earth Engine Image object
    region : ee.Geometry
        Region of interest

    Returns:
    --------
    Dict : Dictionary containing date, cloud_coverage, image_id and region
    """
    properties = image.getInfo()['properties']

    date_str = properties.get('system:time_start')
    if date_str:
        date = datetime.fromtimestamp(int(date_str) / 1000, tz=timezone.utc).strftime('%Y-%m-%d')
    else:
        date = "unknown"

    # Sentinel-2 reports CLOUDY_PIXEL_PERCENTAGE, HLS reports CLOUD_COVERAGE
    cloud_coverage = properties.get('CLOUDY_PIXEL_PERCENTAGE', properties.get('CLOUD_COVERAGE', 0))

    image_id = properties.get('system:index', 'unknown')

    return {
        'date': date,
        'cloud_coverage': cloud_coverage,
        'image_id': image_id,
        'region': region
    }


# ============================================================================
# REGION & IMAGE RETRIEVAL
# ============================================================================

def buffer_region(polygons: Sequence[ee.Geometry], buffer_distance: float = 3000) -> ee.Geometry:
    """
    Union all polygons and expand the result by buffer_distance meters.

    Parameters:
    -----------
    polygons : Sequence[ee.Geometry]
        Polygon geometries
    buffer_distance : float
        Buffer distance in meters (default: 3000)

    Returns:
    --------
    ee.Geometry : Buffered region of interest
    """
    if not polygons:
        raise ValueError("polygons cannot be empty")

    return build_feature_collection(polygons).geometry().buffer(buffer_distance)


def find_source_image(
    region: ee.Geometry,
    date_range: Tuple[str, str],
    image_collection: str = "COPERNICUS/S2_SR_HARMONIZED",
    bands: Optional[List[str]] = None,
    sort_property: Optional[str] = None
) -> Optional[Dict]:
    """
    Find the first image of a collection that intersects the region in the date range.

    Parameters:
    -----------
    region : ee.Geometry
        Region of interest used for filterBounds
    date_range : Tuple[str, str]
        (start_date, end_date) in 'YYYY-MM-DD' format; start inclusive, end exclusive
    image_collection : str
        Earth Engine image collection ID (default: "COPERNICUS/S2_SR_HARMONIZED")
    bands : Optional[List[str]]
        Bands to keep (default: ['B4', 'B3', 'B2'])
    sort_property : Optional[str]
        Property to sort by before taking the first image
        (e.g., 'CLOUDY_PIXEL_PERCENTAGE'). Catalog order is used if None.

    Returns:
    --------
    Optional[Dict] : Dictionary with 'image' (ee.Image) and 'metadata' (Dict),
                     or None if no image matches
    """
    if bands is None:
        bands = ['B4', 'B3', 'B2']

    start_date, end_date = date_range
    collection = (
        ee.ImageCollection(image_collection)
        .filterBounds(region)
        .filterDate(start_date, end_date)
    )

    if sort_property:
        collection = collection.sort(sort_property)

    size = collection.size().getInfo()
    if size == 0:
        return None

    image = collection.first().select(bands)
    metadata = _extract_metadata(image, region)

    return {
        'image': image,
        'metadata': metadata
    }


# ============================================================================
# VISUALIZATION & COMPOSITING
# ============================================================================

def visualize_rgb(image: ee.Image, vis_params: Dict) -> ee.Image:
    """Render the source image to a display-ready 3-band 8-bit RGB image."""
    return image.visualize(**vis_params)


def mosaic_borders(borders: Sequence[ee.Image]) -> ee.Image:
    """
    Mosaic per-polygon border images.

    Later borders overwrite earlier ones where they overlap.
    """
    if not borders:
        raise ValueError("borders cannot be empty")

    return ee.ImageCollection(list(borders)).mosaic()


def composite_image(base_image: ee.Image, borders_mosaic: ee.Image) -> ee.Image:
    """Lay the border mosaic over the base image; painted border pixels win."""
    return ee.ImageCollection([base_image, borders_mosaic]).mosaic()
