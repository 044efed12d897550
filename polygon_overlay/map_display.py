import ee
import geemap
from typing import Dict, Optional


def display_composite(
    image: ee.Image,
    region: ee.Geometry,
    zoom: int = 12,
    layer_name: str = "Image with Colored Borders",
    vis_params: Optional[Dict] = None,
    html_path: Optional[str] = None
) -> geemap.Map:
    """
    Add the composite to an interactive map centered on the region.

    The composite is already an RGB visualization, so it is added with empty
    visualization parameters unless vis_params is given.

    Parameters:
    -----------
    image : ee.Image
        Image to display
    region : ee.Geometry
        Region to center the view on
    zoom : int
        Zoom level (default: 12)
    layer_name : str
        Layer name shown in the map's layer control
    vis_params : Optional[Dict]
        Visualization parameters for the layer (default: {})
    html_path : Optional[str]
        If given, also save the map as a standalone HTML file

    Returns:
    --------
    geemap.Map : The map, for display in a notebook
    """
    m = geemap.Map()
    m.addLayer(image, vis_params or {}, layer_name)
    m.centerObject(region, zoom)

    if html_path:
        m.to_html(filename=html_path)
        print(f"  ✓ Saved interactive map to {html_path}")

    return m
