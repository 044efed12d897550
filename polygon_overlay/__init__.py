"""
Polygon Overlay Export

A collection of Python functions for drawing colored polygon borders over
Sentinel-2 imagery and exporting the composite with Google Earth Engine.
"""

from .config import (
    OverlayConfig,
    load_config,
)

from .session import initialize_earth_engine

from .polygons import (
    build_polygons,
    build_feature_collection,
    build_borders,
    paint_border,
)

from .composite import (
    buffer_region,
    find_source_image,
    visualize_rgb,
    mosaic_borders,
    composite_image,
)

from .export import (
    export_to_drive,
    download_composite,
)

from .map_display import display_composite

from .image_utils import (
    crop_image,
    save_rgb_preview,
)

from .pipeline import (
    build_composite,
    export_polygon_overlay,
)

__all__ = [
    # Configuration
    'OverlayConfig',
    'load_config',
    'initialize_earth_engine',
    # Geometry and borders
    'build_polygons',
    'build_feature_collection',
    'build_borders',
    'paint_border',
    # Retrieval and compositing
    'buffer_region',
    'find_source_image',
    'visualize_rgb',
    'mosaic_borders',
    'composite_image',
    # Presentation and export
    'export_to_drive',
    'download_composite',
    'display_composite',
    # Utility functions
    'crop_image',
    'save_rgb_preview',
    # Pipeline
    'build_composite',
    'export_polygon_overlay',
]

__version__ = '0.1.0'
