import os
import sys
from typing import Dict, Optional

from .config import OverlayConfig, load_config
from .polygons import build_polygons, build_borders, polygons_bbox
from .composite import (
    buffer_region,
    find_source_image,
    visualize_rgb,
    mosaic_borders,
    composite_image,
)
from .export import export_to_drive, download_composite
from .map_display import display_composite
from .image_utils import crop_image, save_rgb_preview
from .session import initialize_earth_engine


# ============================================================================
# MAIN FUNCTIONS
# ============================================================================

def build_composite(config: Optional[OverlayConfig] = None) -> Optional[Dict]:
    """
    Build the lazy Earth Engine graph for the bordered composite.

    Nothing is rendered here; the only server round trip is the catalog
    lookup for the source image.

    Parameters:
    -----------
    config : Optional[OverlayConfig]
        Pipeline parameters (default: OverlayConfig())

    Returns:
    --------
    Optional[Dict] : Dictionary with 'polygons', 'region', 'source',
                     'base_image', 'borders' and 'composite',
                     or None if no source image matches
    """
    if config is None:
        config = OverlayConfig()

    polygons = build_polygons(config.polygon_coordinates)
    region = buffer_region(polygons, config.buffer_distance)

    source = find_source_image(
        region=region,
        date_range=config.date_range,
        image_collection=config.image_collection,
        bands=config.bands,
        sort_property=config.sort_property
    )
    if source is None:
        return None

    base_image = visualize_rgb(source['image'], config.vis_params)
    borders = build_borders(polygons, config.border_colors, width=config.border_width)
    final_image = composite_image(base_image, mosaic_borders(borders))

    return {
        'polygons': polygons,
        'region': region,
        'source': source,
        'base_image': base_image,
        'borders': borders,
        'composite': final_image
    }


def export_polygon_overlay(
    config: Optional[OverlayConfig] = None,
    html_path: Optional[str] = None,
    download_path: Optional[str] = None,
    start_export: bool = True
) -> Optional[Dict]:
    """
    End-to-end function to build, display and export the bordered composite.

    Parameters:
    -----------
    config : Optional[OverlayConfig]
        Pipeline parameters (default: OverlayConfig())
    html_path : Optional[str]
        Save the interactive map to this HTML file
    download_path : Optional[str]
        Also download the composite to this GeoTIFF path, with a PNG
        preview and a crop to the polygons next to it
    start_export : bool
        Submit the Drive export task (default: True)

    Returns:
    --------
    Optional[Dict] : Dictionary with 'composite', 'metadata', 'map', 'task'
                     and 'download', or None if no source image matches
    """
    if config is None:
        config = OverlayConfig()

    print("=" * 70)
    print("POLYGON OVERLAY EXPORT")
    print("=" * 70)
    print(f"Collection: {config.image_collection}")
    print(f"Date range: {config.start_date} to {config.end_date}")
    print(f"Polygons: {len(config.polygon_coordinates)}")
    print(f"Border colors: {config.border_colors[:len(config.polygon_coordinates)]}")
    print(f"Buffer distance: {config.buffer_distance}m")
    print("=" * 70)
    print()

    print("STEP 1: Building composite...")
    print("-" * 70)
    built = build_composite(config)

    if built is None:
        print("\n✗ No image found matching criteria")
        return None

    metadata = built['source']['metadata']
    print(f"Source image: {metadata['image_id']} (date: {metadata['date']}, "
          f"cloud: {metadata['cloud_coverage']:.1f}%)")

    print("\nSTEP 2: Registering map layer...")
    print("-" * 70)
    overlay_map = display_composite(
        built['composite'],
        built['region'],
        zoom=config.map_zoom,
        layer_name=config.layer_name,
        html_path=html_path
    )

    task = None
    if start_export:
        print("\nSTEP 3: Submitting export...")
        print("-" * 70)
        task = export_to_drive(
            built['composite'],
            built['region'],
            description=config.export_description,
            scale=config.export_scale,
            max_pixels=config.max_pixels,
            crs=config.export_crs,
            folder=config.export_folder
        )

    download = None
    if download_path:
        print("\nSTEP 4: Downloading composite...")
        print("-" * 70)
        download = _download_with_previews(built, config, download_path)

    print("\n" + "=" * 70)
    print("EXPORT SUBMITTED" if task is not None else "COMPOSITE READY")
    print("=" * 70)

    return {
        'composite': built['composite'],
        'metadata': metadata,
        'map': overlay_map,
        'task': task,
        'download': download
    }


def _download_with_previews(built: Dict, config: OverlayConfig, download_path: str) -> Optional[Dict]:
    geotiff = download_composite(
        built['composite'],
        built['region'],
        download_path,
        scale=config.export_scale,
        crs=config.export_crs
    )
    if geotiff is None:
        return None

    base_path = os.path.splitext(geotiff)[0]
    cropped = crop_image(
        geotiff,
        polygons_bbox(config.polygon_coordinates),
        output_path=f"{base_path}_polygons.tif"
    )

    return {
        'geotiff': geotiff,
        'preview': save_rgb_preview(geotiff, f"{base_path}.png"),
        'cropped': cropped,
        'cropped_preview': save_rgb_preview(cropped, f"{base_path}_polygons.png")
    }


# ============================================================================
# EXAMPLE USAGE
# ============================================================================

if __name__ == "__main__":
    initialize_earth_engine()

    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    result = export_polygon_overlay(
        config=load_config(config_path),
        html_path='./polygon_overlay_map.html'
    )

    if result is None:
        sys.exit(1)

    print(f"\nExport task: {result['task'].id}")
    print("Check the Earth Engine task list or your Google Drive for the output.")
