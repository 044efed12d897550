"""
Local utilities for downloaded composites.

This module provides cropping and PNG preview of the GeoTIFFs produced by
download_composite. The composite is already visualized on Earth Engine, so
these helpers only move 8-bit pixels around; they never re-render imagery.
"""

import rasterio
from rasterio.windows import from_bounds
import numpy as np
from typing import List, Tuple, Union, Optional
import os
from PIL import Image


def crop_image(
    input_path: str,
    bbox: Union[List[float], Tuple[float, float, float, float]],
    output_path: Optional[str] = None
) -> Union[str, Tuple[np.ndarray, rasterio.Affine, rasterio.crs.CRS]]:
    """
    Crop a bounding box from a GeoTIFF image.

    Parameters:
    -----------
    input_path : str
        Path to input GeoTIFF file
    bbox : Union[List[float], Tuple]
        [min_lon, min_lat, max_lon, max_lat] in the image's CRS
    output_path : Optional[str]
        Path to save cropped GeoTIFF. If None, returns array/metadata instead.

    Returns:
    --------
    Union[str, Tuple]
        If output_path provided: returns the output file path
        If output_path is None: returns (cropped_array, transform, crs)

    Raises:
    -------
    ValueError
        If bbox does not have four values
    FileNotFoundError
        If input file does not exist

    Example:
    --------
    >>> crop_image(
    ...     'composite.tif',
    ...     [-47.21671, -22.97828, -47.18671, -22.95828],
    ...     'composite_polygons.tif'
    ... )
    'composite_polygons.tif'
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Input file not found: {input_path}")

    if len(bbox) != 4:
        raise ValueError("Bounding box coordinates must be [min_lon, min_lat, max_lon, max_lat]")
    bounds = tuple(bbox)

    with rasterio.open(input_path) as src:
        window = from_bounds(*bounds, transform=src.transform)
        window = window.round_offsets().round_lengths()

        cropped_data = src.read(window=window)
        cropped_transform = src.window_transform(window)

        cropped_meta = src.meta.copy()
        cropped_meta.update({
            'height': window.height,
            'width': window.width,
            'transform': cropped_transform
        })

        band_descriptions = src.descriptions
        crs = src.crs
        src_width, src_height = src.width, src.height

    print(f"Cropped from {src_width}x{src_height} to {window.width}x{window.height} pixels")

    if output_path is None:
        return cropped_data, cropped_transform, crs

    with rasterio.open(output_path, 'w', **cropped_meta) as dst:
        dst.write(cropped_data)

        if band_descriptions:
            for idx, desc in enumerate(band_descriptions, 1):
                if desc:
                    dst.set_band_description(idx, desc)

        dst.update_tags(
            cropped_from=input_path,
            crop_bounds=f"{bounds}"
        )

    print(f"  ✓ Saved cropped image to {output_path}")
    return output_path


def save_rgb_preview(input_path: str, output_path: str) -> str:
    """
    Write a PNG preview of a visualized 3-band GeoTIFF.

    Bands 1, 2, 3 are read as red, green, blue. Values are clipped to 0-255,
    which is the range ee.Image.visualize produces.

    Raises:
    -------
    ValueError
        If the image has fewer than 3 bands
    FileNotFoundError
        If input file does not exist
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Input file not found: {input_path}")

    with rasterio.open(input_path) as src:
        if src.count < 3:
            raise ValueError(f"Expected a 3-band RGB image, got {src.count} band(s)")
        red = src.read(1)
        green = src.read(2)
        blue = src.read(3)

    rgb_array = np.stack([red, green, blue], axis=-1)
    rgb_array = np.clip(rgb_array, 0, 255).astype(np.uint8)

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    Image.fromarray(rgb_array).save(output_path, 'PNG')

    print(f"  ✓ Saved preview: {output_path} ({rgb_array.shape[1]} × {rgb_array.shape[0]} pixels)")
    return output_path
