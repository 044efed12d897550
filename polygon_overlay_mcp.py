#!/usr/bin/env python3
"""
MCP Server for the Polygon Overlay exporter.

This server provides tools to draw colored polygon borders over Sentinel-2 imagery
using Google Earth Engine. It enables agents to look up the source image for a date
range, submit Drive exports of the bordered composite, download it locally, and run
the whole build/display/export workflow in one call.
"""

import json
import os
import sys
from contextlib import redirect_stdout
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, ConfigDict
from fastmcp import FastMCP

from polygon_overlay import composite, config, export, image_utils, pipeline, polygons, session

# Initialize the MCP server
mcp = FastMCP("polygon_overlay_mcp")

# Tools run library code under redirect_stdout(sys.stderr): stdout is the stdio transport

_ee_ready = False


# ============================================================================
# ENUMS
# ============================================================================

class ResponseFormat(str, Enum):
    """Output format for tool responses."""
    JSON = "json"
    MARKDOWN = "markdown"


# ============================================================================
# PYDANTIC MODELS FOR INPUT VALIDATION
# ============================================================================

class OverlayBaseInput(BaseModel):
    """Parameters shared by every overlay tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    start_date: str = Field(
        default=config.DEFAULT_DATE_RANGE[0],
        description="Start date in YYYY-MM-DD format, inclusive (e.g., '2024-01-01')",
        pattern=r'^\d{4}-\d{2}-\d{2}$'
    )
    end_date: str = Field(
        default=config.DEFAULT_DATE_RANGE[1],
        description="End date in YYYY-MM-DD format, exclusive (e.g., '2024-02-18')",
        pattern=r'^\d{4}-\d{2}-\d{2}$'
    )
    polygon_coordinates: Optional[List[List[List[float]]]] = Field(
        default=None,
        description="Closed polygon rings as [[lon, lat], ...]; the three default survey cells are used if omitted"
    )
    border_colors: Optional[List[str]] = Field(
        default=None,
        description="Hex border colors index-aligned with the polygons (e.g., ['B3B3B3', '12B5E8'])"
    )
    buffer_distance: int = Field(
        default=config.DEFAULT_BUFFER_DISTANCE,
        description="Buffer around the polygons in meters (e.g., 1000, 3000)",
        ge=0,
        le=100000
    )

    def to_config(self, **overrides) -> config.OverlayConfig:
        """Build the pipeline configuration, keeping defaults for omitted fields."""
        values = {
            'start_date': self.start_date,
            'end_date': self.end_date,
            'buffer_distance': self.buffer_distance,
        }
        if self.polygon_coordinates is not None:
            values['polygon_coordinates'] = self.polygon_coordinates
        if self.border_colors is not None:
            values['border_colors'] = self.border_colors
        values.update(overrides)
        return config.OverlayConfig(**values)


class OverlayFindImageInput(OverlayBaseInput):
    """Input model for looking up the source image."""
    image_collection: str = Field(
        default=config.DEFAULT_IMAGE_COLLECTION,
        description="Earth Engine image collection ID (e.g., 'COPERNICUS/S2_SR_HARMONIZED')",
        min_length=1
    )
    sort_property: Optional[str] = Field(
        default=None,
        description="Property to sort by before taking the first image (e.g., 'CLOUDY_PIXEL_PERCENTAGE'); catalog order if omitted"
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' for human-readable or 'json' for machine-readable"
    )


class OverlayExportInput(OverlayBaseInput):
    """Input model for submitting a Drive export."""
    description: str = Field(
        default=config.DEFAULT_EXPORT_DESCRIPTION,
        description="Export task description, also used as the Drive file name",
        min_length=1,
        max_length=100
    )
    folder: Optional[str] = Field(
        default=None,
        description="Google Drive folder for the export (e.g., 'EarthEngine')"
    )


class OverlayDownloadInput(OverlayBaseInput):
    """Input model for downloading the composite."""
    output_directory: str = Field(
        ...,
        description="Directory to save the composite GeoTIFF and previews (e.g., './overlay_output')",
        min_length=1
    )
    scale: int = Field(
        default=config.DEFAULT_EXPORT_SCALE,
        description="Resolution in meters per pixel (e.g., 10, 20, 30)",
        ge=10,
        le=100
    )


class OverlayFullPipelineInput(OverlayBaseInput):
    """Input model for the full overlay pipeline."""
    output_directory: str = Field(
        ...,
        description="Base output directory for the map HTML and downloads (e.g., './overlay_output')",
        min_length=1
    )
    description: str = Field(
        default=config.DEFAULT_EXPORT_DESCRIPTION,
        description="Export task description",
        min_length=1,
        max_length=100
    )
    start_export: bool = Field(
        default=True,
        description="Submit the Drive export task in addition to the local download"
    )

    @field_validator('output_directory')
    @classmethod
    def validate_output_directory(cls, v: str) -> str:
        """Ensure the output path is not an existing file."""
        if os.path.isfile(v):
            raise ValueError(f"output_directory points to an existing file: {v}")
        return v


# ============================================================================
# SHARED UTILITY FUNCTIONS
# ============================================================================

def _ensure_earth_engine() -> None:
    global _ee_ready
    if not _ee_ready:
        session.initialize_earth_engine()
        _ee_ready = True


def _handle_error(e: Exception) -> str:
    """
    Consistent error formatting across all tools.

    Returns clear, actionable error messages for common failure scenarios.
    """
    error_msg = str(e)

    if "authenticate" in error_msg.lower() or "credentials" in error_msg.lower():
        return (
            f"Error: Earth Engine authentication required. "
            f"Please run 'earthengine authenticate' in your terminal first. "
            f"Details: {error_msg}"
        )
    elif "not closed" in error_msg.lower() or "border color" in error_msg.lower():
        return f"Error: Invalid polygon input. Check rings are closed and every polygon has a color. Details: {error_msg}"
    elif "quota" in error_msg.lower() or "too many" in error_msg.lower():
        return f"Error: Earth Engine quota exceeded. Wait for running tasks to finish or reduce the region. Details: {error_msg}"
    elif "permission" in error_msg.lower() or "access" in error_msg.lower():
        return f"Error: Permission denied. Check the Earth Engine project and directory access. Details: {error_msg}"
    elif "no image" in error_msg.lower():
        return (
            f"Error: No images found matching criteria. Try: "
            f"(1) Expanding the date range, "
            f"(2) Checking the polygons are inside the collection's coverage. "
            f"Details: {error_msg}"
        )
    else:
        return f"Error: {error_msg}"


def _no_image_message(params: OverlayBaseInput) -> str:
    return (
        f"No image found between {params.start_date} and {params.end_date} "
        f"for the requested polygons. Try expanding the date range."
    )


def _format_file_info(filepath: str) -> dict:
    size_mb = os.path.getsize(filepath) / (1024 * 1024) if os.path.exists(filepath) else 0
    return {"path": filepath, "size_mb": round(size_mb, 2)}


# ============================================================================
# MCP TOOL IMPLEMENTATIONS
# ============================================================================

@mcp.tool(
    name="overlay_find_source_image",
    annotations={
        "title": "Find Source Image For Polygon Overlay",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def overlay_find_source_image(params: OverlayFindImageInput) -> str:
    """
    Look up the image the overlay would be drawn on.

    Builds the buffered region around the polygons and returns metadata of the first
    image of the collection that intersects it within the date range. Nothing is
    exported or downloaded.

    Args:
        params (OverlayFindImageInput): Validated input parameters containing:
            - start_date (str): Start date in YYYY-MM-DD format
            - end_date (str): End date in YYYY-MM-DD format
            - polygon_coordinates (Optional[list]): Closed rings, defaults to the survey cells
            - border_colors (Optional[list]): Hex colors per polygon
            - buffer_distance (int): Buffer around the polygons in meters (default: 3000)
            - image_collection (str): Collection ID (default: COPERNICUS/S2_SR_HARMONIZED)
            - response_format (str): 'markdown' or 'json' (default: 'markdown')

    Returns:
        str: Formatted response with image date, cloud coverage and ID, or "Error: <message>"
    """
    try:
        with redirect_stdout(sys.stderr):
            _ensure_earth_engine()
            overlay_config = params.to_config(
                image_collection=params.image_collection,
                sort_property=params.sort_property
            )

            region = composite.buffer_region(
                polygons.build_polygons(overlay_config.polygon_coordinates),
                overlay_config.buffer_distance
            )
            result = composite.find_source_image(
                region=region,
                date_range=overlay_config.date_range,
                image_collection=overlay_config.image_collection,
                bands=overlay_config.bands,
                sort_property=overlay_config.sort_property
            )

            if result is None:
                return _no_image_message(params)

            metadata = result['metadata']

            if params.response_format == ResponseFormat.MARKDOWN:
                lines = [
                    f"# Source Image",
                    f"",
                    f"- **Collection**: {overlay_config.image_collection}",
                    f"- **Date Range**: {params.start_date} to {params.end_date}",
                    f"- **Polygons**: {len(overlay_config.polygon_coordinates)}",
                    f"- **Buffer Distance**: {overlay_config.buffer_distance}m",
                    f"",
                    f"## Image",
                    f"- **Date**: {metadata['date']}",
                    f"- **Cloud Coverage**: {metadata['cloud_coverage']:.1f}%",
                    f"- **Image ID**: {metadata['image_id']}",
                ]
                return "\n".join(lines)

            return json.dumps({
                "collection": overlay_config.image_collection,
                "date_range": [params.start_date, params.end_date],
                "polygon_count": len(overlay_config.polygon_coordinates),
                "buffer_distance": overlay_config.buffer_distance,
                "image": {
                    "date": metadata['date'],
                    "cloud_coverage": metadata['cloud_coverage'],
                    "image_id": metadata['image_id']
                }
            }, indent=2)

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="overlay_export_composite",
    annotations={
        "title": "Export Polygon Overlay To Drive",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def overlay_export_composite(params: OverlayExportInput) -> str:
    """
    Submit a Google Drive export of the bordered composite.

    The export always uses scale=10, crs='EPSG:4326' and maxPixels=1e13 over the
    bounding box of the buffered region. The task runs on Earth Engine; this tool
    returns as soon as it is submitted and does not wait for completion.

    Returns:
        str: JSON with the task ID and export parameters, or "Error: <message>"
    """
    try:
        with redirect_stdout(sys.stderr):
            _ensure_earth_engine()
            overlay_config = params.to_config(
                export_description=params.description,
                export_folder=params.folder
            )

            built = pipeline.build_composite(overlay_config)
            if built is None:
                return json.dumps({"status": "error", "message": _no_image_message(params)}, indent=2)

            task = export.export_to_drive(
                built['composite'],
                built['region'],
                description=overlay_config.export_description,
                scale=overlay_config.export_scale,
                max_pixels=overlay_config.max_pixels,
                crs=overlay_config.export_crs,
                folder=overlay_config.export_folder
            )

            return json.dumps({
                "status": "submitted",
                "task_id": task.id,
                "description": overlay_config.export_description,
                "source_image": built['source']['metadata']['image_id'],
                "export_parameters": {
                    "scale": overlay_config.export_scale,
                    "crs": overlay_config.export_crs,
                    "max_pixels": overlay_config.max_pixels,
                    "folder": overlay_config.export_folder
                }
            }, indent=2)

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="overlay_download_composite",
    annotations={
        "title": "Download Polygon Overlay",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def overlay_download_composite(params: OverlayDownloadInput) -> str:
    """
    Download the bordered composite as a GeoTIFF with PNG previews.

    Writes composite.tif, composite.png, and a crop to the polygons'
    bounding box (composite_polygons.tif/.png) into output_directory.

    Returns:
        str: JSON with file paths and sizes, or "Error: <message>"
    """
    try:
        with redirect_stdout(sys.stderr):
            _ensure_earth_engine()
            overlay_config = params.to_config(export_scale=params.scale)

            built = pipeline.build_composite(overlay_config)
            if built is None:
                return json.dumps({"status": "error", "message": _no_image_message(params)}, indent=2)

            os.makedirs(params.output_directory, exist_ok=True)
            geotiff = export.download_composite(
                built['composite'],
                built['region'],
                os.path.join(params.output_directory, 'composite.tif'),
                scale=overlay_config.export_scale,
                crs=overlay_config.export_crs
            )
            if geotiff is None:
                return json.dumps({
                    "status": "error",
                    "message": "Download failed. The region may be too large for a direct download; "
                               "use overlay_export_composite instead."
                }, indent=2)

            preview = image_utils.save_rgb_preview(geotiff, os.path.join(params.output_directory, 'composite.png'))
            cropped = image_utils.crop_image(
                geotiff,
                polygons.polygons_bbox(overlay_config.polygon_coordinates),
                output_path=os.path.join(params.output_directory, 'composite_polygons.tif')
            )
            cropped_preview = image_utils.save_rgb_preview(
                cropped, os.path.join(params.output_directory, 'composite_polygons.png')
            )

            return json.dumps({
                "status": "success",
                "source_image": built['source']['metadata']['image_id'],
                "output_directory": params.output_directory,
                "files": [_format_file_info(path) for path in (geotiff, preview, cropped, cropped_preview)]
            }, indent=2)

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="overlay_full_pipeline",
    annotations={
        "title": "Full Polygon Overlay Pipeline",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True
    }
)
async def overlay_full_pipeline(params: OverlayFullPipelineInput) -> str:
    """
    Execute the complete overlay workflow: build, map, export and download.

    Outputs in output_directory:
    - map.html: interactive map with the composite layer
    - composite.tif / composite.png: downloaded composite and preview
    - composite_polygons.tif / .png: crop to the polygons

    Returns:
        str: JSON with the task ID, source image metadata and output files,
             or "Error: <message>"
    """
    import time
    start_time = time.time()

    try:
        with redirect_stdout(sys.stderr):
            _ensure_earth_engine()
            os.makedirs(params.output_directory, exist_ok=True)
            overlay_config = params.to_config(export_description=params.description)

            html_path = os.path.join(params.output_directory, 'map.html')
            result = pipeline.export_polygon_overlay(
                config=overlay_config,
                html_path=html_path,
                download_path=os.path.join(params.output_directory, 'composite.tif'),
                start_export=params.start_export
            )

            if result is None:
                return json.dumps({"status": "error", "step": "find", "message": _no_image_message(params)}, indent=2)

            files = [_format_file_info(html_path)]
            if result['download']:
                files.extend(_format_file_info(path) for path in result['download'].values())

            metadata = result['metadata']
            return json.dumps({
                "status": "success",
                "source_image": {
                    "date": metadata['date'],
                    "cloud_coverage": metadata['cloud_coverage'],
                    "image_id": metadata['image_id']
                },
                "task_id": result['task'].id if result['task'] is not None else None,
                "download_succeeded": result['download'] is not None,
                "files": files,
                "total_processing_time": f"{time.time() - start_time:.1f} seconds"
            }, indent=2)

    except Exception as e:
        return _handle_error(e)


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    mcp.run()
