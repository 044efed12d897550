"""
Configuration for the polygon overlay pipeline.

All literals the pipeline needs (polygons, palette, dates, visualization and
export parameters) live in a single validated pydantic model. The defaults
reproduce the three adjacent survey cells exported over Sentinel-2.
"""

import json
import os
import re
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Constants
DEFAULT_POLYGON_COORDINATES = [
    [
        [-47.21671, -22.97828],
        [-47.21671, -22.96828],
        [-47.20671, -22.96828],
        [-47.20671, -22.97828],
        [-47.21671, -22.97828],
    ],
    [
        [-47.20671, -22.96828],
        [-47.20671, -22.95828],
        [-47.19671, -22.95828],
        [-47.19671, -22.96828],
        [-47.20671, -22.96828],
    ],
    [
        [-47.19671, -22.97828],
        [-47.19671, -22.96828],
        [-47.18671, -22.96828],
        [-47.18671, -22.97828],
        [-47.19671, -22.97828],
    ],
]
DEFAULT_BORDER_COLORS = ["B3B3B3", "12B5E8", "F3933A", "F46A94", "A45BC9"]
DEFAULT_IMAGE_COLLECTION = "COPERNICUS/S2_SR_HARMONIZED"
DEFAULT_BANDS = ['B4', 'B3', 'B2']
DEFAULT_DATE_RANGE = ('2024-01-01', '2024-02-18')
DEFAULT_BUFFER_DISTANCE = 3000
DEFAULT_BORDER_WIDTH = 3
DEFAULT_EXPORT_DESCRIPTION = "Image_With_Multiple_Polygons"
DEFAULT_EXPORT_SCALE = 10
DEFAULT_EXPORT_CRS = "EPSG:4326"
DEFAULT_MAX_PIXELS = 1e13
DEFAULT_MAP_ZOOM = 12
DEFAULT_LAYER_NAME = "Image with Colored Borders"

EE_PROJECT_ENV = "EE_PROJECT"

_HEX_COLOR = re.compile(r'^[0-9A-Fa-f]{6}$')


class OverlayConfig(BaseModel):
    """Validated parameters for one polygon overlay run."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    polygon_coordinates: List[List[List[float]]] = Field(
        default_factory=lambda: [
            [list(point) for point in ring] for ring in DEFAULT_POLYGON_COORDINATES
        ],
        description="Closed polygon rings as [[lon, lat], ...] lists, first point repeated last",
        min_length=1
    )
    border_colors: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BORDER_COLORS),
        description="Hex border colors, index-aligned with polygon_coordinates (e.g., 'B3B3B3')"
    )
    start_date: str = Field(
        default=DEFAULT_DATE_RANGE[0],
        description="Start date in YYYY-MM-DD format, inclusive",
        pattern=r'^\d{4}-\d{2}-\d{2}$'
    )
    end_date: str = Field(
        default=DEFAULT_DATE_RANGE[1],
        description="End date in YYYY-MM-DD format, exclusive",
        pattern=r'^\d{4}-\d{2}-\d{2}$'
    )
    image_collection: str = Field(
        default=DEFAULT_IMAGE_COLLECTION,
        description="Earth Engine image collection ID",
        min_length=1
    )
    bands: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BANDS),
        description="Red, green and blue band names",
        min_length=3,
        max_length=3
    )
    sort_property: Optional[str] = Field(
        default=None,
        description="Property to sort the collection by before taking the first image (e.g., 'CLOUDY_PIXEL_PERCENTAGE'); catalog order if None"
    )
    buffer_distance: float = Field(
        default=DEFAULT_BUFFER_DISTANCE,
        description="Buffer around the polygon union in meters",
        ge=0
    )
    border_width: int = Field(
        default=DEFAULT_BORDER_WIDTH,
        description="Border stroke width in pixels",
        ge=1
    )
    vis_min: float = Field(default=100, description="Visualization stretch minimum")
    vis_max: float = Field(default=2000, description="Visualization stretch maximum")
    gamma: float = Field(default=1.4, description="Visualization gamma", gt=0)
    export_description: str = Field(
        default=DEFAULT_EXPORT_DESCRIPTION,
        description="Export task description",
        min_length=1
    )
    export_scale: float = Field(
        default=DEFAULT_EXPORT_SCALE,
        description="Export resolution in meters per pixel",
        gt=0
    )
    export_crs: str = Field(default=DEFAULT_EXPORT_CRS, description="Export coordinate reference system")
    max_pixels: float = Field(default=DEFAULT_MAX_PIXELS, description="Export pixel-count ceiling", gt=0)
    export_folder: Optional[str] = Field(default=None, description="Google Drive folder for the export")
    map_zoom: int = Field(default=DEFAULT_MAP_ZOOM, description="Interactive map zoom level", ge=0, le=24)
    layer_name: str = Field(default=DEFAULT_LAYER_NAME, description="Interactive map layer name")

    @field_validator('polygon_coordinates')
    @classmethod
    def validate_rings(cls, v: List[List[List[float]]]) -> List[List[List[float]]]:
        """Ensure every ring is closed and made of valid lon/lat pairs."""
        for idx, ring in enumerate(v):
            if len(ring) < 4:
                raise ValueError(f"Polygon {idx} needs at least 4 points, got {len(ring)}")
            for point in ring:
                if len(point) != 2:
                    raise ValueError(f"Polygon {idx} has a point that is not a [lon, lat] pair: {point}")
                lon, lat = point
                if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
                    raise ValueError(f"Polygon {idx} has an out-of-range point: {point}")
            if list(ring[0]) != list(ring[-1]):
                raise ValueError(f"Polygon {idx} is not closed: first point {ring[0]} != last point {ring[-1]}")
        return v

    @field_validator('border_colors')
    @classmethod
    def validate_colors(cls, v: List[str]) -> List[str]:
        """Normalize colors to bare six-digit hex strings."""
        colors = []
        for color in v:
            color = color.strip().lstrip('#')
            if not _HEX_COLOR.match(color):
                raise ValueError(f"Invalid hex color: {color!r}")
            colors.append(color.upper())
        return colors

    @model_validator(mode='after')
    def validate_consistency(self) -> 'OverlayConfig':
        """Cross-field checks; rerun on every assignment."""
        start = datetime.strptime(self.start_date, '%Y-%m-%d')
        end = datetime.strptime(self.end_date, '%Y-%m-%d')
        if end <= start:
            raise ValueError("end_date must be after start_date")
        if len(self.border_colors) < len(self.polygon_coordinates):
            raise ValueError(
                f"border_colors has {len(self.border_colors)} entries but "
                f"{len(self.polygon_coordinates)} polygons need a color"
            )
        if self.vis_max <= self.vis_min:
            raise ValueError("vis_max must be greater than vis_min")
        return self

    @property
    def date_range(self) -> tuple:
        return (self.start_date, self.end_date)

    @property
    def vis_params(self) -> Dict:
        """Parameters for ee.Image.visualize on the base RGB image."""
        return {
            'bands': list(self.bands),
            'min': self.vis_min,
            'max': self.vis_max,
            'gamma': self.gamma,
        }


def load_config(path: Optional[str] = None) -> OverlayConfig:
    """
    Load an OverlayConfig from a JSON file.

    Parameters:
    -----------
    path : Optional[str]
        Path to a JSON object whose keys are OverlayConfig fields.
        Missing keys fall back to the defaults. If None, returns the defaults.

    Returns:
    --------
    OverlayConfig : Validated configuration

    Raises:
    -------
    FileNotFoundError
        If the config file does not exist
    pydantic.ValidationError
        If any value fails validation
    """
    if path is None:
        return OverlayConfig()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        data = json.load(f)

    return OverlayConfig(**data)


def get_ee_project(project: Optional[str] = None) -> Optional[str]:
    """Resolve the Earth Engine cloud project, falling back to $EE_PROJECT."""
    return project or os.environ.get(EE_PROJECT_ENV)
