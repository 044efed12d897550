import ee
import requests
import zipfile
import io
import os
from typing import Optional


def export_to_drive(
    image: ee.Image,
    region: ee.Geometry,
    description: str = "Image_With_Multiple_Polygons",
    scale: float = 10,
    max_pixels: float = 1e13,
    crs: str = 'EPSG:4326',
    folder: Optional[str] = None,
    file_name_prefix: Optional[str] = None
) -> ee.batch.Task:
    """
    Submit an export task that writes the image to Google Drive.

    The task runs asynchronously on Earth Engine; completion and failure are
    reported in the Earth Engine task list, not here.

    Parameters:
    -----------
    image : ee.Image
        Image to export
    region : ee.Geometry
        Region to export; its bounding box is used
    description : str
        Task description, also the default file name
    scale : float
        Resolution in meters (default: 10)
    max_pixels : float
        Pixel-count ceiling for the export (default: 1e13)
    crs : str
        Coordinate reference system (default: 'EPSG:4326')
    folder : Optional[str]
        Drive folder to write into
    file_name_prefix : Optional[str]
        Output file name prefix (defaults to description on Earth Engine)

    Returns:
    --------
    ee.batch.Task : The started export task
    """
    export_kwargs = {
        'image': image,
        'description': description,
        'region': region.bounds(),
        'scale': scale,
        'maxPixels': max_pixels,
        'crs': crs,
    }
    if folder:
        export_kwargs['folder'] = folder
    if file_name_prefix:
        export_kwargs['fileNamePrefix'] = file_name_prefix

    task = ee.batch.Export.image.toDrive(**export_kwargs)
    task.start()

    print(f"  ✓ Export task '{description}' submitted (id: {task.id})")
    return task


def download_composite(
    image: ee.Image,
    region: ee.Geometry,
    output_path: str,
    scale: float = 10,
    crs: str = 'EPSG:4326'
) -> Optional[str]:
    """
    Download a visualized image as a GeoTIFF.

    Parameters:
    -----------
    image : ee.Image
        Image to download (typically the 3-band visualized composite)
    region : ee.Geometry
        Region to download; its bounding box is used
    output_path : str
        Path of the GeoTIFF to write
    scale : float
        Resolution in meters (default: 10)
    crs : str
        Coordinate reference system (default: 'EPSG:4326')

    Returns:
    --------
    Optional[str] : The written file path, or None if the download failed
    """
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    filename = os.path.basename(output_path)
    print(f"Downloading {filename}...")

    try:
        url = image.getDownloadURL({
            'scale': scale,
            'crs': crs,
            'region': region.bounds(),
            'format': 'GEO_TIFF'
        })

        response = requests.get(url, stream=True, timeout=300)
        response.raise_for_status()

        content = response.content

        # A zipped response must hold the whole composite as a single .tif
        if zipfile.is_zipfile(io.BytesIO(content)):
            with zipfile.ZipFile(io.BytesIO(content)) as z:
                tif_files = sorted(name for name in z.namelist() if name.endswith('.tif'))
                if not tif_files:
                    print(f"  ✗ No .tif files found in downloaded zip for {filename}")
                    return None
                if len(tif_files) > 1:
                    print(f"  ✗ Expected one .tif in downloaded zip for {filename}, got {len(tif_files)}: {tif_files}")
                    return None
                content = z.read(tif_files[0])

        with open(output_path, 'wb') as f:
            f.write(content)

    except Exception as e:
        print(f"  ✗ Error downloading {filename}: {str(e)}")
        return None

    print(f"  ✓ Saved composite to {output_path}")
    return output_path
