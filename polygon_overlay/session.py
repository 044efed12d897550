import ee
from typing import Optional

from .config import get_ee_project


def initialize_earth_engine(project: Optional[str] = None) -> None:
    """
    Authenticate and initialize the Earth Engine API.

    You'll need to run `earthengine authenticate` in your terminal first.

    Parameters:
    -----------
    project : Optional[str]
        Google Cloud project registered for Earth Engine.
        Falls back to the EE_PROJECT environment variable.
    """
    project = get_ee_project(project)
    try:
        if project:
            ee.Initialize(project=project)
        else:
            ee.Initialize()
    except Exception as e:
        print("Please authenticate the Earth Engine API by running 'earthengine authenticate' in your terminal.")
        print(e)
        raise
