"""
Geometry dataset loading.

The dataset ships as a ZIP archive holding a shapefile (.shp/.shx/.dbf). It is
extracted into a scratch directory and read with GeoPandas into GeoJSON-like
records: {"properties": {...}, "geometry": {...} or None}.
"""

import asyncio
import shutil
import zipfile
from pathlib import Path
from typing import Any, Dict, List

import geopandas as gpd
import structlog

from ..core.errors import DatasetLoadError
from ..core.occupancy import OccupancyManager

logger = structlog.get_logger()


def locate_dataset_archive(data_dir: Path) -> Path:
    """
    Find the dataset archive in a directory.

    The first *.zip file (case-insensitive, by name) is used.

    Raises:
        DatasetLoadError: If the directory is missing or holds no archive
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise DatasetLoadError(f"Data directory not found: {data_dir}")

    try:
        archives = sorted(
            path for path in data_dir.iterdir()
            if path.is_file() and path.suffix.lower() == ".zip"
        )
    except OSError as e:
        raise DatasetLoadError(f"Cannot list data directory {data_dir}: {e}") from e

    if not archives:
        raise DatasetLoadError(f"No shapefile archive in {data_dir}")

    return archives[0]


def _reset_directory(directory: Path) -> None:
    try:
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DatasetLoadError(f"Cannot prepare extraction directory {directory}: {e}") from e


def extract_archive(archive: Path, extract_dir: Path) -> Path:
    """
    Extract an archive into a clean directory and return the .shp path.

    Raises:
        DatasetLoadError: If the archive is unreadable or holds no shapefile
    """
    extract_dir = Path(extract_dir)
    _reset_directory(extract_dir)

    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(extract_dir)
    except (zipfile.BadZipFile, OSError) as e:
        raise DatasetLoadError(f"Cannot extract {archive}: {e}") from e

    try:
        shapefiles = sorted(
            path for path in extract_dir.rglob("*")
            if path.is_file() and path.suffix.lower() == ".shp"
        )
    except OSError as e:
        raise DatasetLoadError(f"Cannot scan {extract_dir}: {e}") from e

    if not shapefiles:
        raise DatasetLoadError(f"No .shp file inside {archive}")

    shp_path = shapefiles[0]
    if not shp_path.with_suffix(".dbf").exists() and not shp_path.with_suffix(".DBF").exists():
        logger.warning("Shapefile has no attribute table", shp=str(shp_path))

    return shp_path


def read_shapefile(shp_path: Path) -> List[Dict[str, Any]]:
    """
    Read a shapefile into GeoJSON-like records.

    Null attribute values come back as None and null geometries as None.

    Raises:
        DatasetLoadError: If GeoPandas cannot read the file
    """
    try:
        frame = gpd.read_file(shp_path)
    except Exception as e:
        raise DatasetLoadError(f"Cannot read shapefile {shp_path}: {e}") from e

    return [
        {"properties": feature["properties"], "geometry": feature["geometry"]}
        for feature in frame.iterfeatures(na="null")
    ]


def read_shapefile_zip(archive: Path, extract_dir: Path) -> List[Dict[str, Any]]:
    """
    Extract a shapefile archive and read all of its records.

    Raises:
        DatasetLoadError: On any extraction or read failure, or if the
                          shapefile holds no records
    """
    shp_path = extract_archive(archive, extract_dir)
    records = read_shapefile(shp_path)
    if not records:
        raise DatasetLoadError(f"Shapefile {shp_path.name} has no records")

    logger.info("Shapefile read", archive=str(archive), shp=shp_path.name, records=len(records))
    return records


async def load_dataset(manager: OccupancyManager, data_dir: Path, extract_dir: Path) -> bool:
    """
    Locate, extract and read the dataset, then load it into the manager.

    File work runs in a worker thread; the manager is only touched once every
    record has been read. Failures are logged and leave the manager unloaded.

    Returns:
        True if the manager is now loaded
    """
    try:
        archive = locate_dataset_archive(data_dir)
        records = await asyncio.to_thread(read_shapefile_zip, archive, extract_dir)
        manager.load(records)
    except DatasetLoadError as e:
        logger.error("Failed to load geometry dataset", error=str(e))
        return False
    except Exception as e:
        logger.error("Unexpected error loading geometry dataset", error=str(e), exc_info=True)
        return False

    logger.info("Shapefile loaded and bounding boxes precomputed", cells=len(manager.all_cells))
    return True
