"""Shared fixtures for the cell grouping tests."""

import zipfile

import geopandas as gpd
import pytest
from shapely.geometry import box, mapping


def make_record(cell, geometry, key="CELL_KEY_I"):
    """Build a GeoJSON-like record the way the dataset loader yields them."""
    return {
        "properties": {key: cell},
        "geometry": mapping(geometry) if geometry is not None else None,
    }


class RecordingPublisher:
    """Publisher double that keeps every broadcast."""

    def __init__(self):
        self.messages = []

    def broadcast(self, event, payload):
        self.messages.append((event, payload))


@pytest.fixture
def scenario_records():
    """A and B touch at the corner (1, 1); C is isolated."""
    return [
        make_record("A", box(0, 0, 1, 1)),
        make_record("B", box(1, 1, 2, 2)),
        make_record("C", box(5, 5, 6, 6)),
    ]


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def write_dataset_zip(tmp_path):
    """Write cells to a zipped shapefile and return the archive path."""

    def _write(cells, geometries, name="cells", directory=None):
        directory = directory or tmp_path / "data"
        directory.mkdir(parents=True, exist_ok=True)
        shp_dir = tmp_path / f"{name}_shp"
        shp_dir.mkdir(exist_ok=True)

        frame = gpd.GeoDataFrame({"CELL_KEY_I": cells}, geometry=geometries, crs="EPSG:4326")
        frame.to_file(shp_dir / f"{name}.shp")

        archive = directory / f"{name}.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            for path in shp_dir.iterdir():
                zf.write(path, arcname=path.name)
        return archive

    return _write
