"""
Bounding box precomputation for cell geometries.

Every record of the geometry dataset carries a cell identifier attribute and a
GeoJSON-like geometry. Boxes are computed once when the dataset is loaded and
are then only read by the adjacency test and the grouping engine.
"""

import math
from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional

import numpy as np
import structlog

logger = structlog.get_logger()

DEFAULT_CELL_KEY = "CELL_KEY_I"


class BoundingBox(NamedTuple):
    """Axis-aligned envelope of a cell geometry."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float


# cell identifier -> bounding box
BoundingBoxTable = Dict[str, BoundingBox]


def cell_identifier(record: Mapping[str, Any], key: str = DEFAULT_CELL_KEY) -> Optional[str]:
    """
    Extract the trimmed cell identifier of a record.

    Returns None when the attribute is missing, null or blank.
    """
    properties = record.get("properties") or {}
    value = properties.get(key)
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return str(value).strip() or None


def cell_ids(records: Iterable[Mapping[str, Any]], key: str = DEFAULT_CELL_KEY) -> List[str]:
    """Identifiers of all records in record order, blanks dropped, duplicates kept."""
    ids = []
    for record in records:
        cell = cell_identifier(record, key)
        if cell:
            ids.append(cell)
    return ids


def _is_position(value: Sequence[Any]) -> bool:
    return len(value) >= 2 and isinstance(value[0], Real) and isinstance(value[1], Real)


def iter_positions(coordinates: Any) -> Iterator[Sequence[Any]]:
    """
    Walk a nested coordinate structure and yield each position.

    Positions are the innermost numeric sequences; any Z/M components after
    the first two are carried along untouched.
    """
    if coordinates is None or isinstance(coordinates, (str, bytes)):
        return
    if not isinstance(coordinates, Sequence) and not isinstance(coordinates, np.ndarray):
        return
    if len(coordinates) == 0:
        return
    if _is_position(coordinates):
        yield coordinates
        return
    for item in coordinates:
        yield from iter_positions(item)


def geometry_positions(geometry: Any) -> List[Sequence[Any]]:
    """Collect every position of a GeoJSON-like geometry (collections included)."""
    geometry = getattr(geometry, "__geo_interface__", geometry)
    if not isinstance(geometry, Mapping):
        return []

    if geometry.get("type") == "GeometryCollection":
        positions = []
        for member in geometry.get("geometries") or []:
            positions.extend(geometry_positions(member))
        return positions

    return list(iter_positions(geometry.get("coordinates")))


def bounding_box(geometry: Any) -> Optional[BoundingBox]:
    """Compute the bounding box of a geometry, or None if it has no positions."""
    positions = geometry_positions(geometry)
    if not positions:
        return None

    xy = np.array([(position[0], position[1]) for position in positions], dtype=float)
    min_x, min_y = xy.min(axis=0)
    max_x, max_y = xy.max(axis=0)
    return BoundingBox(float(min_x), float(min_y), float(max_x), float(max_y))


def build_bounding_boxes(
    records: Iterable[Mapping[str, Any]],
    key: str = DEFAULT_CELL_KEY,
) -> BoundingBoxTable:
    """
    Build the bounding box table for a sequence of geometry records.

    Records without an identifier or without geometry are skipped silently.
    When an identifier repeats, the box of the later record replaces the
    earlier one.

    Args:
        records: Records shaped like GeoJSON features
                 ({"properties": {...}, "geometry": {...}})
        key: Name of the identifier attribute

    Returns:
        Mapping of cell identifier to its bounding box
    """
    table: BoundingBoxTable = {}
    skipped = 0
    duplicates = 0

    for record in records:
        cell = cell_identifier(record, key)
        geometry = record.get("geometry")
        if not cell or geometry is None:
            skipped += 1
            continue

        box = bounding_box(geometry)
        if box is None:
            skipped += 1
            continue

        if cell in table:
            duplicates += 1
        table[cell] = box

    if duplicates:
        logger.warning("Duplicate cell identifiers, later boxes kept", duplicates=duplicates)

    logger.debug("Bounding boxes computed", boxes=len(table), skipped=skipped)
    return table
