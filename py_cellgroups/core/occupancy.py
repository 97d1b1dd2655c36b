"""
Occupancy state management.

The manager owns the bounding box table, the ordered list of every known cell
and the current (all, occupied, free) triple. It starts unloaded, becomes
loaded once the geometry dataset has been read, and from then on each update
replaces the triple wholesale, regroups the free cells and publishes the new
state to every observer.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import structlog

from .bounding_boxes import DEFAULT_CELL_KEY, BoundingBoxTable, build_bounding_boxes, cell_ids
from .errors import AlreadyLoadedError, NotLoadedError
from .grouping import group_free_cells

logger = structlog.get_logger()

STATE_EVENT = "actualizacion-celdas"
DEFAULT_AREA_LABEL = "509188"


class StatePublisher(Protocol):
    """Outbound channel the manager notifies after every update."""

    def broadcast(self, event: str, payload: Any) -> None:
        ...


@dataclass(frozen=True)
class OccupancyState:
    """Immutable snapshot of every cell, the occupied cells and the free cells."""
    all_cells: Tuple[str, ...] = ()
    occupied: Tuple[str, ...] = ()
    free: Tuple[str, ...] = ()

    def to_payload(self) -> Dict[str, List[str]]:
        """Wire representation sent to observers."""
        return {
            "todas": list(self.all_cells),
            "ocupadas": list(self.occupied),
            "libres": list(self.free),
        }


@dataclass(frozen=True)
class Area:
    """Outward-facing packaging of one free group."""
    name: str
    reference: str
    members: List[str]

    @classmethod
    def from_group(cls, label: str, group: List[str]) -> "Area":
        return cls(name=label, reference=group[0], members=list(group))

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation; members travel as one comma separated string."""
        return {
            "NombreArea": self.name,
            "Referencia": self.reference,
            "Celdas": [", ".join(self.members)],
        }


def coerce_occupied(value: Any) -> List[str]:
    """
    Normalise an incoming occupied list.

    Anything other than a list or tuple counts as nothing occupied. Entries
    that are not strings, or are blank, can never name a cell and are dropped.
    """
    if not isinstance(value, (list, tuple)):
        return []
    return [cell for cell in value if isinstance(cell, str) and cell.strip()]


class OccupancyManager:
    """
    Holds the authoritative occupancy state and recomputes free groups.

    Only this class mutates the triple. Handlers get a reference to the
    manager instead of touching module level state.
    """

    def __init__(
        self,
        publisher: Optional[StatePublisher] = None,
        area_label: str = DEFAULT_AREA_LABEL,
        cell_key: str = DEFAULT_CELL_KEY,
    ):
        self.area_label = area_label
        self.cell_key = cell_key
        self._publisher = publisher
        self._table: Optional[BoundingBoxTable] = None
        self._all_cells: List[str] = []
        self._state = OccupancyState()

    @property
    def loaded(self) -> bool:
        return self._table is not None

    @property
    def state(self) -> OccupancyState:
        return self._state

    @property
    def all_cells(self) -> List[str]:
        return list(self._all_cells)

    @property
    def bounding_boxes(self) -> Mapping[str, Any]:
        """Read-only view of the bounding box table (empty until loaded)."""
        return MappingProxyType(self._table or {})

    def set_publisher(self, publisher: Optional[StatePublisher]) -> None:
        self._publisher = publisher

    def load(self, records: Iterable[Mapping[str, Any]]) -> None:
        """
        Build the bounding box table and the cell list from dataset records.

        This is the single Unloaded -> Loaded transition. The initial state
        has every cell free.

        Raises:
            AlreadyLoadedError: If a dataset was loaded before
        """
        if self.loaded:
            raise AlreadyLoadedError("Geometry dataset already loaded")

        records = list(records)
        all_cells = cell_ids(records, self.cell_key)
        table = build_bounding_boxes(records, self.cell_key)

        self._all_cells = all_cells
        self._state = OccupancyState(all_cells=tuple(all_cells), free=tuple(all_cells))
        self._table = table

        logger.info(
            "Dataset loaded",
            records=len(records),
            cells=len(all_cells),
            boxes=len(table),
        )

    def update(self, occupied: Any) -> List[Area]:
        """
        Replace the occupied set and recompute the free groups.

        Args:
            occupied: Sequence of occupied cell identifiers

        Returns:
            One Area per free group, in discovery order

        Raises:
            NotLoadedError: If the dataset is not loaded yet
        """
        if not self.loaded:
            raise NotLoadedError()

        occupied_cells = coerce_occupied(occupied)
        occupied_set = set(occupied_cells)
        free = [cell for cell in self._all_cells if cell not in occupied_set]

        self._state = OccupancyState(
            all_cells=tuple(self._all_cells),
            occupied=tuple(occupied_cells),
            free=tuple(free),
        )

        areas = self._areas_for(free)

        logger.info(
            "Occupancy updated",
            occupied=len(occupied_cells),
            free=len(free),
            areas=len(areas),
        )

        if self._publisher is not None:
            self._publisher.broadcast(STATE_EVENT, self._state.to_payload())

        return areas

    def current_areas(self) -> List[Area]:
        """Areas for the current free cells, without touching the state."""
        if not self.loaded:
            raise NotLoadedError()
        return self._areas_for(self._state.free)

    def _areas_for(self, free: Sequence[str]) -> List[Area]:
        groups = group_free_cells(free, self._table)
        return [Area.from_group(self.area_label, group) for group in groups]
