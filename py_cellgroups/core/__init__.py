"""
Core occupancy and free-cell grouping functionality.
"""

from .bounding_boxes import BoundingBox, BoundingBoxTable, build_bounding_boxes, cell_ids
from .adjacency import adjacent, boxes_adjacent
from .grouping import group_free_cells
from .occupancy import Area, OccupancyManager, OccupancyState, StatePublisher
from .errors import CellGroupsError, DatasetLoadError, NotLoadedError, AlreadyLoadedError

__all__ = ['BoundingBox', 'BoundingBoxTable', 'build_bounding_boxes', 'cell_ids',
           'adjacent', 'boxes_adjacent', 'group_free_cells',
           'Area', 'OccupancyManager', 'OccupancyState', 'StatePublisher',
           'CellGroupsError', 'DatasetLoadError', 'NotLoadedError', 'AlreadyLoadedError']
