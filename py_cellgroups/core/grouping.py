"""
Connected grouping of free cells.

Free cells form an undirected graph where an edge joins two cells whose
bounding boxes are adjacent. Each connected component is one free group.
"""

from typing import Iterable, List

import numpy as np
import structlog

from .adjacency import adjacency_mask
from .bounding_boxes import BoundingBoxTable

logger = structlog.get_logger()


def group_free_cells(free_cells: Iterable[str], table: BoundingBoxTable) -> List[List[str]]:
    """
    Partition free cells into maximal connected groups.

    Cells are seeded in free-list order. From each seed a stack traversal pops
    a frontier cell, appends it to the group and pushes every unvisited free
    cell adjacent to it, scanning in free-list order and marking cells visited
    as they are pushed. Cells without a bounding box never join any group.

    The scan for each popped cell is a single vectorised comparison against
    all candidate boxes, so the total cost stays O(F^2) in the number of free
    cells with a box, which is fine for a few thousand cells.

    Args:
        free_cells: Free cell identifiers in state order (duplicates allowed)
        table: Bounding box table

    Returns:
        Groups in discovery order, members in the order they were popped
    """
    # first occurrence wins; later duplicates would be skipped as visited anyway
    candidates = list(dict.fromkeys(cell for cell in free_cells if cell in table))
    if not candidates:
        return []

    boxes = np.array([table[cell] for cell in candidates], dtype=float)
    visited = np.zeros(len(candidates), dtype=bool)
    groups: List[List[str]] = []

    for seed in range(len(candidates)):
        if visited[seed]:
            continue

        visited[seed] = True
        stack = [seed]
        group = []

        while stack:
            current = stack.pop()
            group.append(candidates[current])

            reachable = np.flatnonzero(~visited & adjacency_mask(table[candidates[current]], boxes))
            visited[reachable] = True
            stack.extend(reachable.tolist())

        groups.append(group)

    logger.debug("Free cells grouped", free_cells=len(candidates), groups=len(groups))
    return groups
