"""
Bounding box adjacency test.

Two cells are adjacent when their boxes overlap or touch on both axes. This is
a coarse proxy for polygon adjacency: it only rejects definite separation, so
boxes that overlap around polygons which do not actually touch still count.
"""

import numpy as np

from .bounding_boxes import BoundingBox, BoundingBoxTable


def boxes_adjacent(a: BoundingBox, b: BoundingBox) -> bool:
    """Check whether two boxes overlap or share an edge or corner."""
    return not (
        a.max_x < b.min_x
        or a.min_x > b.max_x
        or a.max_y < b.min_y
        or a.min_y > b.max_y
    )


def adjacent(cell_a: str, cell_b: str, table: BoundingBoxTable) -> bool:
    """
    Check whether two cells are adjacent.

    Both identifiers must be present in the table; callers filter out cells
    without a box beforehand.
    """
    return boxes_adjacent(table[cell_a], table[cell_b])


def adjacency_mask(box: BoundingBox, boxes: np.ndarray) -> np.ndarray:
    """
    Vectorised form of boxes_adjacent against many boxes at once.

    Args:
        box: Reference box
        boxes: (N, 4) array of [min_x, min_y, max_x, max_y] rows

    Returns:
        Boolean array of length N, True where the row is adjacent to box
    """
    return ~(
        (box.max_x < boxes[:, 0])
        | (box.min_x > boxes[:, 2])
        | (box.max_y < boxes[:, 1])
        | (box.min_y > boxes[:, 3])
    )
