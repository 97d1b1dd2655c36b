#!/usr/bin/env python3
"""
Visualize the free groups of a cell dataset.

Every cell is drawn as its bounding box: free cells are coloured by the group
they belong to, occupied cells are grey.

Usage:
    python visualize_groups.py data/cells.zip --occupied 101 102 --output groups.png
"""

import argparse
import tempfile
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from py_cellgroups.core.occupancy import OccupancyManager
from py_cellgroups.dataset.loader import read_shapefile_zip


def visualize_groups(archive, occupied=None, output="groups.png"):
    """Render the dataset's groups to a PNG file."""
    with tempfile.TemporaryDirectory() as scratch:
        records = read_shapefile_zip(Path(archive), Path(scratch))

    manager = OccupancyManager()
    manager.load(records)
    areas = manager.update(occupied or [])
    boxes = manager.bounding_boxes

    print(f"Loaded {len(manager.all_cells)} cells, {len(boxes)} with geometry")
    print(f"Occupied: {len(manager.state.occupied)}  Free: {len(manager.state.free)}  Groups: {len(areas)}")

    fig, ax = plt.subplots(figsize=(12, 10))
    cmap = plt.get_cmap("tab20")

    group_of = {}
    for index, area in enumerate(areas):
        for cell in area.members:
            group_of[cell] = index

    for cell, box in boxes.items():
        if cell in group_of:
            color = cmap(group_of[cell] % cmap.N)
            alpha = 0.7
        else:
            color = "#999999"
            alpha = 0.4
        ax.add_patch(Rectangle(
            (box.min_x, box.min_y),
            box.max_x - box.min_x,
            box.max_y - box.min_y,
            facecolor=color,
            edgecolor="black",
            linewidth=0.3,
            alpha=alpha,
        ))

    for index, area in enumerate(areas):
        ref = boxes[area.reference]
        ax.annotate(
            str(index + 1),
            ((ref.min_x + ref.max_x) / 2, (ref.min_y + ref.max_y) / 2),
            ha="center", va="center", fontsize=7,
        )

    ax.autoscale_view()
    ax.set_aspect("equal")
    ax.set_title(f"{len(areas)} free groups")

    plt.tight_layout()
    plt.savefig(output, dpi=150)
    plt.close(fig)
    print(f"Saved visualization to {output}")


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Visualize free cell groups")
    parser.add_argument("archive", help="ZIP archive holding the shapefile")
    parser.add_argument("--occupied", nargs="*", default=[], help="Occupied cell identifiers")
    parser.add_argument("--output", default="groups.png", help="Output PNG path")
    args = parser.parse_args()

    visualize_groups(args.archive, args.occupied, args.output)


if __name__ == "__main__":
    main()
