"""
Occupancy tracking and free-cell grouping over a shapefile cell grid.
"""

__version__ = "0.1.0"
