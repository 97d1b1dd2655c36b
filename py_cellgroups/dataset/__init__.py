"""Geometry dataset loading."""

from .loader import (
    extract_archive,
    load_dataset,
    locate_dataset_archive,
    read_shapefile,
    read_shapefile_zip,
)

__all__ = [
    'extract_archive', 'load_dataset', 'locate_dataset_archive',
    'read_shapefile', 'read_shapefile_zip',
]
