"""Exceptions raised by the cell grouping service."""


class CellGroupsError(Exception):
    """Base class for all service errors."""


class DatasetLoadError(CellGroupsError):
    """The geometry dataset could not be located, extracted or read."""


class NotLoadedError(CellGroupsError):
    """An update arrived before the geometry dataset finished loading."""

    def __init__(self, message: str = "Geometry dataset not loaded"):
        super().__init__(message)


class AlreadyLoadedError(CellGroupsError):
    """The geometry dataset is loaded once per process."""
