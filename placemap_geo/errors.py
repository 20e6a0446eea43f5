"""
Exception hierarchy for the spatial layer.

Coordinate and bounds errors are caller contract violations and are raised
before any index math. StoreUnavailable wraps every backend failure so that an
outage is never mistaken for "no candidates".
"""

from __future__ import annotations


class PlaceMapGeoError(Exception):
    """Base class for all errors raised by placemap_geo."""


class InvalidCoordinate(PlaceMapGeoError, ValueError):
    def __init__(self, lat: float, lng: float, message: str | None = None):
        self.lat = lat
        self.lng = lng
        super().__init__(message or f"Invalid coordinate ({lat}, {lng})")


class InvalidBounds(PlaceMapGeoError, ValueError):
    pass


class InvalidGeohash(PlaceMapGeoError, ValueError):
    pass


class SearchRadiusUnsupported(PlaceMapGeoError, ValueError):
    """The radius reaches too many search cells at this latitude (or covers a pole)."""

    def __init__(self, lat: float, radius_meters: float, message: str | None = None):
        self.lat = lat
        self.radius_meters = radius_meters
        super().__init__(message or f"Cannot search {radius_meters}m around latitude {lat}")


class TooManyCells(PlaceMapGeoError):
    """Viewport covers more grid cells than the density cap; the map should zoom in."""

    def __init__(self, cell_count: int, max_cells: int):
        self.cell_count = cell_count
        self.max_cells = max_cells
        super().__init__(f"Viewport covers {cell_count} cells (max {max_cells}); zoom in")


class StoreUnavailable(PlaceMapGeoError):
    """The backing document store failed or timed out."""


class PlaceAlreadyExists(PlaceMapGeoError):
    def __init__(self, place_id: str):
        self.place_id = place_id
        super().__init__(f"Place {place_id} already exists")


class PlaceNotFound(PlaceMapGeoError):
    def __init__(self, place_id: str):
        self.place_id = place_id
        super().__init__(f"Place {place_id} not found")


class InvalidPlaceState(PlaceMapGeoError):
    pass
