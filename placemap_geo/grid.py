"""
Fixed-size grid bucketing.

Each place carries a cellId of the form "<floor(lat/S)>_<floor(lng/S)>" so the
map can load a viewport with equality/IN queries. A viewport that expands past
the density cap is reported as None: the caller should ask the user to zoom in
instead of querying.
"""

from __future__ import annotations

import math
from typing import Iterator, Optional, Sequence

from placemap_geo.config import get_settings
from placemap_geo.errors import InvalidBounds
from placemap_geo.models import MapBounds


def _cell_size() -> float:
    return get_settings().spatial.cell_size_deg


def _cell_index(value: float, cell_size: float) -> int:
    return math.floor(value / cell_size)


def cell_key(lat: float, lng: float) -> str:
    """(37.5665, 126.978) -> "3756_12697"."""
    size = _cell_size()
    return f"{_cell_index(lat, size)}_{_cell_index(lng, size)}"


def validate_bounds(bounds: MapBounds) -> None:
    corners = (bounds.sw.lat, bounds.sw.lng, bounds.ne.lat, bounds.ne.lng)
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in corners):
        raise InvalidBounds(f"Bounds must be finite numbers: {bounds}")
    for corner in (bounds.sw, bounds.ne):
        if not (-90.0 <= corner.lat <= 90.0 and -180.0 <= corner.lng <= 180.0):
            raise InvalidBounds(f"Bounds corner out of range: {corner}")
    if bounds.sw.lat > bounds.ne.lat:
        raise InvalidBounds(f"South-west latitude {bounds.sw.lat} is above north-east {bounds.ne.lat}")
    if bounds.sw.lng > bounds.ne.lng:
        raise InvalidBounds(f"South-west longitude {bounds.sw.lng} is east of north-east {bounds.ne.lng}")


def cell_count_for_bounds(bounds: MapBounds) -> int:
    validate_bounds(bounds)
    size = _cell_size()
    lat_cells = _cell_index(bounds.ne.lat, size) - _cell_index(bounds.sw.lat, size) + 1
    lng_cells = _cell_index(bounds.ne.lng, size) - _cell_index(bounds.sw.lng, size) + 1
    return lat_cells * lng_cells


def cell_keys_for_bounds(bounds: MapBounds) -> Optional[list[str]]:
    """
    All cell keys covering the bounds, latitude-major.
    Returns None when the viewport spans more than max_cells_per_viewport cells.
    """
    max_cells = get_settings().spatial.max_cells_per_viewport
    if cell_count_for_bounds(bounds) > max_cells:
        return None

    size = _cell_size()
    min_lat = _cell_index(bounds.sw.lat, size)
    max_lat = _cell_index(bounds.ne.lat, size)
    min_lng = _cell_index(bounds.sw.lng, size)
    max_lng = _cell_index(bounds.ne.lng, size)

    return [
        f"{cell_lat}_{cell_lng}"
        for cell_lat in range(min_lat, max_lat + 1)
        for cell_lng in range(min_lng, max_lng + 1)
    ]


# Exposed to API callers under the viewport name
cells_for_viewport = cell_keys_for_bounds


def batched(keys: Sequence[str], size: Optional[int] = None) -> Iterator[list[str]]:
    """Split keys into IN-query sized batches."""
    size = size or get_settings().store.in_query_max_values
    for start in range(0, len(keys), size):
        yield list(keys[start:start + size])
