"""
Base-32 geohash encoding, neighbour lookup and prefix-range helpers.

The document store has no geo queries, only lexicographic ranges on a single
field. A place's 9-char geohash is stored on the document; "everything within
R meters" becomes a block of 7-char prefix ranges: the cell containing the
point plus enough surrounding cells to hold the whole search circle. One
prefix alone misses points just across a cell edge.

A 7-char cell is ~153m tall everywhere but only ~153m * cos(lat) wide, so
the block is sized per query latitude. Near the equator a 150m search is the
cell plus its 8 neighbours; at Seoul it needs two columns on each side.

Geohash characters are ordered by ASCII, so string order on hashes matches
numeric order of the interleaved bits and prefix ranges can be expressed as
half-open string ranges [prefix, successor(prefix)).
"""

from __future__ import annotations

import math
from typing import Optional

from placemap_geo.config import get_settings
from placemap_geo.errors import InvalidGeohash, SearchRadiusUnsupported
from placemap_geo.geo import EARTH_RADIUS_M

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {ch: i for i, ch in enumerate(BASE32)}

# (d_lat, d_lng) steps, in the order neighbours are returned
_DIRECTIONS = (
    (1, 0),    # N
    (1, 1),    # NE
    (0, 1),    # E
    (-1, 1),   # SE
    (-1, 0),   # S
    (-1, -1),  # SW
    (0, -1),   # W
    (1, -1),   # NW
)


def encode(lat: float, lng: float, precision: Optional[int] = None) -> str:
    """Encode a validated coordinate. Longitude takes the first (even) bit."""
    if precision is None:
        precision = get_settings().spatial.geohash_precision
    if precision < 1:
        raise ValueError(f"Geohash precision must be >= 1, got {precision}")

    lat_lo, lat_hi = -90.0, 90.0
    lng_lo, lng_hi = -180.0, 180.0
    chars: list[str] = []
    value = 0
    bit_count = 0
    even = True

    while len(chars) < precision:
        if even:
            mid = (lng_lo + lng_hi) / 2
            if lng >= mid:
                value = (value << 1) | 1
                lng_lo = mid
            else:
                value <<= 1
                lng_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            if lat >= mid:
                value = (value << 1) | 1
                lat_lo = mid
            else:
                value <<= 1
                lat_hi = mid
        even = not even
        bit_count += 1

        if bit_count == 5:
            chars.append(BASE32[value])
            value = 0
            bit_count = 0

    return "".join(chars)


def decode_bbox(geohash: str) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lng_min, lng_max) of the hash's cell."""
    if not geohash:
        raise InvalidGeohash("Empty geohash")

    lat_lo, lat_hi = -90.0, 90.0
    lng_lo, lng_hi = -180.0, 180.0
    even = True

    for ch in geohash.lower():
        try:
            value = _DECODE_MAP[ch]
        except KeyError:
            raise InvalidGeohash(f"Invalid geohash character {ch!r} in {geohash!r}") from None

        for shift in range(4, -1, -1):
            bit = (value >> shift) & 1
            if even:
                mid = (lng_lo + lng_hi) / 2
                if bit:
                    lng_lo = mid
                else:
                    lng_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if bit:
                    lat_lo = mid
                else:
                    lat_hi = mid
            even = not even

    return lat_lo, lat_hi, lng_lo, lng_hi


def decode(geohash: str) -> tuple[float, float]:
    """Center (lat, lng) of the hash's cell."""
    lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(geohash)
    return (lat_lo + lat_hi) / 2, (lng_lo + lng_hi) / 2


def _adjacent(geohash: str, d_lat: int, d_lng: int) -> str:
    lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(geohash)
    lat = (lat_lo + lat_hi) / 2 + d_lat * (lat_hi - lat_lo)
    lng = (lng_lo + lng_hi) / 2 + d_lng * (lng_hi - lng_lo)

    # Stepping over a pole lands in the same row on the opposite meridian
    if lat > 90.0:
        lat = 180.0 - lat
        lng += 180.0
    elif lat < -90.0:
        lat = -180.0 - lat
        lng += 180.0

    lng = (lng + 180.0) % 360.0 - 180.0
    return encode(lat, lng, len(geohash))


def neighbors(geohash: str) -> list[str]:
    """The 8 same-precision neighbours, ordered N, NE, E, SE, S, SW, W, NW."""
    return [_adjacent(geohash, d_lat, d_lng) for d_lat, d_lng in _DIRECTIONS]


def cell_size_deg(precision: int) -> tuple[float, float]:
    """(height, width) in degrees of a cell at this precision."""
    bits = precision * 5
    lat_bits, lng_bits = bits // 2, (bits + 1) // 2
    return 180.0 / (1 << lat_bits), 360.0 / (1 << lng_bits)


def search_rings(lat: float, radius_meters: float, precision: int) -> tuple[int, int]:
    """
    Rows and columns of cells needed on each side of the point's own cell so
    that every point within radius_meters falls inside the block.

    The circle spans at most radius/R radians of latitude, and at most
    asin(sin(radius/R) / cos(lat)) of longitude. A point anywhere in its cell
    plus that offset lands at most ceil(offset / cell size) cells away.
    """
    cell_h, cell_w = cell_size_deg(precision)
    angle = radius_meters / EARTH_RADIUS_M
    cos_lat = math.cos(math.radians(lat))
    if math.sin(angle) >= cos_lat:
        raise SearchRadiusUnsupported(lat, radius_meters, f"A {radius_meters}m circle at latitude {lat} covers a pole")

    d_lat = math.degrees(angle)
    d_lng = math.degrees(math.asin(math.sin(angle) / cos_lat))
    return max(1, math.ceil(d_lat / cell_h)), max(1, math.ceil(d_lng / cell_w))


def prefixes_for_nearby_search(lat: float, lng: float, radius_meters: Optional[float] = None) -> list[str]:
    """
    Search-precision prefix of the point's hash, its 8 neighbours, then any
    further cells needed to cover radius_meters (default: max_nearby_radius_m).
    Raises SearchRadiusUnsupported when the block would exceed max_search_rings.
    """
    spatial = get_settings().spatial
    if radius_meters is None:
        radius_meters = spatial.max_nearby_radius_m
    prefix = encode(lat, lng, spatial.geohash_precision)[: spatial.search_prefix_length]

    rows, cols = search_rings(lat, radius_meters, len(prefix))
    if max(rows, cols) > spatial.max_search_rings:
        raise SearchRadiusUnsupported(
            lat, radius_meters,
            f"A {radius_meters}m search at latitude {lat} needs {rows}x{cols} rings "
            f"(max {spatial.max_search_rings})",
        )

    prefixes = [prefix, *neighbors(prefix)]
    for d_lat in range(rows, -rows - 1, -1):
        for d_lng in range(-cols, cols + 1):
            if abs(d_lat) <= 1 and abs(d_lng) <= 1:
                continue
            prefixes.append(_adjacent(prefix, d_lat, d_lng))
    # Cells reflected across a pole can repeat
    return list(dict.fromkeys(prefixes))


def prefix_successor(prefix: str) -> Optional[str]:
    """
    Smallest hash string greater than every string starting with prefix.
    None when the prefix is all 'z' (no upper bound).
    """
    chars = list(prefix.lower())
    while chars:
        value = _DECODE_MAP.get(chars[-1])
        if value is None:
            raise InvalidGeohash(f"Invalid geohash character {chars[-1]!r} in {prefix!r}")
        if value < len(BASE32) - 1:
            chars[-1] = BASE32[value + 1]
            return "".join(chars)
        chars.pop()
    return None


def prefix_range(prefix: str) -> tuple[str, Optional[str]]:
    """Half-open [lower, upper) range matching every hash that starts with prefix."""
    return prefix, prefix_successor(prefix)
