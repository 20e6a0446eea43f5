"""
Spatial queries over the document store.

Proximity: a block of 7-char geohash prefix ranges sized to the search radius
(the point's cell plus its ring, wider at high latitudes) issued concurrently,
deduplicated once all have returned, then filtered by exact haversine distance.

Viewport: bounds expand to grid cells, cells are looked up in IN batches of
at most 30.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from placemap_geo.config import get_settings
from placemap_geo.errors import TooManyCells
from placemap_geo.geo import distance_meters, validate_coordinate
from placemap_geo.geohash import prefix_range, prefixes_for_nearby_search
from placemap_geo.grid import batched, cell_count_for_bounds, cell_keys_for_bounds
from placemap_geo.models import MapBounds, Place, PlaceStatus, SpatialCandidate
from placemap_geo.places import parse_places
from placemap_geo.store import Document, DocumentStore

logger = logging.getLogger(__name__)

_ACTIVE = {"status": PlaceStatus.ACTIVE.value}


async def fetch_spatial_candidates(
    store: DocumentStore,
    lat: float,
    lng: float,
    radius_meters: Optional[float] = None,
) -> list[Place]:
    """
    Active places whose geohash falls in the block of search cells that covers
    radius_meters around (lat, lng). Every place within the radius is returned;
    farther ones may be too.
    A store failure in any of the range queries propagates as StoreUnavailable.
    """
    validate_coordinate(lat, lng)
    collection = get_settings().store.places_collection
    prefixes = prefixes_for_nearby_search(lat, lng, radius_meters)

    async def _scan(prefix: str) -> list[Document]:
        lower, upper = prefix_range(prefix)
        return await store.range_query(collection, "geohash", lower, upper, _ACTIVE)

    results = await asyncio.gather(*(_scan(p) for p in prefixes))

    # A document can sit in more than one range; keep the first copy
    unique: dict[str, Document] = {}
    for docs in results:
        for doc in docs:
            unique.setdefault(doc.key, doc)

    places = parse_places(unique.values())
    logger.debug("Nearby scan around (%.6f, %.6f): %d prefixes, %d unique candidates",
                 lat, lng, len(prefixes), len(places))
    return places


def to_candidates(places: list[Place], lat: float, lng: float) -> list[SpatialCandidate]:
    return [
        SpatialCandidate(
            place_id=p.place_id,
            name=p.name,
            lat=p.lat,
            lng=p.lng,
            distance_meters=distance_meters(lat, lng, p.lat, p.lng),
        )
        for p in places
    ]


def within_radius(candidates: list[SpatialCandidate], radius_meters: float) -> list[SpatialCandidate]:
    return [c for c in candidates if c.distance_meters <= radius_meters]


async def nearby_active_places(
    store: DocumentStore,
    lat: float,
    lng: float,
    radius_meters: Optional[float] = None,
    exclude_place_id: Optional[str] = None,
) -> list[SpatialCandidate]:
    """
    Active places within radius_meters of (lat, lng), nearest first.
    Defaults to the 100m "nearby context" radius. Radii above max_nearby_radius_m
    raise ValueError; SearchRadiusUnsupported when the latitude is too close to a pole.
    """
    spatial = get_settings().spatial
    if radius_meters is None:
        radius_meters = spatial.nearby_context_radius_m
    if not 0 < radius_meters <= spatial.max_nearby_radius_m:
        raise ValueError(
            f"radius_meters must be in (0, {spatial.max_nearby_radius_m}], got {radius_meters}"
        )

    places = await fetch_spatial_candidates(store, lat, lng, radius_meters)
    if exclude_place_id is not None:
        places = [p for p in places if p.place_id != exclude_place_id]

    candidates = within_radius(to_candidates(places, lat, lng), radius_meters)
    candidates.sort(key=lambda c: c.distance_meters)
    return candidates


async def active_places_in_viewport(store: DocumentStore, bounds: MapBounds) -> list[Place]:
    """
    Active places in the viewport's grid cells.
    Raises TooManyCells when the viewport is too zoomed out to query.
    """
    cells = cell_keys_for_bounds(bounds)
    if cells is None:
        raise TooManyCells(cell_count_for_bounds(bounds), get_settings().spatial.max_cells_per_viewport)

    collection = get_settings().store.places_collection
    batches = list(batched(cells))
    results = await asyncio.gather(
        *(store.in_query(collection, "cellId", batch, _ACTIVE) for batch in batches)
    )

    documents = [doc for docs in results for doc in docs]
    places = parse_places(documents)
    logger.debug("Viewport %s: %d cells in %d batches, %d places",
                 bounds, len(cells), len(batches), len(places))
    return places
