"""
Duplicate detection for place creation.

Stages, each a plain function:
  1. check_existing    exact placeId lookup (active/hidden -> EXISTING_ACTIVE,
                       deleted -> EXISTING_DELETED)
  2. fetch             geohash ring scan of active places (queries module)
  3. filter_by_radius  exact haversine distance <= 30m
  4. filter_by_name    normalized name containment
  5. decide            nearest survivor -> PROBABLE_DUPLICATE, else NO_DUPLICATE

Only stage 1 blocks creation. A probable duplicate is a normal outcome that the
caller turns into a yes/no prompt.
"""

from __future__ import annotations

import logging
from typing import Optional

from placemap_geo.config import get_settings
from placemap_geo.geo import validate_coordinate
from placemap_geo.models import CreationDecision, DuplicateState, PlaceStatus, SpatialCandidate
from placemap_geo.names import is_similar
from placemap_geo.queries import fetch_spatial_candidates, to_candidates, within_radius
from placemap_geo.store import Document, DocumentStore

logger = logging.getLogger(__name__)


def check_existing(doc: Optional[Document]) -> Optional[CreationDecision]:
    """Terminal decision for an existing document, or None to continue."""
    if doc is None:
        return None

    raw_status = doc.data.get("status", PlaceStatus.ACTIVE.value)
    try:
        status = PlaceStatus(raw_status)
    except ValueError:
        logger.warning("Place %s has unknown status %r, treating as active", doc.key, raw_status)
        status = PlaceStatus.ACTIVE

    if status == PlaceStatus.DELETED:
        state = DuplicateState.EXISTING_DELETED
    else:
        # Hidden places exist too; the id cannot be registered again
        state = DuplicateState.EXISTING_ACTIVE
    return CreationDecision(state=state, existing_place_id=doc.key, existing_status=status)


def filter_by_radius(candidates: list[SpatialCandidate], threshold_m: Optional[float] = None) -> list[SpatialCandidate]:
    if threshold_m is None:
        threshold_m = get_settings().spatial.duplicate_threshold_m
    return within_radius(candidates, threshold_m)


def filter_by_name(candidates: list[SpatialCandidate], name: str) -> list[SpatialCandidate]:
    return [c for c in candidates if is_similar(c.name, name)]


def decide(candidates: list[SpatialCandidate]) -> CreationDecision:
    if not candidates:
        return CreationDecision(state=DuplicateState.NO_DUPLICATE)
    nearest = min(candidates, key=lambda c: c.distance_meters)
    return CreationDecision(state=DuplicateState.PROBABLE_DUPLICATE, candidate=nearest)


async def classify_for_creation(
    store: DocumentStore,
    lat: float,
    lng: float,
    name: str,
    candidate_id: str,
) -> CreationDecision:
    """
    Decide what to do with a place about to be created.
    Raises InvalidCoordinate before touching the store, and StoreUnavailable
    if any lookup fails.
    """
    validate_coordinate(lat, lng)
    settings = get_settings()
    collection = settings.store.places_collection

    existing = check_existing(await store.get_by_key(collection, candidate_id))
    if existing is not None:
        logger.info("Place %s already exists (%s)", candidate_id, existing.state.value)
        return existing

    places = await fetch_spatial_candidates(store, lat, lng, settings.spatial.duplicate_threshold_m)
    candidates = to_candidates(places, lat, lng)
    close = filter_by_radius(candidates)
    matching = filter_by_name(close, name)
    decision = decide(matching)

    logger.info(
        "Duplicate check for %s '%s' at (%.6f, %.6f): %d fetched, %d within radius, %d similar -> %s",
        candidate_id, name, lat, lng, len(candidates), len(close), len(matching), decision.state.value,
    )
    return decision
