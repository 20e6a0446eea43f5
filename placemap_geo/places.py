"""
Place document parsing and the write paths that keep index keys in sync.

Every write that sets coordinates goes through compute_index_keys, so cellId
and geohash always match (lat, lng) for documents written by this module.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from placemap_geo.config import get_settings
from placemap_geo.errors import InvalidPlaceState, PlaceAlreadyExists, PlaceNotFound
from placemap_geo.indexing import compute_index_keys
from placemap_geo.models import Place, PlaceInput, PlaceStatus
from placemap_geo.store import Document, DocumentStore

logger = logging.getLogger(__name__)


def _collection() -> str:
    return get_settings().store.places_collection


def place_from_document(doc: Document) -> Place:
    """The document key is authoritative for placeId."""
    return Place.model_validate({**doc.data, "placeId": doc.key})


def parse_places(documents: Iterable[Document]) -> list[Place]:
    """
    Validate documents into Place models.
    Skips malformed (e.g. legacy, coordinate-less) documents with a warning.
    """
    places = []
    for doc in documents:
        try:
            places.append(place_from_document(doc))
        except ValidationError as e:
            logger.warning("Skipping malformed place document %s: %s", doc.key, e)
    return places


async def _update_existing(store: DocumentStore, collection: str, place_id: str, fields: dict) -> None:
    """Merge fields; a document deleted since it was read is PlaceNotFound."""
    try:
        await store.update(collection, place_id, fields)
    except KeyError:
        raise PlaceNotFound(place_id) from None


async def get_place(store: DocumentStore, place_id: str) -> Optional[Place]:
    doc = await store.get_by_key(_collection(), place_id)
    return place_from_document(doc) if doc is not None else None


async def create_place(store: DocumentStore, place_id: str, data: PlaceInput) -> Place:
    """Create an active place. Raises PlaceAlreadyExists if the id is taken."""
    collection = _collection()
    if await store.get_by_key(collection, place_id) is not None:
        raise PlaceAlreadyExists(place_id)

    keys = compute_index_keys(data.lat, data.lng)
    place = Place(
        place_id=place_id,
        name=data.name,
        lat=data.lat,
        lng=data.lng,
        status=PlaceStatus.ACTIVE,
        cell_id=keys.cell_id,
        geohash=keys.geohash,
        address=data.address,
        category=data.category,
        category_code=data.category_code,
        source=data.source,
        created_by=data.created_by,
        registered_by=[data.created_by] if data.created_by else [],
    )
    await store.put(collection, place_id, place.to_document())
    logger.info("Created place %s (%s) cell=%s geohash=%s",
                place_id, data.name, keys.cell_id, keys.geohash)
    return place


async def reactivate_place(store: DocumentStore, place_id: str, data: PlaceInput) -> Place:
    """
    Bring a deleted place back with fresh data.
    Overwrites every mutable field and flips status to active; only valid for
    deleted places.
    """
    collection = _collection()
    doc = await store.get_by_key(collection, place_id)
    if doc is None:
        raise PlaceNotFound(place_id)

    status = doc.data.get("status", PlaceStatus.ACTIVE.value)
    if status != PlaceStatus.DELETED.value:
        raise InvalidPlaceState(f"Place {place_id} is {status}, only deleted places can be reactivated")

    keys = compute_index_keys(data.lat, data.lng)
    fields = {
        "name": data.name,
        "lat": data.lat,
        "lng": data.lng,
        "address": data.address,
        "category": data.category,
        "categoryCode": data.category_code,
        "source": data.source,
        "status": PlaceStatus.ACTIVE.value,
        "cellId": keys.cell_id,
        "geohash": keys.geohash,
    }
    registered_by = list(doc.data.get("registeredBy") or [])
    if data.created_by and data.created_by not in registered_by:
        registered_by.append(data.created_by)
        fields["registeredBy"] = registered_by

    await _update_existing(store, collection, place_id, fields)
    logger.info("Reactivated place %s (%s)", place_id, data.name)
    return place_from_document(Document(key=place_id, data={**doc.data, **fields}))


async def move_place(store: DocumentStore, place_id: str, lat: float, lng: float) -> Place:
    """Coordinate edit: recomputes cellId and geohash together with lat/lng."""
    collection = _collection()
    doc = await store.get_by_key(collection, place_id)
    if doc is None:
        raise PlaceNotFound(place_id)

    keys = compute_index_keys(lat, lng)
    fields = {"lat": lat, "lng": lng, "cellId": keys.cell_id, "geohash": keys.geohash}
    await _update_existing(store, collection, place_id, fields)
    logger.info("Moved place %s to (%.6f, %.6f)", place_id, lat, lng)
    return place_from_document(Document(key=place_id, data={**doc.data, **fields}))
