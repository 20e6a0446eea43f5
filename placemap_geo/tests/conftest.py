"""
Shared fixtures: an in-memory document store and a helper to seed place documents.
"""

from __future__ import annotations

import asyncio

import pytest

from placemap_geo.errors import StoreUnavailable
from placemap_geo.indexing import compute_index_keys
from placemap_geo.store import InMemoryDocumentStore

PLACES = "places"


class UnavailableStore(InMemoryDocumentStore):
    """Every read fails the way a timed-out backend would."""

    async def get_by_key(self, collection, key):
        raise StoreUnavailable("connection timed out")

    async def range_query(self, collection, field, lower, upper, equals=None):
        raise StoreUnavailable("connection timed out")

    async def in_query(self, collection, field, values, equals=None):
        raise StoreUnavailable("connection timed out")


def place_doc(name: str, lat: float, lng: float, status: str = "active", indexed: bool = True) -> dict:
    doc = {"name": name, "lat": lat, "lng": lng, "status": status}
    if indexed:
        keys = compute_index_keys(lat, lng)
        doc["cellId"] = keys.cell_id
        doc["geohash"] = keys.geohash
    return doc


@pytest.fixture
def unavailable_store() -> UnavailableStore:
    return UnavailableStore()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def add_place(store):
    def _add(place_id: str, name: str, lat: float, lng: float, status: str = "active", indexed: bool = True) -> dict:
        doc = {"placeId": place_id, **place_doc(name, lat, lng, status, indexed)}
        asyncio.run(store.put(PLACES, place_id, doc))
        return doc

    return _add
