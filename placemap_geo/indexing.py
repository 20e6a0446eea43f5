"""
Write-time index keys and the backfill job for legacy documents.

cellId and geohash are pure functions of (lat, lng). They are stored only
because the document store cannot query coordinates directly, so they are
computed at every coordinate write and never edited on their own.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from placemap_geo.config import get_settings
from placemap_geo.errors import InvalidCoordinate
from placemap_geo.geo import validate_coordinate
from placemap_geo.geohash import encode
from placemap_geo.grid import cell_key
from placemap_geo.models import IndexKeys
from placemap_geo.store import DocumentStore

logger = logging.getLogger(__name__)


def compute_index_keys(lat: float, lng: float) -> IndexKeys:
    validate_coordinate(lat, lng)
    return IndexKeys(
        cell_id=cell_key(lat, lng),
        geohash=encode(lat, lng, get_settings().spatial.geohash_precision),
    )


def _coordinates(data: dict) -> Optional[tuple[float, float]]:
    lat, lng = data.get("lat"), data.get("lng")
    # bool is an int subclass; a stray True is not a coordinate
    if isinstance(lat, bool) or isinstance(lng, bool):
        return None
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return float(lat), float(lng)


async def backfill_index_keys(
    store: DocumentStore,
    limit: Optional[int] = None,
) -> dict:
    """
    Add cellId/geohash to place documents that lack either one.
    Documents without usable coordinates are counted as failed and left as-is.
    Returns stats dict.
    """
    settings = get_settings()
    collection = settings.store.places_collection
    if limit is None:
        limit = settings.scheduler.batch_size

    stats = {"total": 0, "updated": 0, "skipped": 0, "failed": 0}

    documents = await store.scan(collection)
    stats["total"] = len(documents)

    for doc in documents:
        if doc.data.get("cellId") and doc.data.get("geohash"):
            stats["skipped"] += 1
            continue

        if limit and stats["updated"] >= limit:
            logger.info("Backfill write limit (%d) reached, remaining documents left for next run", limit)
            break

        coords = _coordinates(doc.data)
        if coords is None:
            stats["failed"] += 1
            logger.warning("Place %s has no usable coordinates, cannot index", doc.key)
            continue

        try:
            keys = compute_index_keys(*coords)
        except InvalidCoordinate as e:
            stats["failed"] += 1
            logger.warning("Place %s: %s", doc.key, e)
            continue

        await store.update(collection, doc.key, {"cellId": keys.cell_id, "geohash": keys.geohash})
        stats["updated"] += 1

    logger.info("Index backfill complete: %s", stats)
    return stats
