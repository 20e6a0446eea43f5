"""CLI entrypoint for placemap_geo."""

from __future__ import annotations

import argparse
import asyncio
import json

from placemap_geo.logging_config import setup_logging


def main() -> None:
    setup_logging()

    parser = argparse.ArgumentParser(prog="placemap-geo")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")
    sub.add_parser("migrate")
    sub.add_parser("backfill")

    classify_parser = sub.add_parser("classify")
    classify_parser.add_argument("--place-id", required=True)
    classify_parser.add_argument("--name", required=True)
    classify_parser.add_argument("--lat", type=float, required=True)
    classify_parser.add_argument("--lng", type=float, required=True)

    cells_parser = sub.add_parser("cells")
    cells_parser.add_argument("sw_lat", type=float)
    cells_parser.add_argument("sw_lng", type=float)
    cells_parser.add_argument("ne_lat", type=float)
    cells_parser.add_argument("ne_lng", type=float)

    args = parser.parse_args()

    if args.command == "serve":
        _serve()
    elif args.command == "migrate":
        asyncio.run(_migrate())
    elif args.command == "backfill":
        asyncio.run(_backfill())
    elif args.command == "classify":
        asyncio.run(_classify(args.place_id, args.name, args.lat, args.lng))
    elif args.command == "cells":
        _cells(args.sw_lat, args.sw_lng, args.ne_lat, args.ne_lng)


def _serve() -> None:
    import uvicorn

    from placemap_geo.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "placemap_geo.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=(settings.env == "development"),
        log_level=settings.log_level.lower(),
    )


async def _migrate() -> None:
    from placemap_geo.db import close_pool, get_pool, run_migrations

    await get_pool()
    await run_migrations()
    await close_pool()
    print("Migrations applied successfully.")


async def _backfill() -> None:
    from placemap_geo.scheduler import run_once

    stats = await run_once()
    print(f"Index backfill completed: {stats}")


async def _classify(place_id: str, name: str, lat: float, lng: float) -> None:
    from placemap_geo.duplicates import classify_for_creation
    from placemap_geo.store import create_store

    store = create_store()
    await store.open()
    try:
        decision = await classify_for_creation(store, lat, lng, name, place_id)
    finally:
        await store.close()

    out = {
        "state": decision.state.value,
        "existing_place_id": decision.existing_place_id,
        "existing_status": decision.existing_status.value if decision.existing_status else None,
        "candidate": None,
    }
    if decision.candidate is not None:
        c = decision.candidate
        out["candidate"] = {
            "place_id": c.place_id,
            "name": c.name,
            "lat": c.lat,
            "lng": c.lng,
            "distance_meters": round(c.distance_meters, 2),
        }
    print(json.dumps(out, ensure_ascii=False, indent=2))


def _cells(sw_lat: float, sw_lng: float, ne_lat: float, ne_lng: float) -> None:
    from placemap_geo.grid import cells_for_viewport
    from placemap_geo.models import MapBounds

    cells = cells_for_viewport(MapBounds.from_corners(sw_lat, sw_lng, ne_lat, ne_lng))
    if cells is None:
        print("Too many cells for this viewport; zoom in.")
        return
    print(f"{len(cells)} cells:")
    for cell in cells:
        print(f"  {cell}")


if __name__ == "__main__":
    main()
