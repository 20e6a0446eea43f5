"""
FastAPI service exposing the spatial layer to the place-management UI and
the admin import job.

Endpoints:
  POST /places/classify               - Duplicate check before creating a place
  GET  /cells                         - Grid cells covering a viewport
  GET  /nearby                        - Active places within a radius (nearby context)
  GET  /places/viewport               - Active places in a viewport
  POST /places/{place_id}/create      - Create a place (index keys computed here)
  POST /places/{place_id}/reactivate  - Reactivate a deleted place with fresh data
  GET  /health                        - Store health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from placemap_geo.config import get_settings
from placemap_geo.duplicates import classify_for_creation
from placemap_geo.errors import (
    InvalidBounds,
    InvalidCoordinate,
    InvalidPlaceState,
    PlaceAlreadyExists,
    PlaceNotFound,
    SearchRadiusUnsupported,
    StoreUnavailable,
    TooManyCells,
)
from placemap_geo.grid import cells_for_viewport
from placemap_geo.models import (
    CandidateResponse,
    CellsResponse,
    ClassifyRequest,
    ClassifyResponse,
    HealthResponse,
    MapBounds,
    NearbyResponse,
    Place,
    PlaceInput,
    ViewportPlacesResponse,
)
from placemap_geo.places import create_place, reactivate_place
from placemap_geo.queries import active_places_in_viewport, nearby_active_places
from placemap_geo.scheduler import start_scheduler, stop_scheduler
from placemap_geo.store import DocumentStore, create_store

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: open the store (+ migrations on Postgres), start backfill scheduler. Shutdown: reverse."""
    logger.info("Starting up API server...")
    store = create_store()
    await store.open()
    if get_settings().store.backend == "postgres":
        from placemap_geo.db import run_migrations

        try:
            await run_migrations()
        except StoreUnavailable as e:
            logger.warning("Migration failed (may already exist): %s", e)
    app.state.store = store
    start_scheduler(store)
    yield
    stop_scheduler()
    await store.close()
    logger.info("API server shut down.")


# ── App ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="PlaceMap Geo API",
    description="Viewport cells, nearby places and duplicate detection for the shared place map",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


# ── Error handlers ────────────────────────────────────────────────────

@app.exception_handler(InvalidCoordinate)
@app.exception_handler(InvalidBounds)
async def _invalid_input(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(SearchRadiusUnsupported)
async def _radius_unsupported(request: Request, exc: SearchRadiusUnsupported):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailable)
async def _store_unavailable(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable while serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Place store unavailable, retry later"})


@app.exception_handler(PlaceAlreadyExists)
async def _already_exists(request: Request, exc: PlaceAlreadyExists):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PlaceNotFound)
async def _not_found(request: Request, exc: PlaceNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidPlaceState)
async def _invalid_state(request: Request, exc: InvalidPlaceState):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Helpers ───────────────────────────────────────────────────────────

def _bounds(
    sw_lat: float = Query(..., description="South-west latitude"),
    sw_lng: float = Query(..., description="South-west longitude"),
    ne_lat: float = Query(..., description="North-east latitude"),
    ne_lng: float = Query(..., description="North-east longitude"),
) -> MapBounds:
    return MapBounds.from_corners(sw_lat, sw_lng, ne_lat, ne_lng)


# ══════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ══════════════════════════════════════════════════════════════════════

@app.post("/places/classify", response_model=ClassifyResponse)
async def classify_place(body: ClassifyRequest, store: DocumentStore = Depends(get_store)):
    """
    Classify a place the user is about to add:
      EXISTING_ACTIVE     -> offer "go to existing place"
      EXISTING_DELETED    -> offer reactivation or abort
      PROBABLE_DUPLICATE  -> show the nearest similar place, ask yes/no
      NO_DUPLICATE        -> create
    """
    decision = await classify_for_creation(store, body.lat, body.lng, body.name, body.place_id)
    return ClassifyResponse(
        state=decision.state,
        existing_place_id=decision.existing_place_id,
        existing_status=decision.existing_status,
        candidate=CandidateResponse.from_candidate(decision.candidate) if decision.candidate else None,
    )


@app.get("/cells", response_model=CellsResponse)
async def viewport_cells(bounds: MapBounds = Depends(_bounds)):
    """Grid cells covering the viewport, or zoom_in when there are too many."""
    cells = cells_for_viewport(bounds)
    if cells is None:
        return CellsResponse(cells=None, zoom_in=True)
    return CellsResponse(cells=cells)


@app.get("/nearby", response_model=NearbyResponse)
async def nearby_places(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Longitude"),
    radius_m: Optional[float] = Query(None, gt=0, description="Search radius in meters"),
    exclude: Optional[str] = Query(None, description="Place id to leave out"),
    store: DocumentStore = Depends(get_store),
):
    """Active places around a point, nearest first."""
    spatial = get_settings().spatial
    if radius_m is None:
        radius_m = spatial.nearby_context_radius_m
    if radius_m > spatial.max_nearby_radius_m:
        raise HTTPException(400, f"radius_m must be <= {spatial.max_nearby_radius_m}")

    candidates = await nearby_active_places(store, lat, lng, radius_m, exclude_place_id=exclude)
    return NearbyResponse(
        places=[CandidateResponse.from_candidate(c) for c in candidates],
        total=len(candidates),
        center_lat=lat,
        center_lng=lng,
        radius_meters=radius_m,
    )


@app.get("/places/viewport", response_model=ViewportPlacesResponse)
async def viewport_places(
    bounds: MapBounds = Depends(_bounds),
    store: DocumentStore = Depends(get_store),
):
    """Active places inside the viewport's grid cells."""
    try:
        places = await active_places_in_viewport(store, bounds)
    except TooManyCells as e:
        logger.debug("Viewport query skipped: %s", e)
        return ViewportPlacesResponse(zoom_in=True)
    return ViewportPlacesResponse(places=places, total=len(places))


@app.post("/places/{place_id}/create", response_model=Place, status_code=201)
async def add_place(place_id: str, body: PlaceInput, store: DocumentStore = Depends(get_store)):
    return await create_place(store, place_id, body)


@app.post("/places/{place_id}/reactivate", response_model=Place)
async def reactivate(place_id: str, body: PlaceInput, store: DocumentStore = Depends(get_store)):
    return await reactivate_place(store, place_id, body)


@app.get("/health", response_model=HealthResponse)
async def health_check(store: DocumentStore = Depends(get_store)):
    backend = get_settings().store.backend
    try:
        await store.get_by_key(get_settings().store.places_collection, "__health__")
        return HealthResponse(status="ok", store_backend=backend)
    except StoreUnavailable as e:
        logger.error("Health check failed: %s", e)
        return HealthResponse(status="error", store_backend=backend)
