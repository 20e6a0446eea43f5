"""
Data models for places and the spatial layer.

Places are pydantic models (they round-trip through the document store with
camelCase field names). Transient geometry values produced and consumed inside
a single request are frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────────────────

class PlaceStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    DELETED = "deleted"


class DuplicateState(str, Enum):
    EXISTING_ACTIVE = "EXISTING_ACTIVE"
    EXISTING_DELETED = "EXISTING_DELETED"
    PROBABLE_DUPLICATE = "PROBABLE_DUPLICATE"
    NO_DUPLICATE = "NO_DUPLICATE"


# ── Transient geometry ────────────────────────────────────────────────

@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True)
class MapBounds:
    sw: LatLng
    ne: LatLng

    @classmethod
    def from_corners(cls, sw_lat: float, sw_lng: float, ne_lat: float, ne_lng: float) -> "MapBounds":
        return cls(sw=LatLng(sw_lat, sw_lng), ne=LatLng(ne_lat, ne_lng))

    def contains(self, lat: float, lng: float) -> bool:
        return self.sw.lat <= lat <= self.ne.lat and self.sw.lng <= lng <= self.ne.lng


@dataclass(frozen=True)
class IndexKeys:
    cell_id: str
    geohash: str


@dataclass(frozen=True)
class SpatialCandidate:
    place_id: str
    name: str
    lat: float
    lng: float
    distance_meters: float


# ── Places ────────────────────────────────────────────────────────────

class Place(BaseModel):
    """A place document. cell_id/geohash are absent on rows created before indexing."""
    place_id: str = Field(..., alias="placeId")
    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    status: PlaceStatus = PlaceStatus.ACTIVE
    cell_id: Optional[str] = Field(None, alias="cellId")
    geohash: Optional[str] = None
    address: Optional[str] = None
    category: Optional[str] = None
    category_code: Optional[str] = Field(None, alias="categoryCode")
    source: Optional[str] = None
    created_by: Optional[str] = Field(None, alias="createdBy")
    registered_by: list[str] = Field(default_factory=list, alias="registeredBy")

    model_config = {"populate_by_name": True, "extra": "allow", "use_enum_values": False}

    @property
    def is_indexed(self) -> bool:
        return bool(self.cell_id) and bool(self.geohash)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class PlaceInput(BaseModel):
    """Fresh data for creating or reactivating a place."""
    name: str = Field(..., min_length=1, max_length=200)
    lat: float
    lng: float
    address: Optional[str] = None
    category: Optional[str] = None
    category_code: Optional[str] = Field(None, alias="categoryCode")
    source: Optional[str] = None
    created_by: Optional[str] = Field(None, alias="createdBy")

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class CreationDecision:
    state: DuplicateState
    existing_place_id: Optional[str] = None
    existing_status: Optional[PlaceStatus] = None
    candidate: Optional[SpatialCandidate] = None

    @property
    def may_create(self) -> bool:
        """Creation can go ahead without asking (a probable duplicate needs a human yes/no)."""
        return self.state == DuplicateState.NO_DUPLICATE


# ── API request/response models ───────────────────────────────────────

class ClassifyRequest(BaseModel):
    place_id: str = Field(..., alias="placeId", min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    lat: float
    lng: float

    model_config = {"populate_by_name": True}


class CandidateResponse(BaseModel):
    place_id: str
    name: str
    lat: float
    lng: float
    distance_meters: float

    @classmethod
    def from_candidate(cls, c: SpatialCandidate) -> "CandidateResponse":
        return cls(
            place_id=c.place_id,
            name=c.name,
            lat=c.lat,
            lng=c.lng,
            distance_meters=round(c.distance_meters, 2),
        )


class ClassifyResponse(BaseModel):
    state: DuplicateState
    existing_place_id: Optional[str] = None
    existing_status: Optional[PlaceStatus] = None
    candidate: Optional[CandidateResponse] = None


class CellsResponse(BaseModel):
    cells: Optional[list[str]] = None
    zoom_in: bool = False


class NearbyResponse(BaseModel):
    places: list[CandidateResponse]
    total: int
    center_lat: float
    center_lng: float
    radius_meters: float


class ViewportPlacesResponse(BaseModel):
    places: list[Place] = Field(default_factory=list)
    total: int = 0
    zoom_in: bool = False


class HealthResponse(BaseModel):
    status: str = "ok"
    store_backend: str
