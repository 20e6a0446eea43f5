"""
Incremental map marker maintenance for one open map view.

Marker objects are expensive to build, so a controller keeps them keyed by
placeId and only creates/destroys the difference when the place list changes.
Visibility is recomputed when the viewport settles (end of pan/zoom), using a
plain rectangle test against the bounds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

from placemap_geo.grid import cell_keys_for_bounds
from placemap_geo.models import MapBounds, Place

logger = logging.getLogger(__name__)


class MarkerHandle(Protocol):
    def set_visible(self, visible: bool) -> None:
        ...

    def remove(self) -> None:
        ...


MarkerFactory = Callable[[Place], MarkerHandle]


@dataclass
class MarkerDiff:
    created: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)


class MarkerVisibilityController:
    """Owns the placeId -> marker map of a single map session."""

    def __init__(self, marker_factory: MarkerFactory):
        self._factory = marker_factory
        self._markers: dict[str, MarkerHandle] = {}
        self._places: dict[str, Place] = {}
        self._bounds: Optional[MapBounds] = None
        self._zoomed_out = False

    @property
    def markers(self) -> dict[str, MarkerHandle]:
        return dict(self._markers)

    def marker_for(self, place_id: str) -> Optional[MarkerHandle]:
        return self._markers.get(place_id)

    def sync(self, places: Iterable[Place]) -> MarkerDiff:
        """Reconcile rendered markers with a new place list."""
        incoming = {p.place_id: p for p in places}
        diff = MarkerDiff()

        for place_id in list(self._markers):
            if place_id not in incoming:
                self._markers.pop(place_id).remove()
                self._places.pop(place_id, None)
                diff.removed.append(place_id)

        for place_id, place in incoming.items():
            self._places[place_id] = place
            if place_id in self._markers:
                diff.kept.append(place_id)
                continue
            marker = self._factory(place)
            self._markers[place_id] = marker
            diff.created.append(place_id)
            if self._zoomed_out:
                marker.set_visible(False)
            elif self._bounds is not None:
                marker.set_visible(self._bounds.contains(place.lat, place.lng))

        logger.debug("Marker sync: +%d -%d =%d", len(diff.created), len(diff.removed), len(diff.kept))
        return diff

    def on_viewport_settled(self, bounds: MapBounds) -> int:
        """
        Apply visibility for the settled viewport. Returns the number of visible markers.
        A viewport past the cell cap hides everything.
        """
        if cell_keys_for_bounds(bounds) is None:
            self._bounds = None
            self._zoomed_out = True
            for marker in self._markers.values():
                marker.set_visible(False)
            logger.debug("Viewport too zoomed out, hid %d markers", len(self._markers))
            return 0

        self._bounds = bounds
        self._zoomed_out = False
        visible = 0
        for place_id, marker in self._markers.items():
            place = self._places[place_id]
            shown = bounds.contains(place.lat, place.lng)
            marker.set_visible(shown)
            visible += shown
        return visible

    def clear(self) -> None:
        """Destroy every marker (map view closed)."""
        for marker in self._markers.values():
            marker.remove()
        self._markers.clear()
        self._places.clear()
        self._bounds = None
        self._zoomed_out = False
