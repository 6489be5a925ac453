# hotspot_sync/event_bus.py
"""
Publish/subscribe channel between the entity store and UI observers.

Listeners are called synchronously in subscription order. A listener that
raises is logged and skipped; the remaining listeners still run and the
emitting operation is never aborted.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from hotspot_sync.models import Hotspot
from hotspot_sync.settings import logger


class StoreEvent(str, Enum):
    SLIDE_CHANGED = "slideChanged"
    HOTSPOT_CREATED = "hotspotCreated"
    HOTSPOT_UPDATED = "hotspotUpdated"
    HOTSPOT_POSITION_CHANGED = "hotspotPositionChanged"
    HOTSPOT_DELETED = "hotspotDeleted"
    HOTSPOT_SELECTION_CHANGED = "hotspotSelectionChanged"
    HOTSPOTS_REORDERED = "hotspotsReordered"


# ---- payloads ----

@dataclass(frozen=True)
class SlideChanged:
    slide_id: str
    previous_slide_id: Optional[str]
    hotspots: List[Hotspot] = field(default_factory=list)


@dataclass(frozen=True)
class HotspotCreated:
    hotspot: Hotspot


@dataclass(frozen=True)
class HotspotUpdated:
    hotspot: Hotspot
    previous: Hotspot
    updates: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class HotspotPositionChanged:
    hotspot_id: str
    slide_id: str
    position: Tuple[float, float]


@dataclass(frozen=True)
class HotspotDeleted:
    hotspot: Hotspot


@dataclass(frozen=True)
class HotspotSelectionChanged:
    selected_id: Optional[str]
    previous_id: Optional[str]
    hotspot: Optional[Hotspot]


@dataclass(frozen=True)
class HotspotsReordered:
    slide_id: str
    from_index: int
    to_index: int
    hotspots: List[Hotspot] = field(default_factory=list)


PAYLOAD_TYPES = {
    StoreEvent.SLIDE_CHANGED: SlideChanged,
    StoreEvent.HOTSPOT_CREATED: HotspotCreated,
    StoreEvent.HOTSPOT_UPDATED: HotspotUpdated,
    StoreEvent.HOTSPOT_POSITION_CHANGED: HotspotPositionChanged,
    StoreEvent.HOTSPOT_DELETED: HotspotDeleted,
    StoreEvent.HOTSPOT_SELECTION_CHANGED: HotspotSelectionChanged,
    StoreEvent.HOTSPOTS_REORDERED: HotspotsReordered,
}

Listener = Callable[[object], None]


class Subscription:
    """Handle returned by EventBus.subscribe(); cancel() is idempotent."""

    def __init__(self, bus: "EventBus", event: StoreEvent, listener: Listener):
        self._bus = bus
        self.event = event
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False


class EventBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: Dict[StoreEvent, List[Subscription]] = {}

    def subscribe(self, event, listener: Listener) -> Subscription:
        event = StoreEvent(event)
        sub = Subscription(self, event, listener)
        with self._lock:
            self._subscriptions.setdefault(event, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.event, [])
            if sub in subs:
                subs.remove(sub)

    def listener_count(self, event=None) -> int:
        with self._lock:
            if event is None:
                return sum(len(s) for s in self._subscriptions.values())
            return len(self._subscriptions.get(StoreEvent(event), []))

    def emit(self, event: StoreEvent, payload) -> int:
        """Deliver to every listener; returns how many raised."""
        expected = PAYLOAD_TYPES[event]
        if not isinstance(payload, expected):
            raise TypeError(f"{event.value} expects {expected.__name__}, got {type(payload).__name__}")

        with self._lock:
            subs = list(self._subscriptions.get(event, []))

        failures = 0
        for sub in subs:
            try:
                sub.listener(payload)
            except Exception:
                failures += 1
                logger.exception(f"Error in event listener for {event.value}")
        return failures

    def clear(self) -> None:
        with self._lock:
            for subs in self._subscriptions.values():
                for sub in subs:
                    sub.active = False
            self._subscriptions.clear()
