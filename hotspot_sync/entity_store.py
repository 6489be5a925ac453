# hotspot_sync/entity_store.py
"""
Authoritative in-memory state for one open project: slide -> hotspot maps,
active slide, selection, and the queue of changes not yet persisted.

Every mutation goes through this class. Reads always see the latest local
state; the row store catches up when the sync policy flushes the queue.
"""

import functools
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from hotspot_sync.base_utils import generate_id
from hotspot_sync.change_queue import ChangeQueue
from hotspot_sync.errors import CapacityExceeded, NotFound, NotInitialized, ValidationError
from hotspot_sync.event_bus import (
    EventBus,
    HotspotCreated,
    HotspotDeleted,
    HotspotPositionChanged,
    HotspotSelectionChanged,
    HotspotsReordered,
    HotspotUpdated,
    SlideChanged,
    StoreEvent,
    Subscription,
)
from hotspot_sync.models import HOTSPOT_FIELDS, ChangeAction, ChangeRecord, Hotspot, utcnow
from hotspot_sync.scheduler import MonotonicClock
from hotspot_sync.settings import MAX_HOTSPOTS_PER_SLIDE, logger
from hotspot_sync.validation import validate_hotspot

# Owned by the store; callers cannot set them through create/update.
_MANAGED_FIELDS = {"slide_id", "order", "created_at", "updated_at"}


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class EntityStore:
    def __init__(
        self,
        adapter=None,
        bus: Optional[EventBus] = None,
        clock=None,
        max_hotspots: int = MAX_HOTSPOTS_PER_SLIDE,
    ):
        self.adapter = adapter
        self.bus = bus if bus is not None else EventBus()
        self.clock = clock if clock is not None else MonotonicClock()
        self.queue = ChangeQueue(self.clock.now)
        self.max_hotspots = max_hotspots

        # request threads mutate, the flush guard thread reads
        self._lock = threading.RLock()
        self._slides: Dict[str, Dict[str, Hotspot]] = {}
        self._slide_of: Dict[str, str] = {}
        self._retired_ids: set[str] = set()

        self.active_slide_id: Optional[str] = None
        self.selected_hotspot_id: Optional[str] = None

        self._sync = None

    def attach_sync_policy(self, policy) -> None:
        self._sync = policy

    def subscribe(self, event, listener) -> Subscription:
        return self.bus.subscribe(event, listener)

    # -----------------------
    # Slides
    # -----------------------

    @_locked
    def set_active_slide(self, slide_id: str) -> None:
        if not slide_id:
            raise ValidationError("Slide ID is required")
        if slide_id == self.active_slide_id:
            return

        previous = self.active_slide_id
        if previous is not None and self._sync is not None:
            try:
                self._sync.before_slide_switch(previous)
            except Exception:
                logger.exception(f"Flush of slide {previous} before switching failed")

        self.active_slide_id = slide_id
        self.selected_hotspot_id = None
        self._slides.setdefault(slide_id, {})

        self.bus.emit(
            StoreEvent.SLIDE_CHANGED,
            SlideChanged(slide_id=slide_id, previous_slide_id=previous, hotspots=self.get_slide_hotspots(slide_id)),
        )

    @_locked
    def load_slide_hotspots(self, slide_id: str) -> List[Hotspot]:
        """Replace the local map of a slide with what the row store holds."""
        if self.adapter is None:
            raise NotInitialized("EntityStore has no persistence adapter")
        if self.queue.pending_for_slide(slide_id):
            logger.warning(f"Slide {slide_id} has unsaved changes; keeping local hotspots")
            return self.get_slide_hotspots(slide_id)

        loaded = self.adapter.get_hotspots_by_slide(slide_id)
        for hid in list(self._slides.get(slide_id, {})):
            self._slide_of.pop(hid, None)
        self._slides[slide_id] = {h.id: h for h in loaded}
        for h in loaded:
            self._slide_of[h.id] = slide_id
        self._renumber(slide_id)

        hotspots = self.get_slide_hotspots(slide_id)
        if slide_id == self.active_slide_id:
            self.bus.emit(
                StoreEvent.SLIDE_CHANGED,
                SlideChanged(slide_id=slide_id, previous_slide_id=slide_id, hotspots=hotspots),
            )
        return hotspots

    @_locked
    def get_slide_hotspots(self, slide_id: str) -> List[Hotspot]:
        return [h.snapshot() for h in self._ordered(slide_id)]

    @_locked
    def discard_slide(self, slide_id: str) -> int:
        """Forget a slide removed from the project, along with its queued changes."""
        hotspots = self._slides.pop(slide_id, {})
        for hotspot_id in hotspots:
            self._slide_of.pop(hotspot_id, None)
            self._retired_ids.add(hotspot_id)

        dropped = self.queue.confirm(self.queue.pending_for_slide(slide_id))
        if self._sync is not None:
            self._sync.forget_slide(slide_id)

        if self.active_slide_id == slide_id:
            self.active_slide_id = None
            self.selected_hotspot_id = None
        return dropped

    # -----------------------
    # Hotspots
    # -----------------------

    @_locked
    def create_hotspot(self, config: Optional[dict] = None) -> Hotspot:
        slide_id = self._require_active_slide()
        slide = self._slides[slide_id]

        if len(slide) >= self.max_hotspots:
            raise CapacityExceeded(slide_id, self.max_hotspots)

        config = dict(config or {})
        self._check_fields(config, allow_id=True)

        hotspot_id = config.pop("id", None) or generate_id("hotspot")
        if hotspot_id in self._slide_of or hotspot_id in self._retired_ids:
            raise ValidationError("Hotspot validation failed", [f"Hotspot ID {hotspot_id} is already in use"])

        now = utcnow()
        hotspot = Hotspot(
            **{
                **config,
                "id": hotspot_id,
                "slide_id": slide_id,
                "order": len(slide),
                "created_at": now,
                "updated_at": now,
            }
        )
        validate_hotspot(hotspot)

        slide[hotspot_id] = hotspot
        self._slide_of[hotspot_id] = slide_id

        snap = hotspot.snapshot()
        self.bus.emit(StoreEvent.HOTSPOT_CREATED, HotspotCreated(hotspot=snap))
        self._queue_change(ChangeAction.CREATE, slide_id, snap)
        return snap

    @_locked
    def update_hotspot(self, hotspot_id: str, updates: Optional[dict] = None) -> Hotspot:
        slide_id, current = self._locate(hotspot_id)
        updates = dict(updates or {})
        self._check_fields(updates, allow_id=False)

        previous = current.snapshot()
        candidate = replace(current, **updates, updated_at=utcnow())
        # raises before anything is stored: no partial application
        validate_hotspot(candidate)

        self._slides[slide_id][hotspot_id] = candidate

        snap = candidate.snapshot()
        self.bus.emit(
            StoreEvent.HOTSPOT_UPDATED,
            HotspotUpdated(hotspot=snap, previous=previous, updates=updates),
        )
        self._queue_change(ChangeAction.UPDATE, slide_id, snap, previous=previous)
        return snap

    @_locked
    def update_hotspot_position(self, hotspot_id: str, position: Tuple[float, float]) -> Optional[Hotspot]:
        """
        Drag fast path: no validation (the caller clamps to 0..100) and the
        change goes through the short position debounce.
        """
        found = self._find(hotspot_id)
        if found is None:
            logger.warning(f"Hotspot {hotspot_id} not found, ignoring position change")
            return None
        slide_id, current = found

        x, y = position
        moved = replace(current, x=float(x), y=float(y), updated_at=utcnow())
        self._slides[slide_id][hotspot_id] = moved

        self.bus.emit(
            StoreEvent.HOTSPOT_POSITION_CHANGED,
            HotspotPositionChanged(hotspot_id=hotspot_id, slide_id=slide_id, position=(moved.x, moved.y)),
        )

        if self._sync is not None:
            self._sync.position_changed(hotspot_id, slide_id)
        else:
            self.queue.record(ChangeAction.UPDATE, slide_id, moved.snapshot())
        return moved.snapshot()

    @_locked
    def commit_position(self, hotspot_id: str) -> Optional[ChangeRecord]:
        """Queue the current position of a dragged hotspot once its debounce window closes."""
        found = self._find(hotspot_id)
        if found is None:
            return None
        slide_id, current = found
        return self.queue.record(ChangeAction.UPDATE, slide_id, current.snapshot())

    @_locked
    def delete_hotspot(self, hotspot_id: str) -> bool:
        slide_id, current = self._locate(hotspot_id)

        del self._slides[slide_id][hotspot_id]
        del self._slide_of[hotspot_id]
        self._retired_ids.add(hotspot_id)
        self._renumber(slide_id)

        if self.selected_hotspot_id == hotspot_id:
            self.select_hotspot(None)

        snap = current.snapshot()
        self.bus.emit(StoreEvent.HOTSPOT_DELETED, HotspotDeleted(hotspot=snap))
        self._queue_change(ChangeAction.DELETE, slide_id, snap)
        return True

    @_locked
    def reorder_hotspot(self, hotspot_id: str, from_index: int, to_index: int) -> bool:
        """Move the hotspot at from_index to to_index; out-of-range indexes are ignored."""
        slide_id, _ = self._locate(hotspot_id)
        ordered = self._ordered(slide_id)

        n = len(ordered)
        if from_index < 0 or to_index < 0 or from_index >= n or to_index >= n:
            return False

        moved = ordered.pop(from_index)
        ordered.insert(to_index, moved)

        slide = self._slides[slide_id]
        for index, hotspot in enumerate(ordered):
            if hotspot.order != index:
                slide[hotspot.id] = replace(hotspot, order=index, updated_at=utcnow())

        reordered = self.get_slide_hotspots(slide_id)
        self._queue_change(ChangeAction.REORDER, slide_id, reordered)
        self.bus.emit(
            StoreEvent.HOTSPOTS_REORDERED,
            HotspotsReordered(slide_id=slide_id, from_index=from_index, to_index=to_index, hotspots=reordered),
        )
        return True

    @_locked
    def select_hotspot(self, hotspot_id: Optional[str]) -> bool:
        previous = self.selected_hotspot_id

        hotspot = None
        if hotspot_id is not None:
            hotspot = self.get_hotspot(hotspot_id)
            if hotspot is None:
                logger.warning(f"Hotspot {hotspot_id} not found, cannot select")
                return False

        self.selected_hotspot_id = hotspot_id
        self.bus.emit(
            StoreEvent.HOTSPOT_SELECTION_CHANGED,
            HotspotSelectionChanged(selected_id=hotspot_id, previous_id=previous, hotspot=hotspot),
        )
        return True

    # -----------------------
    # Reads
    # -----------------------

    @_locked
    def get_hotspot(self, hotspot_id: str) -> Optional[Hotspot]:
        """Lookup within the active slide."""
        if self.active_slide_id is None:
            return None
        hotspot = self._slides.get(self.active_slide_id, {}).get(hotspot_id)
        return hotspot.snapshot() if hotspot else None

    def get_selected_hotspot(self) -> Optional[Hotspot]:
        return self.get_hotspot(self.selected_hotspot_id) if self.selected_hotspot_id else None

    def slide_ids(self) -> List[str]:
        return list(self._slides)

    @_locked
    def get_statistics(self) -> dict:
        return {
            "total_slides": len(self._slides),
            "active_slide": self.active_slide_id,
            "hotspots_in_active_slide": len(self._slides.get(self.active_slide_id, {})) if self.active_slide_id else 0,
            "selected_hotspot": self.selected_hotspot_id,
            "pending_changes": len(self.queue),
            "max_hotspots_per_slide": self.max_hotspots,
        }

    # -----------------------
    # Lifecycle
    # -----------------------

    @_locked
    def clear(self) -> None:
        self._slides.clear()
        self._slide_of.clear()
        self.active_slide_id = None
        self.selected_hotspot_id = None
        self.queue.clear()
        if self._sync is not None:
            self._sync.reset()

    def destroy(self) -> None:
        if self._sync is not None and not self._sync.flush_all():
            logger.warning(
                f"Final save failed, discarding {len(self.queue)} unsaved changes: {self._sync.last_error}"
            )
        self.clear()
        self.bus.clear()

    # -----------------------
    # Internals
    # -----------------------

    def _require_active_slide(self) -> str:
        if self.active_slide_id is None:
            raise NotInitialized("No active slide set")
        return self.active_slide_id

    def _find(self, hotspot_id: str) -> Optional[Tuple[str, Hotspot]]:
        slide_id = self._slide_of.get(hotspot_id)
        if slide_id is None:
            return None
        return slide_id, self._slides[slide_id][hotspot_id]

    def _locate(self, hotspot_id: str) -> Tuple[str, Hotspot]:
        found = self._find(hotspot_id)
        if found is None:
            raise NotFound("hotspot", hotspot_id)
        return found

    def _ordered(self, slide_id: str) -> List[Hotspot]:
        return sorted(self._slides.get(slide_id, {}).values(), key=lambda h: h.order)

    def _renumber(self, slide_id: str) -> None:
        slide = self._slides[slide_id]
        for index, hotspot in enumerate(self._ordered(slide_id)):
            if hotspot.order != index:
                slide[hotspot.id] = replace(hotspot, order=index)

    def _check_fields(self, values: dict, allow_id: bool) -> None:
        errors = [f"Unknown field '{k}'" for k in sorted(values) if k not in HOTSPOT_FIELDS]
        blocked = _MANAGED_FIELDS if allow_id else _MANAGED_FIELDS | {"id"}
        errors += [f"Field '{k}' cannot be set directly" for k in sorted(values) if k in blocked]
        if errors:
            raise ValidationError("Hotspot validation failed", errors)

    def _queue_change(self, action: ChangeAction, slide_id: str, entity, previous: Optional[Hotspot] = None) -> ChangeRecord:
        record = self.queue.record(action, slide_id, entity, previous=previous)
        if self._sync is not None:
            self._sync.change_queued(record)
        return record
