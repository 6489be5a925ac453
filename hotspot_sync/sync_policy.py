# hotspot_sync/sync_policy.py
"""
Decides when queued store changes are written to the row store.

- Drags: one write per hotspot once its position has been still for the
  short debounce window.
- Everything else: one write per slide once the slide has been quiet for
  the coalescing window. The write carries the slide's full current list.
- Switching slides flushes the slide being left.
- A periodic timer retries whatever is still queued after a failure.
- At most one flush runs at a time across every policy sharing a FlushGate;
  requests made meanwhile are replayed once it finishes.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional, Tuple

from hotspot_sync.errors import NotInitialized, PersistenceFailure
from hotspot_sync.models import ChangeAction, ChangeRecord, utcnow
from hotspot_sync.scheduler import DebounceScheduler
from hotspot_sync.settings import (
    COALESCE_WINDOW_SECONDS,
    PERIODIC_FLUSH_SECONDS,
    POSITION_DEBOUNCE_SECONDS,
    logger,
)


class FlushGate:
    """
    Single-flush guard shared by every sync policy of a process.

    Flushes try the gate without blocking; a flush that finds it taken is
    deferred and replayed by whichever thread releases the gate. Manual saves
    and cascading deletes wait for it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deferred_lock = threading.Lock()
        # (policy, slide id) in request order
        self._deferred: Dict[Tuple["SyncPolicy", str], None] = {}

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def acquire(self) -> None:
        self._lock.acquire()

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the gate for a block; no flush of any policy runs inside it."""
        self._lock.acquire()
        try:
            yield
        finally:
            self._lock.release()
        self.drain()

    def defer(self, policy: "SyncPolicy", slide_id: str) -> None:
        with self._deferred_lock:
            self._deferred[(policy, slide_id)] = None

    def forget(self, policy: "SyncPolicy", slide_id: Optional[str] = None) -> None:
        with self._deferred_lock:
            for key in list(self._deferred):
                if key[0] is policy and (slide_id is None or key[1] == slide_id):
                    del self._deferred[key]

    def deferred_count(self) -> int:
        with self._deferred_lock:
            return len(self._deferred)

    def drain(self) -> None:
        while True:
            with self._deferred_lock:
                if not self._deferred:
                    return
                key = next(iter(self._deferred))
                del self._deferred[key]
            if not self._lock.acquire(blocking=False):
                # the current holder drains when it releases
                self.defer(*key)
                return
            policy, slide_id = key
            try:
                policy._flush_locked(slide_id)
            finally:
                self._lock.release()


class SyncPolicy:
    def __init__(
        self,
        store,
        adapter=None,
        scheduler: Optional[DebounceScheduler] = None,
        position_debounce: float = POSITION_DEBOUNCE_SECONDS,
        coalesce_window: float = COALESCE_WINDOW_SECONDS,
        periodic_interval: float = PERIODIC_FLUSH_SECONDS,
        auto_save: bool = True,
        gate: Optional[FlushGate] = None,
    ):
        self.store = store
        self.adapter = adapter if adapter is not None else store.adapter
        self.scheduler = scheduler if scheduler is not None else DebounceScheduler(store.clock)
        self.position_debounce = position_debounce
        self.coalesce_window = coalesce_window
        self.periodic_interval = periodic_interval
        self.auto_save = auto_save

        self.gate = gate if gate is not None else FlushGate()
        # hotspot id -> slide id, for drags whose window is still open
        self._dragging: Dict[str, str] = {}

        self.last_error: Optional[PersistenceFailure] = None
        self.last_saved_at: Optional[datetime] = None
        self._last_periodic = self.scheduler.clock.now()

        store.attach_sync_policy(self)

    # -----------------------
    # Hooks called by the store
    # -----------------------

    def change_queued(self, record: ChangeRecord) -> None:
        if not self.auto_save:
            return
        slide_id = record.slide_id
        self.scheduler.schedule(("slide", slide_id), self.coalesce_window, lambda: self._flush_quietly(slide_id))

    def position_changed(self, hotspot_id: str, slide_id: str) -> None:
        if not self.auto_save:
            self.store.commit_position(hotspot_id)
            return
        self._dragging[hotspot_id] = slide_id
        self.scheduler.schedule(
            ("position", hotspot_id),
            self.position_debounce,
            lambda: self._on_position_settled(hotspot_id),
        )

    def before_slide_switch(self, slide_id: str) -> bool:
        self._commit_positions(slide_id)
        if not self.store.queue.pending_for_slide(slide_id):
            return True
        return self.flush_slide(slide_id)

    def forget_slide(self, slide_id: str) -> None:
        self.scheduler.cancel(("slide", slide_id))
        for hotspot_id, owner in list(self._dragging.items()):
            if owner == slide_id:
                self.scheduler.cancel(("position", hotspot_id))
                self._dragging.pop(hotspot_id, None)
        self.gate.forget(self, slide_id)

    def reset(self) -> None:
        self.scheduler.clear()
        self._dragging.clear()
        self.gate.forget(self)
        self.last_error = None

    # -----------------------
    # Flushing
    # -----------------------

    def flush_slide(self, slide_id: str) -> bool:
        """
        Write the slide's queued changes. Returns False when the write failed
        or another flush was in flight (the slide is then replayed after it).
        """
        self._require_adapter()
        if not self.gate.try_acquire():
            self.gate.defer(self, slide_id)
            logger.debug(f"Flush in progress, slide {slide_id} will be flushed after it")
            return False
        try:
            ok = self._flush_locked(slide_id)
        finally:
            self.gate.release()
        self.gate.drain()
        return ok

    def flush_all(self) -> bool:
        """Manual save: commit open drags and write every slide with queued changes."""
        self._require_adapter()
        self._commit_positions()
        ok = True
        self.gate.acquire()
        try:
            for slide_id in self.store.queue.pending_slide_ids():
                ok = self._flush_locked(slide_id) and ok
        finally:
            self.gate.release()
        self.gate.drain()
        return ok

    def retry_pending(self) -> bool:
        ok = True
        for slide_id in self.store.queue.pending_slide_ids():
            ok = self._flush_quietly(slide_id) and ok
        return ok

    def tick(self) -> int:
        """Fire due timers, then retry queued changes if the periodic interval has elapsed."""
        fired = self.scheduler.run_due()
        now = self.scheduler.clock.now()
        if self.auto_save and now - self._last_periodic >= self.periodic_interval:
            self._last_periodic = now
            if len(self.store.queue):
                logger.info(f"Periodic save: {len(self.store.queue)} pending changes")
                self.retry_pending()
        return fired

    # -----------------------
    # State
    # -----------------------

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(len(self.store.queue) or self._dragging)

    def status(self) -> dict:
        return {
            "auto_save": self.auto_save,
            "has_unsaved_changes": self.has_unsaved_changes,
            "pending_changes": len(self.store.queue),
            "last_error": str(self.last_error) if self.last_error else None,
            "last_saved_at": self.last_saved_at.isoformat() if self.last_saved_at else None,
        }

    # -----------------------
    # Internals
    # -----------------------

    def _require_adapter(self) -> None:
        if self.adapter is None:
            raise NotInitialized("SyncPolicy has no persistence adapter")

    def _on_position_settled(self, hotspot_id: str) -> None:
        self._dragging.pop(hotspot_id, None)
        record = self.store.commit_position(hotspot_id)
        if record is not None:
            self._flush_quietly(record.slide_id)

    def _commit_positions(self, slide_id: Optional[str] = None) -> None:
        for hotspot_id, owner in list(self._dragging.items()):
            if slide_id is not None and owner != slide_id:
                continue
            self.scheduler.cancel(("position", hotspot_id))
            self._dragging.pop(hotspot_id, None)
            self.store.commit_position(hotspot_id)

    def _flush_quietly(self, slide_id: str) -> bool:
        try:
            return self.flush_slide(slide_id)
        except NotInitialized:
            logger.error(f"Cannot flush slide {slide_id}: no persistence adapter")
            return False

    def _flush_locked(self, slide_id: str) -> bool:
        records = self.store.queue.pending_for_slide(slide_id)
        if not records:
            return True

        try:
            for record in records:
                if record.action == ChangeAction.DELETE:
                    self.adapter.delete_hotspot(record.entity_id)
            self.adapter.save_hotspots(self.store.get_slide_hotspots(slide_id))
        except Exception as e:
            self.last_error = PersistenceFailure(f"Failed to save hotspots for slide {slide_id}: {e}", slide_id=slide_id)
            logger.error(f"Flush of slide {slide_id} failed, {len(records)} changes kept: {e}")
            return False

        self.store.queue.confirm(records)
        if not self.store.queue.pending_for_slide(slide_id):
            self.scheduler.cancel(("slide", slide_id))
        self.last_error = None
        self.last_saved_at = utcnow()
        logger.debug(f"Flushed {len(records)} changes for slide {slide_id}")
        return True

