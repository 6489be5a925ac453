# hotspot_sync/change_queue.py

import itertools
import threading
from typing import Any, Callable, Iterable, List, Optional

from hotspot_sync.models import ChangeAction, ChangeRecord, Hotspot


class ChangeQueue:
    """
    Pending local mutations, in enqueue order.

    - Records are removed only once the matching write is confirmed.
    - A failed flush leaves them in place for the next trigger.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._lock = threading.Lock()
        self._records: List[ChangeRecord] = []
        self._seq = itertools.count(1)
        self._clock = clock

    def record(
        self,
        action: ChangeAction,
        slide_id: str,
        entity: Any,
        previous: Optional[Hotspot] = None,
    ) -> ChangeRecord:
        """
        Append a ChangeRecord and return it.
        """
        with self._lock:
            rec = ChangeRecord(
                seq=next(self._seq),
                action=ChangeAction(action),
                slide_id=slide_id,
                entity=entity,
                previous=previous,
                timestamp=self._clock(),
            )
            self._records.append(rec)
            return rec

    def pending_for_slide(self, slide_id: str) -> List[ChangeRecord]:
        with self._lock:
            return [r for r in self._records if r.slide_id == slide_id]

    def pending_slide_ids(self) -> List[str]:
        """Slides with queued changes, ordered by their oldest record."""
        seen: List[str] = []
        with self._lock:
            for r in self._records:
                if r.slide_id not in seen:
                    seen.append(r.slide_id)
        return seen

    def confirm(self, records: Iterable[ChangeRecord]) -> int:
        """Drop records whose write has been confirmed. Returns how many were removed."""
        done = {r.seq for r in records}
        if not done:
            return 0
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.seq not in done]
            return before - len(self._records)

    def snapshot(self) -> List[ChangeRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
