# hotspot_sync/document_cache.py

import threading
from typing import Dict, Optional


class DocumentCache:
    """
    Process-local map of project id -> row-store document id.

    - No TTL.
    - A document id is immutable once assigned to a project.
    - Read-mostly; shared across flushes and adapters.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[str, str] = {}

    def assign(self, project_id: str, document_id: str) -> None:
        if not project_id or not document_id:
            raise ValueError("assign() needs both a project id and a document id")
        with self._lock:
            current = self._documents.get(str(project_id))
            if current is not None and current != document_id:
                raise ValueError(
                    f"Project {project_id} is already bound to document {current}"
                )
            self._documents[str(project_id)] = str(document_id)

    def get(self, project_id: str) -> Optional[str]:
        with self._lock:
            return self._documents.get(str(project_id))

    def forget(self, project_id: str) -> None:
        """Only for deleted projects; their ids are never reused."""
        with self._lock:
            self._documents.pop(str(project_id), None)

    def snapshot(self) -> Dict[str, str]:
        """
        Return a copy of all bindings currently tracked.
        """
        with self._lock:
            return dict(self._documents)

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
