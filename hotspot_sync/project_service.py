# hotspot_sync/project_service.py

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from hotspot_sync.base_utils import BaseUtils, generate_id
from hotspot_sync.document_cache import DocumentCache
from hotspot_sync.entity_store import EntityStore
from hotspot_sync.errors import NotFound, ValidationError
from hotspot_sync.models import AnalyticsEvent, Project, Slide
from hotspot_sync.persistence_adapter import PersistenceAdapter
from hotspot_sync.row_store import RowStoreClient, build_row_store_client
from hotspot_sync.scheduler import DebounceScheduler, MonotonicClock
from hotspot_sync.settings import MAX_HOTSPOTS_PER_SLIDE, logger
from hotspot_sync.sync_policy import FlushGate, SyncPolicy

# Copied from the source slide when duplicating a project.
_SLIDE_COPY_FIELDS = ("title", "background_url", "background_type", "order", "duration", "is_active")


class EditorSession:
    """
    One open project in the editor: its adapter, entity store and sync policy.
    """

    def __init__(self, project: Project, adapter: PersistenceAdapter, store: EntityStore, policy: SyncPolicy):
        self.project = project
        self.adapter = adapter
        self.store = store
        self.policy = policy
        self._loaded_slides: set[str] = set()

    @property
    def project_id(self) -> str:
        return self.project.id

    def open_slide(self, slide_id: str) -> None:
        """Make `slide_id` active, loading its hotspots from the row store the first time."""
        self.store.set_active_slide(slide_id)
        if slide_id not in self._loaded_slides:
            self.store.load_slide_hotspots(slide_id)
            self._loaded_slides.add(slide_id)

    def forget_slide(self, slide_id: str) -> None:
        self.store.discard_slide(slide_id)
        self._loaded_slides.discard(slide_id)

    def close(self) -> None:
        self.store.destroy()
        self._loaded_slides.clear()


class ProjectService(BaseUtils):
    """
    Project- and slide-level operations over the row store, plus the registry
    of open editor sessions (one per project).
    """

    def __init__(
        self,
        client: Optional[RowStoreClient] = None,
        clock=None,
        documents: Optional[DocumentCache] = None,
        max_hotspots: int = MAX_HOTSPOTS_PER_SLIDE,
    ):
        self.client = client if client is not None else build_row_store_client()
        self.clock = clock if clock is not None else MonotonicClock()
        self.documents = documents if documents is not None else DocumentCache()
        self.max_hotspots = max_hotspots
        # one flush in flight at a time across all open projects
        self.flush_gate = FlushGate()

        self._lock = threading.Lock()
        self._sessions: Dict[str, EditorSession] = {}

    # -----------------------
    # Adapters
    # -----------------------

    def _new_adapter(self) -> PersistenceAdapter:
        return PersistenceAdapter(self.client, document_cache=self.documents)

    def _registry_adapter(self) -> PersistenceAdapter:
        adapter = self._new_adapter()
        adapter.initialize_registry()
        return adapter

    def _project_adapter(self, project_id: str) -> PersistenceAdapter:
        adapter = self._registry_adapter()
        adapter.initialize_for_project(project_id)
        return adapter

    # -----------------------
    # Projects
    # -----------------------

    def create_new_project(self, project_data: Optional[Dict[str, Any]] = None) -> Project:
        data = dict(project_data or {})
        title = data.pop("name", None) or data.get("title") or "Untitled Project"
        data["title"] = title

        adapter = self._registry_adapter()
        document_id = adapter.create_project_document(title)
        adapter.initialize(document_id)
        try:
            project = adapter.create_project(data)
        except ValidationError:
            adapter.trash_project_document(document_id)
            raise

        adapter.add_project_to_registry(project)
        self.color_print(f"Created project {project.id} ({project.title})", color="green")
        return project

    def open_project(self, project_id: str) -> Dict[str, Any]:
        """Project with its slides (by order) and every slide's hotspots."""
        self._flush_open_session(project_id)
        adapter = self._project_adapter(project_id)
        project = adapter.get_project(project_id)
        if project is None:
            raise NotFound("project", project_id)

        slides = adapter.get_slides_by_project(project_id)
        return {
            "project": project,
            "slides": slides,
            "hotspots": {s.id: adapter.get_hotspots_by_slide(s.id) for s in slides},
        }

    def save_current_project(self, project_id: str, updates: Optional[Dict[str, Any]] = None) -> Project:
        """Persist project-level edits and any queued hotspot changes of its open session."""
        self._flush_open_session(project_id)
        adapter = self._project_adapter(project_id)
        project = adapter.update_project(project_id, updates or {})
        adapter.update_project_in_registry(project)

        session = self.get_session(project_id, required=False)
        if session is not None:
            session.project = project
        return project

    def delete_project(self, project_id: str) -> bool:
        """Cascade delete rows, drop the registry entry, then trash the document."""
        adapter = self._project_adapter(project_id)
        document_id = adapter.document_id

        # a flush already writing this project's hotspots finishes before the cascade
        with self.flush_gate.exclusive():
            self._drop_session(project_id)
            adapter.delete_project(project_id)
        adapter.remove_project_from_registry(project_id)
        self.documents.forget(project_id)

        if not adapter.trash_project_document(document_id):
            logger.warning(f"Project {project_id} deleted but document {document_id} could not be trashed")
        self.color_print(f"Deleted project {project_id}", color="yellow")
        return True

    def duplicate_project(self, project_id: str) -> Project:
        self._flush_open_session(project_id)
        source = self._project_adapter(project_id)
        original = source.get_project(project_id)
        if original is None:
            raise NotFound("project", project_id)

        copy = self.create_new_project(
            {
                "title": f"{original.title} (Copy)"[:100],
                "description": original.description,
                "settings": dict(original.settings),
            }
        )
        target = self._project_adapter(copy.id)

        for slide in source.get_slides_by_project(project_id):
            new_slide = target.create_slide(
                {"project_id": copy.id, **{f: getattr(slide, f) for f in _SLIDE_COPY_FIELDS}}
            )
            hotspots = [
                replace(h, id=generate_id("hotspot"), slide_id=new_slide.id)
                for h in source.get_hotspots_by_slide(slide.id)
            ]
            target.save_hotspots(hotspots)

        logger.info(f"Duplicated project {project_id} into {copy.id}")
        return copy

    def get_all_projects(self) -> List[Project]:
        return self._registry_adapter().get_all_projects()

    # -----------------------
    # Slides
    # -----------------------

    def create_slide(self, slide_data: Dict[str, Any]) -> Slide:
        data = dict(slide_data or {})
        project_id = data.get("project_id")
        if not project_id:
            raise ValidationError("Slide validation failed", ["Project ID is required"])

        adapter = self._project_adapter(project_id)
        if adapter.get_project(project_id) is None:
            raise NotFound("project", project_id)

        data["order"] = len(adapter.get_slides_by_project(project_id))
        return adapter.create_slide(data)

    def delete_slide(self, slide_id: str, project_id: str) -> bool:
        adapter = self._project_adapter(project_id)
        self._slide_in_project(adapter, slide_id, project_id)

        with self.flush_gate.exclusive():
            session = self.get_session(project_id, required=False)
            if session is not None:
                session.forget_slide(slide_id)
            adapter.delete_slide(slide_id)

        remaining = adapter.get_slides_by_project(project_id)
        adapter.save_slides(self._renumbered(remaining))
        return True

    def update_slide_background(
        self, slide_id: str, project_id: str, background_url: str, background_type: str
    ) -> Slide:
        adapter = self._project_adapter(project_id)
        self._slide_in_project(adapter, slide_id, project_id)
        return adapter.update_slide(
            slide_id, {"background_url": background_url, "background_type": background_type}
        )

    def update_slide(self, slide_id: str, project_id: str, updates: Dict[str, Any]) -> Slide:
        adapter = self._project_adapter(project_id)
        self._slide_in_project(adapter, slide_id, project_id)
        if "order" in (updates or {}):
            raise ValidationError("Slide validation failed", ["Use reorder_slides to change slide order"])
        return adapter.update_slide(slide_id, updates or {})

    def reorder_slides(self, project_id: str, from_index: int, to_index: int) -> bool:
        adapter = self._project_adapter(project_id)
        slides = adapter.get_slides_by_project(project_id)

        n = len(slides)
        if from_index < 0 or to_index < 0 or from_index >= n or to_index >= n:
            return False

        moved = slides.pop(from_index)
        slides.insert(to_index, moved)
        adapter.save_slides(self._renumbered(slides))
        return True

    @staticmethod
    def _renumbered(slides: List[Slide]) -> List[Slide]:
        return [replace(s, order=i) for i, s in enumerate(slides) if s.order != i]

    @staticmethod
    def _slide_in_project(adapter: PersistenceAdapter, slide_id: str, project_id: str) -> Slide:
        slide = adapter.get_slide(slide_id)
        if slide is None or slide.project_id != project_id:
            raise NotFound("slide", slide_id)
        return slide

    # -----------------------
    # Analytics
    # -----------------------

    def record_analytics(self, project_id: str, event_data: Dict[str, Any]) -> AnalyticsEvent:
        adapter = self._project_adapter(project_id)
        return adapter.record_analytics({**(event_data or {}), "project_id": project_id})

    def get_analytics(
        self,
        project_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AnalyticsEvent]:
        adapter = self._project_adapter(project_id)
        return adapter.get_analytics(project_id, start_date=start_date, end_date=end_date, limit=limit)

    # -----------------------
    # Editor sessions
    # -----------------------

    def open_editor_session(self, project_id: str, auto_save: Optional[bool] = None) -> EditorSession:
        with self._lock:
            existing = self._sessions.get(project_id)
        if existing is not None:
            return existing

        adapter = self._project_adapter(project_id)
        project = adapter.get_project(project_id)
        if project is None:
            raise NotFound("project", project_id)

        if auto_save is None:
            auto_save = bool(project.settings.get("auto_save", True))

        store = EntityStore(adapter=adapter, clock=self.clock, max_hotspots=self.max_hotspots)
        policy = SyncPolicy(
            store,
            adapter,
            scheduler=DebounceScheduler(self.clock),
            auto_save=auto_save,
            gate=self.flush_gate,
        )
        session = EditorSession(project, adapter, store, policy)

        with self._lock:
            # another request may have opened it meanwhile
            session = self._sessions.setdefault(project_id, session)
        logger.info(f"Opened editor session for project {project_id} (auto_save={auto_save})")
        return session

    def get_session(self, project_id: str, required: bool = True) -> Optional[EditorSession]:
        with self._lock:
            session = self._sessions.get(project_id)
        if session is None and required:
            raise NotFound("editor session", project_id)
        return session

    def close_editor_session(self, project_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(project_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Closed editor session for project {project_id}")
        return True

    def sessions(self) -> List[EditorSession]:
        with self._lock:
            return list(self._sessions.values())

    def close_all_sessions(self) -> None:
        for session in self.sessions():
            try:
                self.close_editor_session(session.project_id)
            except Exception:
                logger.exception(f"Failed to close editor session {session.project_id}")

    def _flush_open_session(self, project_id: str) -> None:
        session = self.get_session(project_id, required=False)
        if session is not None and not session.policy.flush_all():
            logger.warning(f"Project {project_id} has changes that could not be saved: {session.policy.last_error}")

    def _drop_session(self, project_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(project_id, None)
        if session is not None:
            session.store.clear()
            session.store.bus.clear()
