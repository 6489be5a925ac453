# hotspot_sync/persistence_adapter.py
"""
Translation between entities and row-store rows, id-indexed CRUD, and
cascade ordering (hotspots -> slides -> project).
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from hotspot_sync.base_utils import BaseUtils, chunk_list, generate_id
from hotspot_sync.document_cache import DocumentCache
from hotspot_sync.errors import CascadeOrderViolation, NotFound, NotInitialized, PersistenceFailure, ValidationError
from hotspot_sync.models import (
    PROJECT_FIELDS,
    SLIDE_FIELDS,
    AnalyticsEvent,
    Hotspot,
    Project,
    Slide,
    utcnow,
)
from hotspot_sync.row_schema import (
    ANALYTICS_SCHEMA,
    HOTSPOT_SCHEMA,
    PROJECT_DOCUMENT_SCHEMAS,
    PROJECT_SCHEMA,
    REGISTRY_SCHEMA,
    SCHEMA_VERSION,
    SLIDE_SCHEMA,
    RowCodec,
    SheetSchema,
)
from hotspot_sync.row_store import RowStoreClient, RowStoreDocument
from hotspot_sync.settings import DOCUMENT_TITLE_PREFIX, REGISTRY_TITLE, SAVE_BATCH_SIZE, logger
from hotspot_sync.validation import validate_project, validate_slide

_IMMUTABLE_PROJECT_FIELDS = {"id", "document_id", "created_at"}
_IMMUTABLE_SLIDE_FIELDS = {"id", "project_id", "created_at"}


class PersistenceAdapter(BaseUtils):
    def __init__(
        self,
        client: RowStoreClient,
        document_cache: Optional[DocumentCache] = None,
        batch_size: int = SAVE_BATCH_SIZE,
        registry_title: str = REGISTRY_TITLE,
    ):
        self.client = client
        self.documents = document_cache if document_cache is not None else DocumentCache()
        self.batch_size = batch_size
        self.registry_title = registry_title
        self.codec = RowCodec()

        self.document_id: Optional[str] = None
        self.registry_document_id: Optional[str] = None
        self._document: Optional[RowStoreDocument] = None
        self._registry: Optional[RowStoreDocument] = None

    # -----------------------
    # Bootstrap
    # -----------------------

    def initialize(self, document_id: str) -> bool:
        """Open a project document and make sure its sheets and headers exist."""
        if not document_id:
            raise NotInitialized("Document ID is required")
        document = self.client.open_document(document_id)
        self._setup_sheets(document, PROJECT_DOCUMENT_SCHEMAS)
        self._document = document
        self.document_id = document_id
        return True

    def initialize_registry(self) -> bool:
        registry_id = self.client.find_document_by_title(self.registry_title)
        if registry_id is None:
            registry_id = self.client.create_document(self.registry_title)
            logger.info(f"Created new registry document: {registry_id}")
        registry = self.client.open_document(registry_id)
        self._setup_sheets(registry, (REGISTRY_SCHEMA,))
        self._registry = registry
        self.registry_document_id = registry_id
        return True

    def initialize_for_project(self, project_id: str) -> str:
        """Resolve the project's document id (cache first, then registry) and open it."""
        document_id = self.documents.get(project_id)
        if document_id is None:
            if self._registry is None:
                self.initialize_registry()
            entry = self.get_registry_entry(project_id)
            if entry is None:
                raise NotFound("project", project_id)
            document_id = entry.document_id
            self.documents.assign(project_id, document_id)
        if self.document_id != document_id:
            self.initialize(document_id)
        return document_id

    def _setup_sheets(self, document: RowStoreDocument, schemas) -> None:
        for schema in schemas:
            document.ensure_sheet_exists(schema.kind)
            headers = document.setup_headers(schema.kind, schema.headers())
            if headers != schema.headers():
                raise PersistenceFailure(
                    f"Sheet {schema.kind} has an incompatible header row "
                    f"(expected schema v{schema.version}): {headers}"
                )

    def create_project_document(self, project_title: str) -> str:
        document_id = self.client.create_document(f"{DOCUMENT_TITLE_PREFIX}{project_title}")
        logger.info(f"Created project document: {document_id} for project: {project_title}")
        return document_id

    def trash_project_document(self, document_id: str) -> bool:
        try:
            self.client.trash_document(document_id)
        except LookupError as e:
            logger.warning(f"Could not trash project document {document_id}: {e}")
            return False
        if self.document_id == document_id:
            self._document = None
            self.document_id = None
        return True

    def _ensure_initialized(self) -> RowStoreDocument:
        if self._document is None:
            raise NotInitialized("PersistenceAdapter not initialized. Call initialize() first.")
        return self._document

    def _ensure_registry_initialized(self) -> RowStoreDocument:
        if self._registry is None:
            raise NotInitialized("PersistenceAdapter registry not initialized. Call initialize_registry() first.")
        return self._registry

    # -----------------------
    # Generic row operations
    # -----------------------

    def get_all_rows(self, kind: str) -> List[list]:
        return self._ensure_initialized().get_all_rows(kind)

    def get_row_by_id(self, kind: str, row_id: str) -> Optional[list]:
        for row in self.get_all_rows(kind):
            if row and row[0] == row_id:
                return row
        return None

    def insert_row(self, kind: str, row: list) -> None:
        self._ensure_initialized().append_row(kind, row)

    def upsert(self, kind: str, row_id: str, row: list) -> bool:
        """
        Overwrite the row with `row_id` in place, or append it.
        Returns True when an existing row was overwritten.
        """
        document = self._ensure_initialized()
        if self.get_row_by_id(kind, row_id) is not None:
            if document.update_row_by_id(kind, row_id, row):
                return True
        document.append_row(kind, row)
        return False

    def delete_row_by_id(self, kind: str, row_id: str) -> bool:
        return self._ensure_initialized().delete_row_by_id(kind, row_id)

    def _rows_referencing(self, schema: SheetSchema, parent_attr: str, parent_ids) -> List[list]:
        col = schema.index_of(parent_attr)
        wanted = set(parent_ids)
        return [r for r in self.get_all_rows(schema.kind) if len(r) > col and r[col] in wanted]

    # -----------------------
    # Projects
    # -----------------------

    def create_project(self, project_data: Dict[str, Any]) -> Project:
        self._ensure_initialized()
        data = self._checked_updates(project_data, PROJECT_FIELDS, {"id", "document_id"})
        now = utcnow()
        project = Project(
            **{
                "title": "Untitled Project",
                **data,
                "id": generate_id("proj"),
                "document_id": self.document_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        validate_project(project)
        self.insert_row(PROJECT_SCHEMA.kind, self.codec.encode(PROJECT_SCHEMA, project))
        self.documents.assign(project.id, self.document_id)
        return project

    def get_project(self, project_id: str) -> Optional[Project]:
        row = self.get_row_by_id(PROJECT_SCHEMA.kind, project_id)
        if row is None:
            return None
        return self.codec.to_entity(PROJECT_SCHEMA, row, document_id=self.document_id)

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Project:
        existing = self.get_project(project_id)
        if existing is None:
            raise NotFound("project", project_id)
        data = self._checked_updates(updates, PROJECT_FIELDS, _IMMUTABLE_PROJECT_FIELDS)
        updated = replace(existing, **data, updated_at=utcnow())
        validate_project(updated)
        self.upsert(PROJECT_SCHEMA.kind, project_id, self.codec.encode(PROJECT_SCHEMA, updated))
        return updated

    def delete_project(self, project_id: str) -> bool:
        """Delete in order: hotspots, slides, project."""
        self._ensure_initialized()
        self.delete_hotspots_by_project(project_id)
        self.delete_slides_by_project(project_id)
        if self._rows_referencing(SLIDE_SCHEMA, "project_id", [project_id]):
            raise CascadeOrderViolation(f"Project {project_id} still has slide rows")
        return self.delete_row_by_id(PROJECT_SCHEMA.kind, project_id)

    # -----------------------
    # Slides
    # -----------------------

    def create_slide(self, slide_data: Dict[str, Any]) -> Slide:
        self._ensure_initialized()
        data = self._checked_updates(slide_data, SLIDE_FIELDS, set())
        if not data.get("project_id"):
            raise ValidationError("Slide validation failed", ["Project ID is required"])
        now = utcnow()
        slide = Slide(
            **{
                **data,
                "id": data.get("id") or generate_id("slide"),
                "created_at": now,
                "updated_at": now,
            }
        )
        validate_slide(slide)
        self.insert_row(SLIDE_SCHEMA.kind, self.codec.encode(SLIDE_SCHEMA, slide))
        return slide

    def get_slide(self, slide_id: str) -> Optional[Slide]:
        row = self.get_row_by_id(SLIDE_SCHEMA.kind, slide_id)
        return self.codec.to_entity(SLIDE_SCHEMA, row) if row is not None else None

    def update_slide(self, slide_id: str, updates: Dict[str, Any]) -> Slide:
        existing = self.get_slide(slide_id)
        if existing is None:
            raise NotFound("slide", slide_id)
        data = self._checked_updates(updates, SLIDE_FIELDS, _IMMUTABLE_SLIDE_FIELDS)
        updated = replace(existing, **data, updated_at=utcnow())
        validate_slide(updated)
        self.upsert(SLIDE_SCHEMA.kind, slide_id, self.codec.encode(SLIDE_SCHEMA, updated))
        return updated

    def get_slides_by_project(self, project_id: str) -> List[Slide]:
        rows = self._rows_referencing(SLIDE_SCHEMA, "project_id", [project_id])
        slides = [self.codec.to_entity(SLIDE_SCHEMA, r) for r in rows]
        return sorted(slides, key=lambda s: s.order)

    def save_slides(self, slides: List[Slide]) -> bool:
        self._ensure_initialized()
        for batch in chunk_list(list(slides), self.batch_size):
            for slide in batch:
                self.upsert(SLIDE_SCHEMA.kind, slide.id, self.codec.encode(SLIDE_SCHEMA, slide))
        return True

    def delete_slide(self, slide_id: str) -> bool:
        """Delete the slide's hotspots, then the slide row."""
        self.delete_hotspots_by_slide(slide_id)
        self._assert_no_hotspots([slide_id])
        return self.delete_row_by_id(SLIDE_SCHEMA.kind, slide_id)

    def delete_slides_by_project(self, project_id: str) -> int:
        slides = self.get_slides_by_project(project_id)
        for slide in slides:
            self.delete_hotspots_by_slide(slide.id)
        self._assert_no_hotspots([s.id for s in slides])
        col = SLIDE_SCHEMA.index_of("project_id")
        return self._ensure_initialized().delete_rows_by_column_value(SLIDE_SCHEMA.kind, col, project_id)

    def _assert_no_hotspots(self, slide_ids: List[str]) -> None:
        if slide_ids and self._rows_referencing(HOTSPOT_SCHEMA, "slide_id", slide_ids):
            raise CascadeOrderViolation(f"Hotspot rows still reference slides {slide_ids}")

    # -----------------------
    # Hotspots
    # -----------------------

    def save_hotspots(self, hotspots: List[Hotspot]) -> bool:
        """
        Upsert every hotspot, in chunks of batch_size. Not atomic: a failure
        mid-way leaves earlier rows written, which a replay overwrites.
        """
        self._ensure_initialized()
        if not hotspots:
            return True

        for batch in chunk_list(list(hotspots), self.batch_size):
            for hotspot in batch:
                self.upsert(HOTSPOT_SCHEMA.kind, hotspot.id, self.codec.encode(HOTSPOT_SCHEMA, hotspot))
        return True

    def get_hotspots_by_slide(self, slide_id: str) -> List[Hotspot]:
        rows = self._rows_referencing(HOTSPOT_SCHEMA, "slide_id", [slide_id])
        hotspots = [self.codec.to_entity(HOTSPOT_SCHEMA, r) for r in rows]
        return sorted(hotspots, key=lambda h: h.order)

    def delete_hotspot(self, hotspot_id: str) -> bool:
        return self.delete_row_by_id(HOTSPOT_SCHEMA.kind, hotspot_id)

    def delete_hotspots_by_slide(self, slide_id: str) -> int:
        col = HOTSPOT_SCHEMA.index_of("slide_id")
        return self._ensure_initialized().delete_rows_by_column_value(HOTSPOT_SCHEMA.kind, col, slide_id)

    def delete_hotspots_by_project(self, project_id: str) -> int:
        deleted = 0
        for slide in self.get_slides_by_project(project_id):
            deleted += self.delete_hotspots_by_slide(slide.id)
        return deleted

    # -----------------------
    # Analytics
    # -----------------------

    def record_analytics(self, event_data: Dict[str, Any]) -> AnalyticsEvent:
        self._ensure_initialized()
        event = AnalyticsEvent(
            id=generate_id("analytics"),
            project_id=str(event_data.get("project_id") or ""),
            event_type=str(event_data.get("event_type") or ""),
            event_data=dict(event_data.get("data") or {}),
            user_id=str(event_data.get("user_id") or ""),
            session_id=str(event_data.get("session_id") or ""),
            timestamp=utcnow(),
            ip_address=str(event_data.get("ip_address") or ""),
            user_agent=str(event_data.get("user_agent") or ""),
        )
        self.insert_row(ANALYTICS_SCHEMA.kind, self.codec.encode(ANALYTICS_SCHEMA, event))
        return event

    def get_analytics(
        self,
        project_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AnalyticsEvent]:
        rows = self._rows_referencing(ANALYTICS_SCHEMA, "project_id", [project_id])
        events = [self.codec.to_entity(ANALYTICS_SCHEMA, r) for r in rows]
        if start_date is not None:
            events = [e for e in events if e.timestamp >= start_date]
        if end_date is not None:
            events = [e for e in events if e.timestamp <= end_date]
        if limit:
            events = events[:limit]
        return events

    # -----------------------
    # Registry
    # -----------------------

    def get_all_projects(self) -> List[Project]:
        rows = self._ensure_registry_initialized().get_all_rows(REGISTRY_SCHEMA.kind)
        return [self.codec.to_entity(REGISTRY_SCHEMA, r) for r in rows]

    def get_registry_entry(self, project_id: str) -> Optional[Project]:
        for project in self.get_all_projects():
            if project.id == project_id:
                return project
        return None

    def add_project_to_registry(self, project: Project) -> bool:
        registry = self._ensure_registry_initialized()
        registry.append_row(REGISTRY_SCHEMA.kind, self.codec.encode(REGISTRY_SCHEMA, project))
        logger.info(f"Added project to registry: {project.id}")
        return True

    def update_project_in_registry(self, project: Project) -> bool:
        registry = self._ensure_registry_initialized()
        if not registry.update_row_by_id(REGISTRY_SCHEMA.kind, project.id, self.codec.encode(REGISTRY_SCHEMA, project)):
            raise NotFound("project", project.id)
        logger.info(f"Updated project in registry: {project.id}")
        return True

    def remove_project_from_registry(self, project_id: str) -> bool:
        registry = self._ensure_registry_initialized()
        if not registry.delete_row_by_id(REGISTRY_SCHEMA.kind, project_id):
            logger.warning(f"Project not found in registry: {project_id}")
            return False
        logger.info(f"Removed project from registry: {project_id}")
        return True

    # -----------------------
    # Helpers
    # -----------------------

    def _checked_updates(self, updates: Dict[str, Any], allowed: frozenset, immutable: set) -> Dict[str, Any]:
        updates = dict(updates or {})
        unknown = sorted(k for k in updates if k not in allowed)
        frozen = sorted(k for k in updates if k in immutable)
        errors = [f"Unknown field '{k}'" for k in unknown] + [f"Field '{k}' cannot be changed" for k in frozen]
        if errors:
            raise ValidationError("Invalid fields", errors)
        return updates

    def get_stats(self) -> dict:
        return {
            "initialized": self._document is not None,
            "document_id": self.document_id,
            "registry_document_id": self.registry_document_id,
            "cached_documents": len(self.documents),
            "batch_size": self.batch_size,
            "schema_version": SCHEMA_VERSION,
        }
