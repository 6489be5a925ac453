# hotspot_sync/row_store.py
"""
Row-store clients.

A row store is a set of documents; each document holds named sheets of
positional rows whose first cell is the row id. The engine only relies on
the operations of RowStoreDocument / RowStoreClient below.
"""

import copy
import threading
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from hotspot_sync.db_connection import DbConnection
from hotspot_sync.entities import Base, RowDocument, RowSheet, SheetRow
from hotspot_sync.settings import ROW_STORE_BACKEND, logger

Row = List[Any]


class SheetNotFound(LookupError):
    pass


class DocumentNotFound(LookupError):
    pass


class RowStoreDocument:
    """Read/write contract of a single row-store document."""

    document_id: str

    def ensure_sheet_exists(self, kind: str) -> None:
        raise NotImplementedError

    def setup_headers(self, kind: str, headers: List[str]) -> List[str]:
        """Write headers if the sheet has none; return the headers now in place."""
        raise NotImplementedError

    def append_row(self, kind: str, row: Row) -> None:
        raise NotImplementedError

    def get_all_rows(self, kind: str) -> List[Row]:
        """Every data row in order, header excluded."""
        raise NotImplementedError

    def update_row_by_id(self, kind: str, row_id: str, row: Row) -> bool:
        raise NotImplementedError

    def delete_row_by_id(self, kind: str, row_id: str) -> bool:
        raise NotImplementedError

    def delete_rows_by_column_value(self, kind: str, column_index: int, value: Any) -> int:
        raise NotImplementedError


class RowStoreClient:
    def create_document(self, title: str) -> str:
        raise NotImplementedError

    def find_document_by_title(self, title: str) -> Optional[str]:
        raise NotImplementedError

    def open_document(self, document_id: str) -> RowStoreDocument:
        raise NotImplementedError

    def trash_document(self, document_id: str) -> None:
        raise NotImplementedError


# -----------------------
# In-memory
# -----------------------

class MemoryRowStoreDocument(RowStoreDocument):
    def __init__(self, client: "MemoryRowStoreClient", document_id: str):
        self._client = client
        self.document_id = document_id

    def _sheet(self, kind: str) -> Dict[str, Any]:
        doc = self._client._documents[self.document_id]
        sheet = doc["sheets"].get(kind)
        if sheet is None:
            raise SheetNotFound(f"Sheet {kind} not found")
        return sheet

    def ensure_sheet_exists(self, kind: str) -> None:
        with self._client._lock:
            sheets = self._client._documents[self.document_id]["sheets"]
            if kind not in sheets:
                logger.debug(f"Creating sheet: {kind}")
                sheets[kind] = {"headers": [], "rows": []}

    def setup_headers(self, kind: str, headers: List[str]) -> List[str]:
        with self._client._lock:
            sheet = self._sheet(kind)
            if not any(h != "" for h in sheet["headers"]):
                sheet["headers"] = list(headers)
            return list(sheet["headers"])

    def append_row(self, kind: str, row: Row) -> None:
        with self._client._lock:
            self._sheet(kind)["rows"].append(copy.deepcopy(list(row)))

    def get_all_rows(self, kind: str) -> List[Row]:
        with self._client._lock:
            return copy.deepcopy(self._sheet(kind)["rows"])

    def update_row_by_id(self, kind: str, row_id: str, row: Row) -> bool:
        with self._client._lock:
            rows = self._sheet(kind)["rows"]
            for i, existing in enumerate(rows):
                if existing and existing[0] == row_id:
                    rows[i] = copy.deepcopy(list(row))
                    return True
            return False

    def delete_row_by_id(self, kind: str, row_id: str) -> bool:
        with self._client._lock:
            rows = self._sheet(kind)["rows"]
            for i, existing in enumerate(rows):
                if existing and existing[0] == row_id:
                    del rows[i]
                    return True
            return False

    def delete_rows_by_column_value(self, kind: str, column_index: int, value: Any) -> int:
        with self._client._lock:
            sheet = self._sheet(kind)
            kept = [r for r in sheet["rows"] if not (len(r) > column_index and r[column_index] == value)]
            deleted = len(sheet["rows"]) - len(kept)
            sheet["rows"] = kept
            return deleted


class MemoryRowStoreClient(RowStoreClient):
    """Process-local row store; used in tests and with ROW_STORE_BACKEND=memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: Dict[str, Dict[str, Any]] = {}

    def create_document(self, title: str) -> str:
        document_id = str(uuid4())
        with self._lock:
            self._documents[document_id] = {"title": title, "trashed": False, "sheets": {}}
        return document_id

    def find_document_by_title(self, title: str) -> Optional[str]:
        with self._lock:
            for document_id, doc in self._documents.items():
                if doc["title"] == title and not doc["trashed"]:
                    return document_id
        return None

    def open_document(self, document_id: str) -> RowStoreDocument:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None or doc["trashed"]:
                raise DocumentNotFound(f"Document {document_id} not found")
        return MemoryRowStoreDocument(self, document_id)

    def trash_document(self, document_id: str) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise DocumentNotFound(f"Document {document_id} not found")
            doc["trashed"] = True


# -----------------------
# SQL (SQLAlchemy)
# -----------------------

class SqlRowStoreDocument(RowStoreDocument):
    def __init__(self, session_factory: Callable[[], Session], document_id: str):
        self.SessionFactory = session_factory
        self.document_id = document_id

    def _sheet(self, session: Session, kind: str) -> RowSheet:
        sheet = (
            session.query(RowSheet)
            .filter(RowSheet.document_id == self.document_id, RowSheet.name == kind)
            .one_or_none()
        )
        if sheet is None:
            raise SheetNotFound(f"Sheet {kind} not found")
        return sheet

    def _first_row(self, session: Session, sheet: RowSheet, row_id: str) -> Optional[SheetRow]:
        return (
            session.query(SheetRow)
            .filter(SheetRow.sheet_id == sheet.id, SheetRow.row_id == str(row_id))
            .order_by(SheetRow.position.asc())
            .first()
        )

    def ensure_sheet_exists(self, kind: str) -> None:
        session = self.SessionFactory()
        try:
            exists = (
                session.query(RowSheet.id)
                .filter(RowSheet.document_id == self.document_id, RowSheet.name == kind)
                .first()
            )
            if exists is None:
                logger.debug(f"Creating sheet: {kind}")
                session.add(RowSheet(document_id=self.document_id, name=kind, headers=[]))
                session.commit()
        finally:
            session.close()

    def setup_headers(self, kind: str, headers: List[str]) -> List[str]:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            if not any(h != "" for h in (sheet.headers or [])):
                sheet.headers = list(headers)
                session.commit()
            return list(sheet.headers)
        finally:
            session.close()

    def append_row(self, kind: str, row: Row) -> None:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            last = (
                session.query(func.max(SheetRow.position))
                .filter(SheetRow.sheet_id == sheet.id)
                .scalar()
            )
            session.add(
                SheetRow(
                    sheet_id=sheet.id,
                    position=(last if last is not None else -1) + 1,
                    row_id=str(row[0]) if row else "",
                    cells=list(row),
                )
            )
            session.commit()
        finally:
            session.close()

    def get_all_rows(self, kind: str) -> List[Row]:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            rows = (
                session.query(SheetRow)
                .filter(SheetRow.sheet_id == sheet.id)
                .order_by(SheetRow.position.asc())
                .all()
            )
            return [list(r.cells) for r in rows]
        finally:
            session.close()

    def update_row_by_id(self, kind: str, row_id: str, row: Row) -> bool:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            existing = self._first_row(session, sheet, row_id)
            if existing is None:
                return False
            existing.cells = list(row)
            existing.row_id = str(row[0]) if row else ""
            session.commit()
            return True
        finally:
            session.close()

    def delete_row_by_id(self, kind: str, row_id: str) -> bool:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            existing = self._first_row(session, sheet, row_id)
            if existing is None:
                return False
            session.delete(existing)
            session.commit()
            return True
        finally:
            session.close()

    def delete_rows_by_column_value(self, kind: str, column_index: int, value: Any) -> int:
        session = self.SessionFactory()
        try:
            sheet = self._sheet(session, kind)
            rows = session.query(SheetRow).filter(SheetRow.sheet_id == sheet.id).all()
            deleted = 0
            for r in rows:
                cells = r.cells or []
                if len(cells) > column_index and cells[column_index] == value:
                    session.delete(r)
                    deleted += 1
            if deleted:
                session.commit()
            return deleted
        finally:
            session.close()


class SqlRowStoreClient(RowStoreClient):
    def __init__(self, session_factory: Callable[[], Session], engine: Optional[Engine] = None):
        self.SessionFactory = session_factory
        if engine is not None:
            Base.metadata.create_all(engine)

    def create_document(self, title: str) -> str:
        session = self.SessionFactory()
        try:
            doc = RowDocument(document_id=str(uuid4()), title=title)
            session.add(doc)
            session.commit()
            return doc.document_id
        finally:
            session.close()

    def find_document_by_title(self, title: str) -> Optional[str]:
        session = self.SessionFactory()
        try:
            doc = (
                session.query(RowDocument)
                .filter(RowDocument.title == title, RowDocument.trashed.is_(False))
                .order_by(RowDocument.created_at.asc())
                .first()
            )
            return doc.document_id if doc else None
        finally:
            session.close()

    def open_document(self, document_id: str) -> RowStoreDocument:
        session = self.SessionFactory()
        try:
            doc = session.get(RowDocument, document_id)
            if doc is None or doc.trashed:
                raise DocumentNotFound(f"Document {document_id} not found")
        finally:
            session.close()
        return SqlRowStoreDocument(self.SessionFactory, document_id)

    def trash_document(self, document_id: str) -> None:
        session = self.SessionFactory()
        try:
            doc = session.get(RowDocument, document_id)
            if doc is None:
                raise DocumentNotFound(f"Document {document_id} not found")
            doc.trashed = True
            session.commit()
        finally:
            session.close()


def build_row_store_client(backend: Optional[str] = None) -> RowStoreClient:
    """Row-store client for the configured backend (ROW_STORE_BACKEND)."""
    backend = (backend or ROW_STORE_BACKEND).lower()
    if backend == "memory":
        logger.info("[ROW STORE] Using in-memory row store")
        return MemoryRowStoreClient()
    if backend == "sql":
        conn = DbConnection()
        return SqlRowStoreClient(conn.build_db_session_factory(), engine=conn.get_engine())
    raise ValueError(f"Unknown row store backend: {backend}")
