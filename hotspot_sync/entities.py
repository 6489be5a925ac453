# hotspot_sync/entities.py
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Index,
    JSON,
    UniqueConstraint,
)

from typing import TypeAlias
UUID: TypeAlias = str
Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in local mode and tests)
JsonCells = JSON().with_variant(JSONB(), "postgresql")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        onupdate=_now,
    )


class RowDocument(Base, TimestampMixin):
    """One per project (plus the registry): the unit a document id names."""
    __tablename__ = "row_document"

    document_id: Mapped[UUID] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    trashed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_row_document_title", "title"),
    )


class RowSheet(Base, TimestampMixin):
    __tablename__ = "row_sheet"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[UUID] = mapped_column(
        String(64),
        ForeignKey("row_document.document_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    headers: Mapped[list] = mapped_column(JsonCells, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("document_id", "name", name="uq_row_sheet_document_name"),
    )


class SheetRow(Base, TimestampMixin):
    """
    A data row. `cells` keeps the positional values exactly as written;
    `row_id` mirrors cells[0] so lookups by id do not need to decode JSON.
    """
    __tablename__ = "sheet_row"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sheet_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("row_sheet.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    row_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    cells: Mapped[list] = mapped_column(JsonCells, nullable=False, default=list)

    __table_args__ = (
        Index("ix_sheet_row_sheet_position", "sheet_id", "position"),
        Index("ix_sheet_row_sheet_row_id", "sheet_id", "row_id"),
    )
