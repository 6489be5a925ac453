# hotspot_sync/row_schema.py
"""
Column mapping tables between entities and row-store rows.

Every sheet has a fixed column order. The tables below are the single source
of truth for that order, the header row, and the fallback value used when a
cell is missing or unparseable. Bump SCHEMA_VERSION whenever a table changes;
the adapter refuses to open a document whose header row does not match.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Type

from hotspot_sync.base_utils import BaseUtils
from hotspot_sync.models import (
    AnalyticsEvent,
    EventType,
    Hotspot,
    MediaType,
    Project,
    ProjectStatus,
    Slide,
    TooltipPosition,
    TriggerType,
)

SCHEMA_VERSION = 1

PROJECTS_SHEET = "Projects"
SLIDES_SHEET = "Slides"
HOTSPOTS_SHEET = "Hotspots"
ANALYTICS_SHEET = "Analytics"
REGISTRY_SHEET = "Project Registry"


@dataclass(frozen=True)
class Column:
    attr: str
    header: str
    kind: str  # id | str | int | float | optional_float | bool | json_dict | json_list | timestamp
    default: Any = None


@dataclass(frozen=True)
class SheetSchema:
    kind: str
    entity: Type
    columns: Tuple[Column, ...]
    version: int = SCHEMA_VERSION

    def headers(self) -> List[str]:
        return [c.header for c in self.columns]

    def index_of(self, attr: str) -> int:
        for i, c in enumerate(self.columns):
            if c.attr == attr:
                return i
        raise KeyError(f"{self.kind} has no column for '{attr}'")


PROJECT_SCHEMA = SheetSchema(
    kind=PROJECTS_SHEET,
    entity=Project,
    columns=(
        Column("id", "ID", "id", ""),
        Column("title", "Name", "str", ""),
        Column("description", "Description", "str", ""),
        Column("status", "Status", "str", ProjectStatus.DRAFT.value),
        Column("settings", "Settings", "json_dict"),
        Column("analytics", "Analytics", "json_dict"),
        Column("created_at", "Created At", "timestamp"),
        Column("updated_at", "Updated At", "timestamp"),
        Column("created_by", "Created By", "str", ""),
        Column("shared_with", "Shared With", "json_list"),
    ),
)

SLIDE_SCHEMA = SheetSchema(
    kind=SLIDES_SHEET,
    entity=Slide,
    columns=(
        Column("id", "ID", "id", ""),
        Column("project_id", "Project ID", "id", ""),
        Column("title", "Name", "str", ""),
        Column("background_url", "Background URL", "str", ""),
        Column("background_type", "Background Type", "str", MediaType.IMAGE.value),
        Column("order", "Order", "int", 0),
        Column("duration", "Duration", "optional_float"),
        Column("is_active", "Is Active", "bool", True),
        Column("created_at", "Created At", "timestamp"),
        Column("updated_at", "Updated At", "timestamp"),
    ),
)

HOTSPOT_SCHEMA = SheetSchema(
    kind=HOTSPOTS_SHEET,
    entity=Hotspot,
    columns=(
        Column("id", "ID", "id", ""),
        Column("slide_id", "Slide ID", "id", ""),
        Column("name", "Name", "str", ""),
        Column("color", "Color", "str", "#ffffff"),
        Column("size", "Size", "int", 50),
        Column("x", "Position X", "float", 50.0),
        Column("y", "Position Y", "float", 50.0),
        Column("pulse_animation", "Pulse Animation", "bool", True),
        Column("trigger_type", "Trigger Type", "str", TriggerType.CLICK.value),
        Column("event_type", "Event Type", "str", EventType.TEXT_POPUP.value),
        Column("tooltip_content", "Tooltip Content", "str", ""),
        Column("tooltip_position", "Tooltip Position", "str", TooltipPosition.BOTTOM.value),
        Column("zoom_level", "Zoom Level", "float", 1.0),
        Column("pan_offset_x", "Pan Offset X", "float", 0.0),
        Column("pan_offset_y", "Pan Offset Y", "float", 0.0),
        Column("banner_text", "Banner Text", "str", ""),
        Column("is_visible", "Is Visible", "bool", True),
        Column("order", "Order", "int", 0),
        Column("created_at", "Created At", "timestamp"),
        Column("updated_at", "Updated At", "timestamp"),
    ),
)

ANALYTICS_SCHEMA = SheetSchema(
    kind=ANALYTICS_SHEET,
    entity=AnalyticsEvent,
    columns=(
        Column("id", "ID", "id", ""),
        Column("project_id", "Project ID", "id", ""),
        Column("event_type", "Event Type", "str", ""),
        Column("event_data", "Event Data", "json_dict"),
        Column("user_id", "User ID", "str", ""),
        Column("session_id", "Session ID", "str", ""),
        Column("timestamp", "Timestamp", "timestamp"),
        Column("ip_address", "IP Address", "str", ""),
        Column("user_agent", "User Agent", "str", ""),
    ),
)

# The registry lives in its own document and indexes every project's document id.
REGISTRY_SCHEMA = SheetSchema(
    kind=REGISTRY_SHEET,
    entity=Project,
    columns=(
        Column("id", "Project ID", "id", ""),
        Column("title", "Name", "str", ""),
        Column("description", "Description", "str", ""),
        Column("document_id", "Document ID", "id", ""),
        Column("status", "Status", "str", ProjectStatus.DRAFT.value),
        Column("created_at", "Created At", "timestamp"),
        Column("updated_at", "Updated At", "timestamp"),
        Column("created_by", "Created By", "str", ""),
    ),
)

PROJECT_DOCUMENT_SCHEMAS = (PROJECT_SCHEMA, SLIDE_SCHEMA, HOTSPOT_SCHEMA, ANALYTICS_SCHEMA)


class RowCodec(BaseUtils):
    """Bidirectional entity <-> row conversion driven by a SheetSchema."""

    def encode(self, schema: SheetSchema, entity) -> List[Any]:
        row: List[Any] = []
        for col in schema.columns:
            row.append(self._encode_cell(col, getattr(entity, col.attr, None)))
        return row

    def decode(self, schema: SheetSchema, row: List[Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for i, col in enumerate(schema.columns):
            cell = row[i] if i < len(row) else None
            values[col.attr] = self._decode_cell(col, cell)
        return values

    def to_entity(self, schema: SheetSchema, row: List[Any], **extra):
        values = self.decode(schema, row)
        values.update(extra)
        return schema.entity(**values)

    def _encode_cell(self, col: Column, value):
        if col.kind == "id":
            return self._coerce_field_to_str(value, col.default, strip=True)
        if col.kind == "str":
            if hasattr(value, "value"):
                value = value.value
            return self._coerce_field_to_str(value, col.default)
        if col.kind == "int":
            return self._coerce_int(value, col.default)
        if col.kind == "float":
            return self._coerce_float(value, col.default)
        if col.kind == "optional_float":
            return self._coerce_optional_float(value)
        if col.kind == "bool":
            return self._coerce_bool(value, col.default)
        if col.kind == "json_dict":
            return self._dump_json_cell(value if isinstance(value, dict) else {})
        if col.kind == "json_list":
            return self._dump_json_cell(list(value) if isinstance(value, (list, tuple)) else [])
        if col.kind == "timestamp":
            return self._format_timestamp(value)
        raise ValueError(f"Unknown column kind '{col.kind}' for {col.attr}")

    def _decode_cell(self, col: Column, cell):
        if col.kind == "id":
            return self._coerce_field_to_str(cell, col.default, strip=True)
        if col.kind == "str":
            return self._coerce_field_to_str(cell, col.default) or col.default
        if col.kind == "int":
            return self._coerce_int(cell, col.default)
        if col.kind == "float":
            return self._coerce_float(cell, col.default)
        if col.kind == "optional_float":
            return self._coerce_optional_float(cell)
        if col.kind == "bool":
            return self._coerce_bool(cell, col.default)
        if col.kind == "json_dict":
            return self._parse_json_cell(cell, dict)
        if col.kind == "json_list":
            return self._parse_json_cell(cell, list)
        if col.kind == "timestamp":
            return self._parse_timestamp(cell)
        raise ValueError(f"Unknown column kind '{col.kind}' for {col.attr}")
