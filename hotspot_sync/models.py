# hotspot_sync/models.py
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    YOUTUBE = "youtube"


class TriggerType(str, Enum):
    CLICK = "click"
    HOVER = "hover"
    TOUCH = "touch"


class EventType(str, Enum):
    TEXT_ON_IMAGE = "text_on_image"
    TEXT_POPUP = "text_popup"
    PAN_ZOOM = "pan_zoom"
    SPOTLIGHT = "spotlight"


class TooltipPosition(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REORDER = "reorder"


def default_project_settings() -> Dict[str, Any]:
    return {
        "auto_save": True,
        "version": "1.0.0",
        "theme": "light",
        "analytics": True,
    }


@dataclass
class Project:
    id: str
    title: str
    description: str = ""
    settings: Dict[str, Any] = field(default_factory=default_project_settings)
    status: str = ProjectStatus.DRAFT.value
    analytics: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    created_by: str = ""
    shared_with: List[str] = field(default_factory=list)
    document_id: str = ""


@dataclass
class Slide:
    id: str
    project_id: str
    title: str = "Untitled Slide"
    background_url: str = ""
    background_type: str = MediaType.IMAGE.value
    order: int = 0
    duration: Optional[float] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Hotspot:
    id: str
    slide_id: str
    name: str = "New hotspot"
    color: str = "#ffffff"
    size: int = 50
    x: float = 50.0
    y: float = 50.0
    pulse_animation: bool = True
    trigger_type: str = TriggerType.CLICK.value
    event_type: str = EventType.TEXT_POPUP.value
    tooltip_content: str = "New hotspot"
    tooltip_position: str = TooltipPosition.BOTTOM.value
    zoom_level: float = 1.0
    pan_offset_x: float = 0.0
    pan_offset_y: float = 0.0
    banner_text: str = ""
    is_visible: bool = True
    order: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def snapshot(self) -> "Hotspot":
        return replace(self)


HOTSPOT_FIELDS = frozenset(f.name for f in fields(Hotspot))
SLIDE_FIELDS = frozenset(f.name for f in fields(Slide))
PROJECT_FIELDS = frozenset(f.name for f in fields(Project))


@dataclass
class AnalyticsEvent:
    id: str
    project_id: str
    event_type: str = ""
    event_data: Dict[str, Any] = field(default_factory=dict)
    user_id: str = ""
    session_id: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    ip_address: str = ""
    user_agent: str = ""


@dataclass(frozen=True)
class ChangeRecord:
    """
    One pending local mutation awaiting durable persistence.

    `entity` is a hotspot snapshot, or the full reordered list for REORDER.
    """
    seq: int
    action: ChangeAction
    slide_id: str
    entity: Any
    previous: Optional[Hotspot] = None
    timestamp: float = 0.0

    @property
    def entity_id(self) -> Optional[str]:
        return getattr(self.entity, "id", None)


def to_public(value: Any) -> Any:
    """JSON-friendly view of models (and lists / dicts of them) for API responses."""
    if isinstance(value, list):
        return [to_public(v) for v in value]
    if isinstance(value, dict):
        return {k: to_public(v) for k, v in value.items()}
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "__dataclass_fields__"):
        return {f.name: to_public(getattr(value, f.name)) for f in fields(value)}
    return value
