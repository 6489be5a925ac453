# hotspot_sync/validation.py
import re
from numbers import Real

from hotspot_sync.errors import ValidationError
from hotspot_sync.models import (
    EventType,
    Hotspot,
    MediaType,
    Project,
    ProjectStatus,
    Slide,
    TooltipPosition,
    TriggerType,
)
from hotspot_sync.settings import (
    MAX_HOTSPOT_SIZE,
    MAX_ZOOM_LEVEL,
    MIN_HOTSPOT_SIZE,
    MIN_ZOOM_LEVEL,
)

_URL_RE = re.compile(r"^https?://.+", re.IGNORECASE)

TEXT_EVENTS = {EventType.TEXT_ON_IMAGE.value, EventType.TEXT_POPUP.value}


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_whole(value) -> bool:
    return _is_number(value) and float(value).is_integer()


def _values(enum_cls) -> set:
    return {e.value for e in enum_cls}


def hotspot_errors(hotspot: Hotspot) -> list[str]:
    errors: list[str] = []

    if not hotspot.id:
        errors.append("Hotspot ID is required")
    if not hotspot.slide_id:
        errors.append("Slide ID is required")

    if not _is_number(hotspot.x) or not _is_number(hotspot.y):
        errors.append("Valid position coordinates are required")
    elif not (0 <= hotspot.x <= 100 and 0 <= hotspot.y <= 100):
        errors.append("Position must be a percentage between 0 and 100")

    if not _is_whole(hotspot.size) or not (MIN_HOTSPOT_SIZE <= hotspot.size <= MAX_HOTSPOT_SIZE):
        errors.append(f"Hotspot size must be a whole number between {MIN_HOTSPOT_SIZE} and {MAX_HOTSPOT_SIZE}")

    if not isinstance(hotspot.color, str) or not hotspot.color.strip():
        errors.append("Color is required")

    if hotspot.trigger_type not in _values(TriggerType):
        errors.append(f"Unknown trigger type '{hotspot.trigger_type}'")
    if hotspot.tooltip_position not in _values(TooltipPosition):
        errors.append(f"Unknown tooltip position '{hotspot.tooltip_position}'")

    # Event type specific requirements
    event_type = hotspot.event_type
    if event_type not in _values(EventType):
        errors.append(f"Unknown event type '{event_type}'")
    elif event_type in TEXT_EVENTS:
        content = hotspot.tooltip_content
        if not isinstance(content, str) or not content.strip():
            errors.append("Tooltip content is required for text events")
    elif event_type == EventType.PAN_ZOOM.value:
        if not _is_number(hotspot.zoom_level) or not (MIN_ZOOM_LEVEL <= hotspot.zoom_level <= MAX_ZOOM_LEVEL):
            errors.append(f"Zoom level must be between {MIN_ZOOM_LEVEL} and {MAX_ZOOM_LEVEL}")
        if not _is_number(hotspot.pan_offset_x) or not _is_number(hotspot.pan_offset_y):
            errors.append("Pan offset must be numeric")

    if not isinstance(hotspot.is_visible, bool):
        errors.append("is_visible must be a boolean")

    return errors


def validate_hotspot(hotspot: Hotspot) -> None:
    errors = hotspot_errors(hotspot)
    if errors:
        raise ValidationError("Hotspot validation failed", errors)


def validate_slide(slide: Slide) -> None:
    errors: list[str] = []
    title = slide.title if isinstance(slide.title, str) else ""
    if not (1 <= len(title.strip()) <= 100):
        errors.append("Slide title must be between 1 and 100 characters")
    if slide.background_url and not _URL_RE.match(str(slide.background_url)):
        errors.append("Background URL must start with http:// or https://")
    if slide.background_type not in _values(MediaType):
        errors.append(f"Unknown background type '{slide.background_type}'")
    if slide.duration is not None and (not _is_number(slide.duration) or slide.duration <= 0):
        errors.append("Duration must be a positive number of seconds")
    if errors:
        raise ValidationError("Slide validation failed", errors)


def validate_project(project: Project) -> None:
    errors: list[str] = []
    title = project.title if isinstance(project.title, str) else ""
    if not (1 <= len(title.strip()) <= 100):
        errors.append("Project title must be between 1 and 100 characters")
    if len(project.description or "") > 500:
        errors.append("Project description must be at most 500 characters")
    if project.status not in _values(ProjectStatus):
        errors.append(f"Unknown project status '{project.status}'")
    if not isinstance(project.settings, dict):
        errors.append("Project settings must be a key/value mapping")
    if errors:
        raise ValidationError("Project validation failed", errors)
