"""Error taxonomy for the hotspot sync engine."""


class HotspotSyncError(Exception):
    """Base exception for store, adapter and sync operations."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.details = details or {}
        super().__init__(message)


class ValidationError(HotspotSyncError):
    """A mutation was rejected; the entity is unchanged."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        text = f"{message}: {', '.join(self.errors)}" if self.errors else message
        super().__init__(text, {"errors": self.errors})


class NotFound(HotspotSyncError):
    """Raised when an operation targets an unknown id."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} {entity_id} not found", {"kind": kind, "id": entity_id})


class CapacityExceeded(HotspotSyncError):
    """Raised when a slide already holds the maximum number of hotspots."""

    code = "CAPACITY_EXCEEDED"

    def __init__(self, slide_id: str, limit: int):
        self.slide_id = slide_id
        self.limit = limit
        super().__init__(
            f"Maximum {limit} hotspots allowed per slide",
            {"slide_id": slide_id, "limit": limit},
        )


class PersistenceFailure(HotspotSyncError):
    """Raised when a row-store write fails; queued changes are kept for retry."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, slide_id: str | None = None):
        self.slide_id = slide_id
        super().__init__(message, {"slide_id": slide_id})


class NotInitialized(HotspotSyncError):
    """Raised when an operation runs before its dependencies are wired."""

    code = "NOT_INITIALIZED"


class CascadeOrderViolation(RuntimeError):
    """
    A parent row was deleted while child rows still reference it.
    This is a programming error and is never caught by the engine.
    """
