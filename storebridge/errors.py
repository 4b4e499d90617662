"""Exception types raised by the migration engine."""

from typing import List, Optional


class StoreBridgeError(Exception):
    """Base class for all errors raised by this package."""


class CapabilityMismatchError(StoreBridgeError):
    """An entity type has no normalizer for one of the requested platforms."""

    def __init__(self, entity_type: str, platform: str):
        self.entity_type = entity_type
        self.platform = platform
        super().__init__(f"Entity type '{entity_type}' is not supported on {platform}")


class MalformedRecordError(StoreBridgeError):
    """A native record is structurally unusable (not a mapping, no identity)."""


class ValidationFailedError(StoreBridgeError):
    """A canonical record failed required-field validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Validation failed: " + "; ".join(self.errors))


class ConnectorError(StoreBridgeError):
    """A platform API could not be reached or refused a read."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DestinationWriteError(ConnectorError):
    """The destination platform rejected a create or update payload."""
