"""Record models for native platform data and per-item outcomes."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .canonical import EntityType, Platform


class ItemStatus(str, Enum):
    """Outcome of migrating a single item."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class NativeRecord:
    """
    A record in a platform's own API shape, tagged with its platform.

    Normalizer selection dispatches on the tag rather than on the
    shape of the data.
    """
    platform: Platform
    entity_type: EntityType
    data: Dict[str, Any]

    @property
    def id(self) -> str:
        value = self.data.get("id")
        return str(value) if value is not None else ""

    def get_field(self, path: str, default: Any = None) -> Any:
        """Get a field value by dot-notation path (e.g., 'billing.email')."""
        return get_path(self.data, path, default)


def get_path(data: Any, path: str, default: Any = None) -> Any:
    """Walk a dot-notation path through nested dicts and lists."""
    value = data
    for part in path.split("."):
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit():
            idx = int(part)
            value = value[idx] if idx < len(value) else None
        else:
            return default
        if value is None:
            return default
    return value


@dataclass
class ValidationError:
    """A validation error on a canonical record."""
    field: str
    message: str
    error_type: str = "validation"
    severity: str = "error"  # error, warning
    value: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "field": self.field,
            "message": self.message,
            "error_type": self.error_type,
            "severity": self.severity,
            "value": self.value,
        }


@dataclass
class ValidationResult:
    """Pass/fail verdict plus every rule a record violated."""
    issues: List[ValidationError] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.severity == "error"]

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors}


@dataclass
class MigrationPreview:
    """Source record, the payload it would become, and lossy-conversion warnings."""
    source: Dict[str, Any]
    destination: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "destination": self.destination,
            "warnings": self.warnings,
        }


@dataclass
class ItemOutcome:
    """What an item processor reports back to the job runner."""
    success: bool
    destination_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ItemResult:
    """Result of attempting to migrate one item of a job."""
    source_id: str
    status: ItemStatus
    destination_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == ItemStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source_id": self.source_id,
            "destination_id": self.destination_id,
            "status": self.status.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemResult":
        return cls(
            source_id=data["source_id"],
            status=ItemStatus(data["status"]),
            destination_id=data.get("destination_id"),
            error=data.get("error"),
        )
