"""Migration job models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime
import uuid

from .canonical import EntityType, Platform
from .record import ItemResult


class JobStatus(str, Enum):
    """Status of a migration job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class MigrationJob:
    """
    A batch of item IDs migrated from one platform to another.

    progress counts the items attempted so far and only ever grows.
    """
    entity_type: EntityType
    source: Platform
    destination: Platform
    items: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    results: List[ItemResult] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        """Count of successful results."""
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        """Count of failed results."""
        return sum(1 for r in self.results if not r.success)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.PARTIAL, JobStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "type": self.entity_type.value,
            "source": self.source.value,
            "destination": self.destination.value,
            "items": list(self.items),
            "status": self.status.value,
            "progress": self.progress,
            "total": self.total,
            "results": [r.to_dict() for r in self.results],
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationJob":
        """Create from dictionary."""
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            entity_type=EntityType(data["type"]),
            source=Platform(data["source"]),
            destination=Platform(data["destination"]),
            items=list(data.get("items", [])),
            status=JobStatus(data.get("status", "pending")),
            progress=data.get("progress", 0),
            results=[ItemResult.from_dict(r) for r in data.get("results", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            error=data.get("error"),
        )
