"""Engine services: validation, mapping, reconciliation and job running."""

from .validator import RecordValidator, ValidationRules
from .mapper import MigrationMapper
from .reconciler import KeyIndex, MatchKeys, ReconciliationEngine, extract_source_order_number, normalize_key
from .filters import CustomerFilterResult, filter_customers
from .job_runner import (
    InMemoryJobStore,
    JobAlreadyRunningError,
    JobNotFoundError,
    JobRunner,
    JobStore,
    JsonFileJobStore,
)

__all__ = [
    "RecordValidator",
    "ValidationRules",
    "MigrationMapper",
    "ReconciliationEngine",
    "KeyIndex",
    "MatchKeys",
    "normalize_key",
    "extract_source_order_number",
    "filter_customers",
    "CustomerFilterResult",
    "JobRunner",
    "JobStore",
    "InMemoryJobStore",
    "JsonFileJobStore",
    "JobAlreadyRunningError",
    "JobNotFoundError",
]
