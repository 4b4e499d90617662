"""Pre-reconciliation filtering of customer snapshots."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from ..models.canonical import Platform
from ..models.record import get_path

logger = logging.getLogger(__name__)


INACTIVE_FALLBACK_WARNING = (
    "Activity filter would remove all {count} customers, showing all customers instead. "
    "Order counts may be missing from the source data."
)


@dataclass
class CustomerFilterResult:
    """Customers kept for comparison, plus what the filters did."""
    records: List[Dict[str, Any]]
    warnings: List[str] = field(default_factory=list)
    fallback_applied: bool = False
    dropped_inactive: int = 0
    dropped_nameless: int = 0


def _first_present(record: Dict[str, Any], *paths: str) -> str:
    for path in paths:
        value = get_path(record, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def has_name(record: Dict[str, Any]) -> bool:
    first = _first_present(record, "first_name", "firstName", "billing.first_name")
    last = _first_present(record, "last_name", "lastName", "billing.last_name")
    return bool(first or last)


def _positive(value: Any) -> bool:
    if isinstance(value, dict):
        value = value.get("amount")
    if value is None or value == "":
        return False
    try:
        return Decimal(str(value)) > 0
    except InvalidOperation:
        return False


def is_active(record: Dict[str, Any]) -> bool:
    """A customer who has ordered or spent anything."""
    orders = record.get("orders_count", record.get("ordersCount"))
    spent = record.get("total_spent", record.get("totalSpent"))
    return _positive(orders) or _positive(spent)


def filter_customers(records: List[Dict[str, Any]], platform: Platform) -> CustomerFilterResult:
    """
    Drop presumed-spam customers from a source-of-truth snapshot.

    For WooCommerce, customers with no orders and no spend are dropped
    first, unless that would drop every customer; then the filter is
    skipped and a warning is returned. Customers with neither a first
    nor a last name are dropped on every platform.

    Args:
        records: Native customer records of the source-of-truth platform
        platform: Platform the records come from

    Returns:
        CustomerFilterResult with the kept records and any warnings
    """
    result = CustomerFilterResult(records=list(records))

    if Platform(platform) == Platform.WOOCOMMERCE:
        active = [r for r in result.records if is_active(r)]
        if result.records and not active:
            warning = INACTIVE_FALLBACK_WARNING.format(count=len(result.records))
            logger.warning(warning)
            result.warnings.append(warning)
            result.fallback_applied = True
        else:
            result.dropped_inactive = len(result.records) - len(active)
            result.records = active

    named = [r for r in result.records if has_name(r)]
    result.dropped_nameless = len(result.records) - len(named)
    result.records = named

    if result.dropped_inactive or result.dropped_nameless:
        logger.info(
            f"Customer filter kept {len(named)} of {len(records)} "
            f"({result.dropped_inactive} inactive, {result.dropped_nameless} without a name)"
        )
    return result
