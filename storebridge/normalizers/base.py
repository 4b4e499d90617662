"""Base normalizer interface and shared conversion helpers."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser

from ..errors import CapabilityMismatchError, MalformedRecordError
from ..models.canonical import EntityType, Platform

logger = logging.getLogger(__name__)


NormalizerPair = Tuple[Callable[[Dict[str, Any]], Any], Callable[[Any], Dict[str, Any]]]


class BaseNormalizer(ABC):
    """
    Base class for a platform's normalizers.

    Each platform registers one (to_canonical, to_native) pair per entity
    type it supports. Entity types without a pair are a capability
    mismatch, not a data problem.
    """

    platform: Platform

    def __init__(self):
        """Initialize the normalizer registry."""
        self._normalizers: Dict[EntityType, NormalizerPair] = self._register_normalizers()

    @abstractmethod
    def _register_normalizers(self) -> Dict[EntityType, NormalizerPair]:
        """Return the normalizer pairs this platform supports."""
        pass

    def supports(self, entity_type: EntityType) -> bool:
        return EntityType(entity_type) in self._normalizers

    @property
    def entity_types(self) -> List[EntityType]:
        return list(self._normalizers.keys())

    def _pair(self, entity_type: EntityType) -> NormalizerPair:
        pair = self._normalizers.get(EntityType(entity_type))
        if pair is None:
            raise CapabilityMismatchError(EntityType(entity_type).value, self.platform.value)
        return pair

    def to_canonical(self, entity_type: EntityType, data: Dict[str, Any]) -> Any:
        """
        Convert a native record into its canonical entity.

        Args:
            entity_type: Entity type of the record
            data: Record in the platform's API shape

        Returns:
            Canonical entity

        Raises:
            CapabilityMismatchError: if the platform has no such entity type
            MalformedRecordError: if the record is not a mapping
        """
        to_canonical, _ = self._pair(entity_type)
        if not isinstance(data, dict):
            raise MalformedRecordError(
                f"{self.platform.value} {EntityType(entity_type).value} record must be a mapping, "
                f"got {type(data).__name__}"
            )
        return to_canonical(data)

    def to_native(self, entity_type: EntityType, record: Any) -> Dict[str, Any]:
        """Convert a canonical entity into this platform's create payload."""
        _, to_native = self._pair(entity_type)
        return to_native(record)


def require_identity(data: Dict[str, Any], entity: str, keys: Iterable[str]) -> None:
    """Raise if none of the identifying fields is present."""
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return
    raise MalformedRecordError(f"{entity} record has no identifying field ({', '.join(keys)})")


def text(value: Any) -> Optional[str]:
    """Return a string, mapping None and empty strings to None."""
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def money(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Return a decimal string for a money field without touching float arithmetic."""
    if value is None or value == "":
        return default
    if isinstance(value, dict):
        # MoneyV2 / MoneyBag shapes
        if "shopMoney" in value:
            return money(value["shopMoney"], default)
        return money(value.get("amount"), default)
    return str(value).strip() or default


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_decimal(value: Any) -> Optional[str]:
    """Canonical string form of a decimal ('12.50' and '12.5' both become '12.5')."""
    if value is None or value == "":
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return str(value).strip()
    return format_decimal(number)


def format_decimal(number: Decimal) -> str:
    number = number.normalize()
    if number == 0:
        return "0"
    return format(number, "f")


def percent_from_fraction(fraction: Any) -> Optional[str]:
    """Convert a fraction such as 0.15 into a percentage string such as '15'."""
    if fraction is None or fraction == "":
        return None
    return format_decimal(Decimal(str(fraction)) * 100)


def fraction_from_percent(amount: Optional[str]) -> float:
    """Convert a percentage string into the fraction a destination expects."""
    try:
        return float(amount or 0) / 100
    except (TypeError, ValueError):
        raise MalformedRecordError(f"Percentage amount is not a number: {amount!r}")


def parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def nodes(connection: Any) -> List[Dict[str, Any]]:
    """Flatten a GraphQL connection (edges or nodes) or a plain list into a list of dicts."""
    if not connection:
        return []
    if isinstance(connection, list):
        return [item for item in connection if isinstance(item, dict)]
    if isinstance(connection, dict):
        if "edges" in connection:
            return [e["node"] for e in connection.get("edges") or [] if isinstance(e, dict) and e.get("node")]
        if "nodes" in connection:
            return [n for n in connection.get("nodes") or [] if isinstance(n, dict)]
    return []


def names(values: Any) -> List[str]:
    """Extract names from a list of strings or of {'name': ...} objects."""
    result = []
    for value in values or []:
        if isinstance(value, dict):
            name = value.get("name")
        elif isinstance(value, str):
            name = value
        else:
            continue
        if name:
            result.append(name)
    return result
