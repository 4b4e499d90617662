"""Validation service for canonical records."""

import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.canonical import ENTITY_CLASSES, EntityType
from ..models.record import ValidationError, ValidationResult

logger = logging.getLogger(__name__)


Rule = Tuple[str, Callable[[Any], bool], str]


def _present(attribute: str) -> Callable[[Any], bool]:
    def check(record: Any) -> bool:
        value = getattr(record, attribute, None)
        if isinstance(value, str):
            return bool(value.strip())
        return value is not None
    return check


def _non_empty(attribute: str) -> Callable[[Any], bool]:
    return lambda record: bool(getattr(record, attribute, None))


def _has_name(record: Any) -> bool:
    return bool((record.first_name or "").strip() or (record.last_name or "").strip())


def _rating_in_range(record: Any) -> bool:
    return isinstance(record.rating, int) and 1 <= record.rating <= 5


class RecordValidator:
    """
    Validator for canonical records before a destination write.

    Every rule is evaluated; a record missing N required fields yields
    N errors.

    Supports:
    - Required field validation per entity type
    - Format validation for emails and decimal amounts
    - Custom validation rules
    """

    REQUIRED_RULES: Dict[EntityType, List[Rule]] = {
        EntityType.PRODUCT: [
            ("name", _present("name"), "Product name is required"),
            ("price", _present("price"), "Product price is required"),
        ],
        EntityType.CUSTOMER: [
            ("email", _present("email"), "Customer email is required"),
            ("first_name", _has_name, "Customer first name or last name is required"),
        ],
        EntityType.ORDER: [
            ("line_items", _non_empty("line_items"), "Order must have at least one line item"),
            ("total_price", _present("total_price"), "Order total price is required"),
        ],
        EntityType.COLLECTION: [
            ("name", _present("name"), "Collection name is required"),
        ],
        EntityType.COUPON: [
            ("code", _present("code"), "Coupon code is required"),
            ("amount", _present("amount"), "Coupon amount is required"),
            ("discount_type", _present("discount_type"), "Coupon discount type is required"),
        ],
        EntityType.REVIEW: [
            ("product_id", _present("product_id"), "Review product ID is required"),
            ("content", _present("content"), "Review content is required"),
            ("reviewer_name", _present("reviewer_name"), "Reviewer name is required"),
            ("reviewer_email", _present("reviewer_email"), "Reviewer email is required"),
            ("rating", _rating_in_range, "Review rating must be between 1 and 5"),
        ],
        EntityType.PAGE: [
            ("title", _present("title"), "Page title is required"),
            ("content", _present("content"), "Page content is required"),
        ],
        EntityType.BLOG_POST: [
            ("title", _present("title"), "Blog post title is required"),
            ("content", _present("content"), "Blog post content is required"),
        ],
    }

    # Fields checked for format only when present
    EMAIL_FIELDS = {
        EntityType.CUSTOMER: "email",
        EntityType.REVIEW: "reviewer_email",
    }
    DECIMAL_FIELDS = {
        EntityType.PRODUCT: ["price", "compare_at_price"],
        EntityType.ORDER: ["total_price"],
        EntityType.COUPON: ["amount"],
    }

    def __init__(self):
        """Initialize the validator."""
        self._custom_validators: Dict[EntityType, List[Callable[[Any], Optional[str]]]] = {}

    def register_validator(self, entity_type: EntityType, func: Callable[[Any], Optional[str]]) -> None:
        """Register a custom rule; it returns an error message or None."""
        self._custom_validators.setdefault(EntityType(entity_type), []).append(func)

    def validate(self, record: Any, entity_type: EntityType) -> ValidationResult:
        """
        Validate a canonical record for the given entity type.

        Args:
            record: Canonical entity
            entity_type: Entity type the record is meant to be created as

        Returns:
            ValidationResult listing every violated rule
        """
        entity_type = EntityType(entity_type)
        expected = ENTITY_CLASSES[entity_type]
        if not isinstance(record, expected):
            raise TypeError(f"Expected {expected.__name__} for {entity_type.value}, got {type(record).__name__}")

        result = ValidationResult()

        for field_name, check, message in self.REQUIRED_RULES.get(entity_type, []):
            if not check(record):
                result.issues.append(ValidationError(
                    field=field_name,
                    message=message,
                    error_type="required",
                ))

        email_field = self.EMAIL_FIELDS.get(entity_type)
        if email_field:
            error = ValidationRules.email(getattr(record, email_field) or None)
            if error:
                result.issues.append(ValidationError(
                    field=email_field,
                    message=error,
                    error_type="format",
                    value=getattr(record, email_field),
                ))

        for field_name in self.DECIMAL_FIELDS.get(entity_type, []):
            value = getattr(record, field_name)
            error = ValidationRules.decimal(value)
            if error:
                result.issues.append(ValidationError(
                    field=field_name,
                    message=f"{field_name}: {error}",
                    error_type="format",
                    value=value,
                ))

        for func in self._custom_validators.get(entity_type, []):
            error = func(record)
            if error:
                result.issues.append(ValidationError(field="*", message=error, error_type="custom"))

        if not result.valid:
            logger.debug(f"{entity_type.value} {getattr(record, 'original_id', '')} failed validation: {result.errors}")

        return result

    def is_valid(self, record: Any, entity_type: EntityType) -> bool:
        """Quick check if a record is valid."""
        return self.validate(record, entity_type).valid


class ValidationRules:
    """Common validation rules that can be composed."""

    @staticmethod
    def email(value: Any) -> Optional[str]:
        """Validate email format."""
        if value is None:
            return None

        email_pattern = r"^[a-zA-Z0-9._%+'-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        if not re.match(email_pattern, str(value).strip()):
            return "Invalid email format"
        return None

    @staticmethod
    def decimal(value: Any) -> Optional[str]:
        """Validate a decimal string such as '19.99'."""
        if value is None or value == "":
            return None

        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return "Invalid decimal amount"
        if not number.is_finite():
            return "Invalid decimal amount"
        if number < 0:
            return "Amount must not be negative"
        return None
