"""
Validation utilities for registration and listing input.
Provides field presence checks, email format checks, price parsing and amenity parsing.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from email_validator import validate_email, EmailNotValidError

from flatmarket.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


class ValidationUtils:
    """
    Utility class for common validation operations.
    Provides reusable validation methods for form input.
    """

    # Numeric(12, 2)
    PRICE_MAX_DIGITS = 12
    PRICE_DECIMAL_PLACES = 2
    PRICE_QUANTUM = Decimal("0.01")

    @staticmethod
    def is_blank(value: Any) -> bool:
        """A value counts as missing when it is None or only whitespace."""
        return value is None or not str(value).strip()

    @staticmethod
    def require_fields(values: dict, fields: Iterable[str], message: str) -> None:
        """
        Check that every named field has a non-blank value.

        Raises:
            ValidationError: With ``message`` and the missing fields listed
        """
        missing = [field for field in fields if ValidationUtils.is_blank(values.get(field))]
        if missing:
            raise ValidationError(
                message,
                field_errors=[{"field": field, "message": "This field is required"} for field in missing]
            )

    @staticmethod
    def validate_email_address(email: Any, field_name: str = "email") -> str:
        """
        Validate email address format.

        The address is returned as supplied (trimmed). Emails are case-sensitive
        lookup keys, so no normalization is applied.

        Raises:
            ValidationError: If email is invalid
        """
        if ValidationUtils.is_blank(email):
            raise ValidationError(f"{field_name} is required")

        email_str = str(email).strip()

        try:
            validate_email(email_str, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(
                f"Invalid email format for {field_name}: {str(e)}",
                field_errors=[{"field": field_name, "message": str(e)}]
            )

        return email_str

    @staticmethod
    def validate_price(value: Any, field_name: str = "price") -> Decimal:
        """
        Parse a price submitted as form text.

        Returns:
            Non-negative Decimal quantized to two decimal places

        Raises:
            ValidationError: If the value is not a finite, non-negative number
        """
        if ValidationUtils.is_blank(value):
            raise ValidationError(f"{field_name} is required")

        try:
            price = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{field_name} must be a valid number")

        if not price.is_finite():
            raise ValidationError(f"{field_name} must be a valid number")

        if price < 0:
            raise ValidationError(f"{field_name} cannot be negative")

        if price >= Decimal(10) ** (ValidationUtils.PRICE_MAX_DIGITS - ValidationUtils.PRICE_DECIMAL_PLACES):
            raise ValidationError(f"{field_name} is too large")

        # Trailing zeros are fine ("1.000"); only real sub-cent precision is rejected
        quantized = price.quantize(ValidationUtils.PRICE_QUANTUM)
        if quantized != price:
            raise ValidationError(
                f"{field_name} cannot have more than {ValidationUtils.PRICE_DECIMAL_PLACES} decimal places"
            )

        return quantized


def parse_amenities(raw: Optional[str]) -> List[str]:
    """
    Parse the amenities form field.

    A JSON array yields its string elements, unchanged and in order. Non-string
    elements are dropped. Anything else (omitted, blank, malformed JSON, or a
    JSON value that is not an array) yields an empty list.
    """
    if raw is None or not raw.strip():
        return []

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Ignoring malformed amenities payload")
        return []

    if not isinstance(parsed, list):
        return []

    amenities = [item for item in parsed if isinstance(item, str)]
    if len(amenities) != len(parsed):
        logger.debug(f"Dropped {len(parsed) - len(amenities)} non-string amenities")

    return amenities
