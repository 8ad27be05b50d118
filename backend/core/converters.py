import math
from typing import Any, Optional
from uuid import UUID

from core.errors import NotFoundError, ValidationError


def to_uuid(value: Any, label: str = "Record") -> UUID:
    """Coerce an id coming from a caller; ids that cannot exist are reported as not found."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError(f"{label} {value} not found")


def parse_quantity(value: Any, field: str = "Quantity") -> int:
    """Whole-number quantity from form input (int, float or numeric text).

    Empty input, NaN, infinities and fractional values are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} is required")
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    if not number.is_integer():
        raise ValidationError(f"{field} must be a whole number")
    return int(number)


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    return clean_text(value) or None


def sku_key(value: Any) -> str:
    """Case-insensitive SKU match key, the same for ASCII and non-ASCII text."""
    return clean_text(value).casefold()
