"""
Input validation for identity fields.

The registry core only rejects empty values; formats are checked here at
the HTTP and command line boundary.
"""

from __future__ import annotations

import re

from .errors import InvalidInput

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NATIONAL_ID_PATTERN = re.compile(r"^\d{12}$")
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_required(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(field_name, "is required")
    return value


def validate_email(value: object, field_name: str = "email") -> str:
    """Validate the loose ``local@domain.tld`` shape."""
    value = validate_required(value, field_name)
    if not EMAIL_PATTERN.match(value):
        raise InvalidInput(field_name, "invalid email format")
    return value


def validate_national_id(value: object, field_name: str = "id_number") -> str:
    """Validate a 12 digit national ID number."""
    value = validate_required(value, field_name)
    if not NATIONAL_ID_PATTERN.match(value):
        raise InvalidInput(field_name, "must be 12 digits")
    return value


def validate_address(value: object, field_name: str = "owner_address") -> str:
    """Validate an account address (``0x`` followed by 40 hex digits).

    The lower-case form is returned; the registry keys on it.
    """
    value = validate_required(value, field_name)
    if not ADDRESS_PATTERN.match(value):
        raise InvalidInput(field_name, "invalid account address format")
    return value.lower()


__all__ = [
    "validate_address",
    "validate_email",
    "validate_national_id",
    "validate_required",
]
