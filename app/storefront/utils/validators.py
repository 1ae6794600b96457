"""
Input validators used by route handlers before touching the DB.
"""
import uuid
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from storefront.errors import InvalidRequestError


def parse_id(value: str, kind: str) -> str:
    """Normalize a record id, rejecting anything that is not a UUID."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise InvalidRequestError(f"Invalid {kind} ID format")


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequestError(f"{field} is required")
    return value.strip()


def supplied_text(value: Optional[str]) -> Optional[str]:
    """Return the trimmed value, or None when it is absent or blank."""
    if value is None or not value.strip():
        return None
    return value.strip()


def supplied_email(value: Optional[str]) -> Optional[str]:
    """Like supplied_text, but a non-blank value must be a valid address."""
    value = supplied_text(value)
    if value is None:
        return None
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidRequestError(f"Invalid email address: {str(e)}")
    return value
