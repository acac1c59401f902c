"""
Identity normalization. Every per-user key is partitioned by the
lower-cased email.
"""
from typing import Optional

from app.core.exceptions import ValidationException


def normalize_email(email: Optional[str]) -> str:
    """
    Canonical partition key for a user.

    Raises:
        ValidationException: If the email is empty or not an email address
    """
    if not email or not isinstance(email, str):
        raise ValidationException("Email is required.")
    normalized = email.strip().lower()
    if "@" not in normalized:
        raise ValidationException("A valid email is required.")
    return normalized


def owner_of(entity) -> Optional[str]:
    """Normalized creator email of a look or lookboard, if it has one."""
    created_by = getattr(entity, "created_by", None)
    if not created_by:
        return None
    return created_by.strip().lower()
