"""
Role name and description validation.

The role name pattern is defined once here and shared by the service layer
and the request schemas.
"""
import re
from typing import Optional

from roleguard.core.exceptions import ValidationError


# "ROLE_" followed by a letter and at least one more letter, digit or underscore.
ROLE_NAME_PATTERN = re.compile(r"^ROLE_[A-Z][A-Z0-9_]+$")

ROLE_NAME_MAX_LENGTH = 100
ROLE_DESCRIPTION_MAX_LENGTH = 500


def is_valid_role_name(name: object) -> bool:
    """Return True if ``name`` is a well-formed role name."""
    if not isinstance(name, str) or len(name) > ROLE_NAME_MAX_LENGTH:
        return False
    return ROLE_NAME_PATTERN.fullmatch(name) is not None


def validate_role_name(name: str) -> str:
    """
    Validate a role name.

    Args:
        name: Candidate role name

    Returns:
        The name, unchanged

    Raises:
        ValidationError: If the name does not match ``ROLE_[A-Z][A-Z0-9_]+``
    """
    if not is_valid_role_name(name):
        raise ValidationError(
            "Role name must start with ROLE_, followed by an uppercase letter and at least "
            "one more uppercase letter, digit or underscore",
            field="name",
        )
    return name


def validate_role_description(description: Optional[str]) -> Optional[str]:
    """
    Validate an optional role description.

    Raises:
        ValidationError: If the description exceeds 500 characters
    """
    if description is not None and len(description) > ROLE_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {ROLE_DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    return description
