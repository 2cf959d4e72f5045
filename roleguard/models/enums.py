"""
Enum definitions for database models.

This module defines Python enums for role names and audit actions to ensure
type safety and consistency across the application.
"""
from enum import Enum


class SystemRole(str, Enum):
    """Seeded roles that ship with every installation."""
    USER = "ROLE_USER"
    MODERATOR = "ROLE_MODERATOR"
    ADMIN = "ROLE_ADMIN"
    OWNER = "ROLE_OWNER"
    EDITOR = "ROLE_EDITOR"


class AuditAction(str, Enum):
    """Action values for AuditLog entity."""
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"
    PRINCIPAL_ROLES_UPDATED = "PRINCIPAL_ROLES_UPDATED"
    ROLE_REMOVAL_BLOCKED = "ROLE_REMOVAL_BLOCKED"
