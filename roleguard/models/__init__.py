"""
ORM models: roles, principals, scoped assignments and audit rows.
"""
from roleguard.models.audit_log import AuditLog
from roleguard.models.base import Base, TimestampMixin
from roleguard.models.enums import AuditAction, SystemRole
from roleguard.models.role import Role
from roleguard.models.user import User
from roleguard.models.user_role import UserRole

__all__ = [
    "AuditAction",
    "AuditLog",
    "Base",
    "Role",
    "SystemRole",
    "TimestampMixin",
    "User",
    "UserRole",
]
