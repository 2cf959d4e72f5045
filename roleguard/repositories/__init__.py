"""
Data access for roles, principals and the audit trail.
"""
from roleguard.repositories.audit_log_repository import AuditLogRepository
from roleguard.repositories.base import BaseRepository
from roleguard.repositories.role_repository import RoleRepository
from roleguard.repositories.user_repository import UserRepository

__all__ = [
    "AuditLogRepository",
    "BaseRepository",
    "RoleRepository",
    "UserRepository",
]
