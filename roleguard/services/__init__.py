"""
Services package for business logic layer.

This package contains the service classes that manage the role hierarchy,
evaluate authorization decisions and replace principal role assignments.
"""

from roleguard.services.audit_service import AuditService
from roleguard.services.authorization_service import AuthorizationService
from roleguard.services.principal_role_service import PrincipalRoleService
from roleguard.services.role_service import RoleService

__all__ = [
    "AuditService",
    "AuthorizationService",
    "PrincipalRoleService",
    "RoleService",
]
