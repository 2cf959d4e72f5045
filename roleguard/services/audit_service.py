"""
Centralized AuditService for role mutations and security events.

Wraps the AuditLogRepository and mirrors every persisted row as a
structured log event.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import Request

from roleguard.core.audit_utils import get_client_ip, get_correlation_id, get_user_agent
from roleguard.core.config import settings
from roleguard.core.logging import get_logger
from roleguard.models.audit_log import AuditLog
from roleguard.models.enums import AuditAction
from roleguard.repositories.audit_log_repository import AuditLogRepository

logger = get_logger(__name__)


class AuditService:
    """
    Service for audit logging with automatic request context extraction.

    Rows are added to the caller's session and committed with the mutation
    they describe. When built for a request, every row carries that
    request's client IP, user agent and correlation id.
    """

    def __init__(self, repository: AuditLogRepository, request: Optional[Request] = None):
        """
        Initialize AuditService with repository dependency.

        Args:
            repository: AuditLogRepository instance for database operations
            request: Request whose client context is stamped on every row
        """
        self.repository = repository
        self.request = request

    async def log_action(
        self,
        user_id: Optional[UUID],
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> Optional[AuditLog]:
        """
        Log an audit action with automatic context extraction from request.

        Args:
            user_id: ID of the acting principal (None for anonymous/system events)
            action: AuditAction enum value
            entity_type: "Role" or "User"
            entity_id: ID of the specific entity (optional)
            details: Additional context as dictionary (optional)
            request: Overrides the request the service was built with (optional)

        Returns:
            Created AuditLog object, or None when audit persistence is disabled
        """
        if request is None:
            request = self.request
        ip_address = get_client_ip(request)
        correlation_id = get_correlation_id(request)

        logger.info(
            f"audit_{action.value.lower()}",
            actor_id=user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else None,
            client_ip=ip_address,
            correlation_id=correlation_id,
        )

        if not settings.enable_audit_logging:
            return None

        return await self.repository.create_log(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=ip_address,
            user_agent=get_user_agent(request),
            correlation_id=correlation_id,
        )

    async def log_role_created(
        self, actor_id: Optional[UUID], role_id: UUID, role_name: str, parent_id: Optional[UUID]
    ) -> Optional[AuditLog]:
        """Log creation of a role."""
        return await self.log_action(
            user_id=actor_id,
            action=AuditAction.ROLE_CREATED,
            entity_type="Role",
            entity_id=role_id,
            details={"role_name": role_name, "parent_id": str(parent_id) if parent_id else None},
        )

    async def log_role_updated(
        self, actor_id: Optional[UUID], role_id: UUID, role_name: str, changes: Dict[str, Any]
    ) -> Optional[AuditLog]:
        """Log a description or parent change."""
        return await self.log_action(
            user_id=actor_id,
            action=AuditAction.ROLE_UPDATED,
            entity_type="Role",
            entity_id=role_id,
            details={"role_name": role_name, "changes": changes},
        )

    async def log_role_deleted(
        self, actor_id: Optional[UUID], role_id: UUID, role_name: str
    ) -> Optional[AuditLog]:
        """Log deletion of a role."""
        return await self.log_action(
            user_id=actor_id,
            action=AuditAction.ROLE_DELETED,
            entity_type="Role",
            entity_id=role_id,
            details={"role_name": role_name},
        )

    async def log_principal_roles_updated(
        self,
        actor_id: Optional[UUID],
        principal_id: UUID,
        organization_id: Optional[UUID],
        previous_role_names: List[str],
        new_role_names: List[str],
    ) -> Optional[AuditLog]:
        """Log replacement of a principal's direct roles."""
        return await self.log_action(
            user_id=actor_id,
            action=AuditAction.PRINCIPAL_ROLES_UPDATED,
            entity_type="User",
            entity_id=principal_id,
            details={
                "organization_id": str(organization_id) if organization_id else None,
                "previous_role_names": previous_role_names,
                "new_role_names": new_role_names,
            },
        )

    async def log_role_removal_blocked(
        self,
        actor_id: Optional[UUID],
        principal_id: UUID,
        organization_id: Optional[UUID],
        reason: str,
    ) -> Optional[AuditLog]:
        """Log a rejected attempt to strip the last or own administrator role."""
        return await self.log_action(
            user_id=actor_id,
            action=AuditAction.ROLE_REMOVAL_BLOCKED,
            entity_type="User",
            entity_id=principal_id,
            details={
                "reason": reason,
                "organization_id": str(organization_id) if organization_id else None,
            },
        )
