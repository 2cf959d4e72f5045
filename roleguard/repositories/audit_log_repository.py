"""
AuditLogRepository for the append-only audit trail.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roleguard.models import AuditLog
from roleguard.models.enums import AuditAction
from roleguard.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """
    Repository for audit rows.

    Rows are only ever added; update and delete are refused.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLog)

    async def delete(self, id: UUID) -> bool:
        raise NotImplementedError("Audit logs are immutable and cannot be deleted")

    async def update(self, id: UUID, **kwargs) -> Optional[AuditLog]:
        raise NotImplementedError("Audit logs are immutable and cannot be updated")

    async def create_log(
        self,
        user_id: Optional[UUID],
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[UUID],
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> AuditLog:
        """Add an audit row to the session and flush it."""
        audit_log = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            correlation_id=correlation_id,
            timestamp=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        self.session.add(audit_log)
        await self.session.flush()
        return audit_log

    async def search(
        self,
        actor_id: Optional[UUID] = None,
        actions: Optional[List[AuditAction]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """
        Find audit rows matching every given filter, newest first.

        Args:
            actor_id: Principal who performed the action
            actions: Any of these actions
            entity_type: "Role" or "User"
            entity_id: Role or principal acted upon
            skip: Rows to skip
            limit: Maximum rows to return
        """
        stmt = select(AuditLog)
        if actor_id is not None:
            stmt = stmt.where(AuditLog.user_id == actor_id)
        if actions:
            stmt = stmt.where(AuditLog.action.in_(actions))
        if entity_type is not None:
            stmt = stmt.where(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)

        result = await self.session.execute(
            stmt.order_by(AuditLog.timestamp.desc(), AuditLog.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_entity(
        self, entity_type: str, entity_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[AuditLog]:
        """Audit trail of one role or principal."""
        return await self.search(entity_type=entity_type, entity_id=entity_id, skip=skip, limit=limit)

    async def get_by_action(
        self, action: AuditAction, skip: int = 0, limit: int = 100
    ) -> List[AuditLog]:
        return await self.search(actions=[action], skip=skip, limit=limit)

    async def get_assignment_history(self, principal_id: UUID, limit: int = 100) -> List[AuditLog]:
        """Role changes and blocked removals recorded against a principal."""
        return await self.search(
            actions=[AuditAction.PRINCIPAL_ROLES_UPDATED, AuditAction.ROLE_REMOVAL_BLOCKED],
            entity_type="User",
            entity_id=principal_id,
            limit=limit,
        )
