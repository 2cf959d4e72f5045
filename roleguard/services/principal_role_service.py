"""
Principal role assignment with last-admin and self-protection guards.

All assignment changes funnel through ``set_principal_roles`` so the admin
invariants cannot be bypassed by a narrower entry point.
"""
import asyncio
from typing import List, Optional, Sequence
from uuid import UUID

from roleguard.core.config import settings
from roleguard.core.exceptions import NotFoundError, ValidationError
from roleguard.core.logging import get_logger
from roleguard.models.role import Role
from roleguard.models.user import User
from roleguard.repositories.role_repository import RoleRepository
from roleguard.repositories.user_repository import UserRepository
from roleguard.services.audit_service import AuditService

logger = get_logger(__name__)

# Serializes every assignment change in this process. Row locks on the admin
# roles serialize across processes on databases that support them.
_assignment_lock = asyncio.Lock()

LAST_ADMIN_MESSAGE = "Cannot remove the last admin"
SELF_REMOVAL_MESSAGE = "You cannot remove your own admin role"


def admin_role_names(organization_id: Optional[UUID] = None) -> List[str]:
    """Role names that make a principal an administrator of a scope."""
    if organization_id is None:
        return [settings.platform_admin_role]
    return settings.organization_admin_roles_list


class PrincipalRoleService:
    """Service replacing a principal's direct roles within one scope."""

    def __init__(
        self,
        user_repository: UserRepository,
        role_repository: RoleRepository,
        audit_service: AuditService,
    ):
        """Initialize with injected dependencies.

        Args:
            user_repository: Repository for principals and their assignments
            role_repository: Repository for role lookups and row locks
            audit_service: Service for audit logging
        """
        self.user_repo = user_repository
        self.role_repo = role_repository
        self.audit_service = audit_service
        self.session = user_repository.session

    async def _load_principal(self, principal_id: UUID) -> User:
        user = await self.user_repo.get_by_id(principal_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _resolve_roles(self, role_ids: Sequence[UUID]) -> List[Role]:
        """Load roles in the given order, rejecting unknown ids."""
        unique_ids = list(dict.fromkeys(role_ids))
        found = {role.id: role for role in await self.role_repo.get_by_ids(unique_ids)}
        missing = [str(role_id) for role_id in unique_ids if role_id not in found]
        if missing:
            raise ValidationError(f"Unknown role id(s): {', '.join(missing)}", field="role_ids")
        return [found[role_id] for role_id in unique_ids]

    def _scoped_role_names(self, user: User, organization_id: Optional[UUID]) -> List[str]:
        return [
            assignment.role.name
            for assignment in user.role_assignments
            if assignment.organization_id == organization_id
        ]

    async def _check_admin_removal(
        self,
        user: User,
        roles: List[Role],
        actor_id: Optional[UUID],
        organization_id: Optional[UUID],
    ) -> Optional[str]:
        """
        Return the reason the change must be rejected, or None.

        Must run inside the assignment critical section, after the admin
        role rows are locked and the principal's assignments are re-read.
        """
        admin_names = admin_role_names(organization_id)
        holds_admin = any(name in admin_names for name in self._scoped_role_names(user, organization_id))
        keeps_admin = any(role.name in admin_names for role in roles)
        if not holds_admin or keeps_admin:
            return None

        if actor_id is not None and actor_id == user.id:
            return SELF_REMOVAL_MESSAGE

        remaining = await self.user_repo.count_role_holders(
            admin_names, organization_id, exclude_user_id=user.id
        )
        if remaining == 0:
            return LAST_ADMIN_MESSAGE
        return None

    async def _reject(
        self,
        principal_id: UUID,
        actor_id: Optional[UUID],
        organization_id: Optional[UUID],
        reason: str,
    ) -> None:
        await self.session.rollback()
        logger.warning(
            "role_removal_blocked",
            actor_id=actor_id,
            principal_id=principal_id,
            organization_id=str(organization_id) if organization_id else None,
            reason=reason,
        )
        try:
            await self.audit_service.log_role_removal_blocked(actor_id, principal_id, organization_id, reason)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        raise ValidationError(reason, field="role_ids")

    async def set_principal_roles(
        self,
        principal_id: UUID,
        role_ids: Sequence[UUID],
        actor_id: Optional[UUID] = None,
        organization_id: Optional[UUID] = None,
    ) -> List[Role]:
        """
        Replace a principal's direct roles within one scope.

        The admin check and the replacement run in one critical section: the
        admin role rows are locked, the principal's assignments re-read, the
        admin holders recounted as they would be after the change, and the
        replacement committed before the section is left.

        Args:
            principal_id: Principal whose roles are replaced
            role_ids: Complete new set of direct roles for the scope
            actor_id: Principal performing the change
            organization_id: Scope (None = platform-wide)

        Returns:
            The principal's direct roles in this scope after the change

        Raises:
            NotFoundError: If the principal does not exist
            ValidationError: If a role id is unknown, or the change would
                remove the actor's own admin role or the last admin
        """
        user = await self._load_principal(principal_id)
        roles = await self._resolve_roles(role_ids)

        async with _assignment_lock:
            reason = None
            try:
                await self.role_repo.lock_by_names(admin_role_names(organization_id))
                await self.session.refresh(user, ["role_assignments"])

                reason = await self._check_admin_removal(user, roles, actor_id, organization_id)
                if reason is None:
                    previous_names = self._scoped_role_names(user, organization_id)
                    await self.user_repo.replace_assignments(
                        user, roles, organization_id=organization_id, assigned_by=actor_id
                    )
                    new_names = [role.name for role in roles]
                    await self.audit_service.log_principal_roles_updated(
                        actor_id, user.id, organization_id, previous_names, new_names
                    )
                    await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

            if reason is not None:
                await self._reject(principal_id, actor_id, organization_id, reason)

        logger.info(
            "principal_roles_updated",
            actor_id=actor_id,
            principal_id=principal_id,
            organization_id=str(organization_id) if organization_id else None,
            previous_role_names=previous_names,
            new_role_names=new_names,
        )
        return roles

    async def add_principal_role(
        self,
        principal_id: UUID,
        role_id: UUID,
        actor_id: Optional[UUID] = None,
        organization_id: Optional[UUID] = None,
    ) -> List[Role]:
        """Grant one more direct role through the guarded replacement."""
        user = await self._load_principal(principal_id)
        current = [
            assignment.role_id
            for assignment in user.role_assignments
            if assignment.organization_id == organization_id
        ]
        if role_id in current:
            return await self._resolve_roles(current)
        return await self.set_principal_roles(
            principal_id, current + [role_id], actor_id=actor_id, organization_id=organization_id
        )

    async def remove_principal_role(
        self,
        principal_id: UUID,
        role_id: UUID,
        actor_id: Optional[UUID] = None,
        organization_id: Optional[UUID] = None,
    ) -> List[Role]:
        """Revoke one direct role through the guarded replacement."""
        user = await self._load_principal(principal_id)
        current = [
            assignment.role_id
            for assignment in user.role_assignments
            if assignment.organization_id == organization_id
        ]
        if role_id not in current:
            raise NotFoundError("Role is not assigned to this user")
        return await self.set_principal_roles(
            principal_id,
            [existing for existing in current if existing != role_id],
            actor_id=actor_id,
            organization_id=organization_id,
        )
