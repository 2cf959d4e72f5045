"""
Role service for creating, editing and removing roles in the hierarchy.

Every mutation is committed here, and the process-wide hierarchy cache is
invalidated only after the commit succeeds.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from roleguard.core.config import settings
from roleguard.core.exceptions import DuplicateRoleError, NotFoundError, ValidationError
from roleguard.core.hierarchy_cache import HierarchyCache
from roleguard.core.logging import get_logger
from roleguard.core.rate_limiter import RoleMutationThrottle
from roleguard.core.role_validator import validate_role_description, validate_role_name
from roleguard.models.role import Role
from roleguard.repositories.role_repository import RoleRepository
from roleguard.schemas.role import (
    AssignedUserSummary,
    RoleDetailResponse,
    RoleResponse,
    RoleSummary,
    RoleUpdateRequest,
)
from roleguard.services.audit_service import AuditService

logger = get_logger(__name__)


def _build_response(role: Role, parent_name: Optional[str], user_count: int, child_count: int) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        parent_id=role.parent_id,
        parent_name=parent_name,
        is_system=role.is_system,
        user_count=user_count or 0,
        child_count=child_count or 0,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


class RoleService:
    """Service for role CRUD operations."""

    def __init__(
        self,
        role_repository: RoleRepository,
        audit_service: AuditService,
        hierarchy_cache: HierarchyCache,
        mutation_throttle: Optional[RoleMutationThrottle] = None,
    ):
        """Initialize with injected dependencies.

        Args:
            role_repository: Repository for role operations
            audit_service: Service for audit logging
            hierarchy_cache: Process-wide hierarchy cache to invalidate on changes
            mutation_throttle: Per-actor budget for updates and deletions
                (None = unthrottled)
        """
        self.role_repo = role_repository
        self.audit_service = audit_service
        self.cache = hierarchy_cache
        self.throttle = mutation_throttle
        self.session = role_repository.session

    async def _get_response(self, role_id: UUID) -> RoleResponse:
        row = await self.role_repo.get_with_counts(role_id)
        if row is None:
            raise NotFoundError("Role not found")
        return _build_response(*row)

    async def _ensure_parent_exists(self, parent_id: UUID) -> None:
        if not await self.role_repo.exists(parent_id):
            raise ValidationError("Parent role not found", field="parent_id")

    async def _creates_cycle(self, role_id: UUID, parent_id: UUID) -> bool:
        """
        Walk up from ``parent_id`` and report whether ``role_id`` is reached.

        The walk reads parent links from the store one hop at a time and stops
        on a repeated node, so corrupt cyclic data cannot hang it.
        """
        visited = set()
        current = parent_id
        while current is not None:
            if current == role_id:
                return True
            if current in visited:
                logger.warning("role_hierarchy_cycle_detected", role_id=current)
                return False
            visited.add(current)
            current = await self.role_repo.get_parent_id(current)
        return False

    async def list_roles(self) -> List[RoleResponse]:
        """List all roles ordered by name, with parent name and counts."""
        rows = await self.role_repo.list_with_counts()
        return [_build_response(*row) for row in rows]

    async def get_role(
        self,
        role_id: UUID,
        users_limit: Optional[int] = None,
        users_offset: int = 0,
    ) -> RoleDetailResponse:
        """
        Get a role with its assigned users and child roles.

        Args:
            role_id: Role UUID
            users_limit: Page size for assigned users (capped at the configured maximum)
            users_offset: Number of assigned users to skip

        Returns:
            Role detail

        Raises:
            ValidationError: If pagination values are negative
            NotFoundError: If the role does not exist
        """
        if users_limit is not None and users_limit < 0:
            raise ValidationError("users_limit must not be negative", field="users_limit")
        if users_offset < 0:
            raise ValidationError("users_offset must not be negative", field="users_offset")

        max_limit = settings.role_users_max_limit
        limit = max_limit if users_limit is None else min(users_limit, max_limit)

        base = await self._get_response(role_id)
        users = await self.role_repo.get_assigned_users(role_id, skip=users_offset, limit=limit)
        children = await self.role_repo.get_children(role_id)

        return RoleDetailResponse(
            **base.model_dump(),
            users=[AssignedUserSummary.model_validate(user) for user in users],
            total_users=base.user_count,
            has_more_users=users_offset + len(users) < base.user_count,
            child_roles=[RoleSummary.model_validate(child) for child in children],
        )

    async def create_role(
        self,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[UUID] = None,
        actor_id: Optional[UUID] = None,
    ) -> RoleResponse:
        """
        Create a non-system role.

        Args:
            name: Role name matching ``ROLE_[A-Z][A-Z0-9_]+``
            description: Optional description (max 500 characters)
            parent_id: Optional role to inherit from
            actor_id: Principal performing the change

        Returns:
            Created role

        Raises:
            ValidationError: If the name, description or parent is invalid
            DuplicateRoleError: If a role with this name already exists
        """
        validate_role_name(name)
        validate_role_description(description)

        if await self.role_repo.get_by_name(name) is not None:
            raise DuplicateRoleError(name)
        if parent_id is not None:
            await self._ensure_parent_exists(parent_id)

        try:
            role = await self.role_repo.create(
                name=name,
                description=description,
                parent_id=parent_id,
                is_system=False,
            )
            await self.audit_service.log_role_created(actor_id, role.id, role.name, parent_id)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateRoleError(name)
        except Exception:
            await self.session.rollback()
            raise

        self.cache.invalidate()
        logger.info(
            "role_created",
            actor_id=actor_id,
            role_id=role.id,
            role_name=name,
            parent_id=parent_id,
        )
        return await self._get_response(role.id)

    async def update_role(
        self,
        role_id: UUID,
        update: RoleUpdateRequest,
        actor_id: Optional[UUID] = None,
    ) -> RoleResponse:
        """
        Update a role's description and/or parent.

        Only fields explicitly set on ``update`` are applied. An explicit
        ``parent_id=None`` detaches the role from its parent.

        Raises:
            NotFoundError: If the role does not exist
            ValidationError: If the description is too long, the parent is
                missing, or the new parent would create a cycle
            RateLimitedError: If the actor has used up its update budget
        """
        if self.throttle is not None and actor_id is not None:
            self.throttle.check_update(actor_id)

        role = await self.role_repo.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role not found")

        fields = update.model_fields_set
        changes: Dict[str, Any] = {}

        if "description" in fields and update.description != role.description:
            validate_role_description(update.description)
            changes["description"] = {"old": role.description, "new": update.description}

        parent_changed = False
        if "parent_id" in fields and update.parent_id != role.parent_id:
            new_parent_id = update.parent_id
            if new_parent_id is not None:
                if new_parent_id == role_id:
                    raise ValidationError("Role cannot be its own parent", field="parent_id")
                await self._ensure_parent_exists(new_parent_id)
                if await self._creates_cycle(role_id, new_parent_id):
                    raise ValidationError(
                        "Cannot set parent to a descendant role (circular hierarchy)",
                        field="parent_id",
                    )
            changes["parent_id"] = {
                "old": str(role.parent_id) if role.parent_id else None,
                "new": str(new_parent_id) if new_parent_id else None,
            }
            parent_changed = True

        if not changes:
            return await self._get_response(role_id)

        try:
            if "description" in changes:
                role.description = update.description
            if parent_changed:
                role.parent_id = update.parent_id
            await self.session.flush()
            await self.audit_service.log_role_updated(actor_id, role.id, role.name, changes)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        if parent_changed:
            self.cache.invalidate()

        logger.info(
            "role_updated",
            actor_id=actor_id,
            role_id=role_id,
            role_name=role.name,
            changed_fields=sorted(changes),
        )
        return await self._get_response(role_id)

    async def delete_role(self, role_id: UUID, actor_id: Optional[UUID] = None) -> None:
        """
        Delete a role that is not a system role and has no dependents.

        Raises:
            NotFoundError: If the role does not exist
            ValidationError: If the role is a system role, is assigned to any
                principal, or has child roles
            RateLimitedError: If the actor has used up its deletion budget
        """
        if self.throttle is not None and actor_id is not None:
            self.throttle.check_delete(actor_id)

        role = await self.role_repo.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role not found")
        if role.is_system:
            raise ValidationError("Cannot delete system role")

        assignment_count = await self.role_repo.count_assignments(role_id)
        if assignment_count > 0:
            raise ValidationError(
                f"Cannot delete role: it is assigned to {assignment_count} user(s)"
            )
        child_count = await self.role_repo.count_children(role_id)
        if child_count > 0:
            raise ValidationError(
                f"Cannot delete role: it has {child_count} child role(s)"
            )

        role_name = role.name
        try:
            await self.role_repo.delete(role_id)
            await self.audit_service.log_role_deleted(actor_id, role_id, role_name)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        self.cache.invalidate()
        logger.info("role_deleted", actor_id=actor_id, role_id=role_id, role_name=role_name)
