"""
RoleRepository for Role-specific database operations.
"""
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from roleguard.core.hierarchy_cache import RoleNode
from roleguard.models import Role, User, UserRole
from roleguard.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """Repository for Role model with hierarchy-specific queries."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Role)

    async def get_by_name(self, name: str) -> Optional[Role]:
        """Find role by name."""
        result = await self.session.execute(
            select(Role).where(Role.name == name)
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, role_ids: Sequence[UUID]) -> List[Role]:
        """Get roles whose id is in ``role_ids``."""
        if not role_ids:
            return []
        result = await self.session.execute(
            select(Role).where(Role.id.in_(role_ids))
        )
        return list(result.scalars().all())

    async def get_parent_id(self, role_id: UUID) -> Optional[UUID]:
        """Read a role's parent id straight from the store."""
        result = await self.session.execute(
            select(Role.parent_id).where(Role.id == role_id)
        )
        return result.scalar_one_or_none()

    async def list_nodes(self) -> List[RoleNode]:
        """Load every role as a hierarchy node."""
        result = await self.session.execute(
            select(Role.id, Role.name, Role.parent_id, Role.description)
        )
        return [
            RoleNode(id=row.id, name=row.name, parent_id=row.parent_id, description=row.description)
            for row in result.all()
        ]

    def _with_counts(self):
        parent = aliased(Role)
        user_count = (
            select(func.count(UserRole.id))
            .where(UserRole.role_id == Role.id)
            .correlate(Role)
            .scalar_subquery()
        )
        child = aliased(Role)
        child_count = (
            select(func.count(child.id))
            .where(child.parent_id == Role.id)
            .correlate(Role)
            .scalar_subquery()
        )
        return (
            select(
                Role,
                parent.name.label("parent_name"),
                user_count.label("user_count"),
                child_count.label("child_count"),
            )
            .outerjoin(parent, Role.parent_id == parent.id)
        )

    async def list_with_counts(self) -> List[Tuple[Role, Optional[str], int, int]]:
        """
        List all roles ordered by name.

        Returns:
            Tuples of (role, parent name, assigned user count, child role count)
        """
        result = await self.session.execute(self._with_counts().order_by(Role.name))
        return [(row[0], row.parent_name, row.user_count, row.child_count) for row in result.all()]

    async def get_with_counts(self, role_id: UUID) -> Optional[Tuple[Role, Optional[str], int, int]]:
        """Get one role with its parent name and dependent counts."""
        result = await self.session.execute(
            self._with_counts().where(Role.id == role_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row.parent_name, row.user_count, row.child_count

    async def count_assignments(self, role_id: UUID) -> int:
        """Count principal assignments of a role (all scopes)."""
        result = await self.session.execute(
            select(func.count(UserRole.id)).where(UserRole.role_id == role_id)
        )
        return result.scalar()

    async def count_children(self, role_id: UUID) -> int:
        """Count roles whose parent is ``role_id``."""
        result = await self.session.execute(
            select(func.count(Role.id)).where(Role.parent_id == role_id)
        )
        return result.scalar()

    async def get_children(self, role_id: UUID) -> List[Role]:
        """Get direct child roles ordered by name."""
        result = await self.session.execute(
            select(Role).where(Role.parent_id == role_id).order_by(Role.name)
        )
        return list(result.scalars().all())

    async def get_assigned_users(
        self, role_id: UUID, skip: int = 0, limit: Optional[int] = None
    ) -> List[User]:
        """Get users holding a role, oldest assignment first."""
        stmt = (
            select(User)
            .join(UserRole, UserRole.user_id == User.id)
            .where(UserRole.role_id == role_id)
            .order_by(UserRole.created_at, UserRole.id)
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def lock_by_names(self, names: Sequence[str]) -> List[Role]:
        """
        Select roles by name with FOR UPDATE.

        Serializes concurrent assignment changes touching these roles on
        databases that support row locks.
        """
        result = await self.session.execute(
            select(Role).where(Role.name.in_(names)).with_for_update()
        )
        return list(result.scalars().all())
