"""
UserRepository for principal and role-assignment database operations.
"""
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roleguard.models import Role, User, UserRole
from roleguard.repositories.base import BaseRepository


def _scope(organization_id: Optional[UUID]):
    """WHERE clause selecting assignments in one scope (NULL = platform-wide)."""
    if organization_id is None:
        return UserRole.organization_id.is_(None)
    return UserRole.organization_id == organization_id


class UserRepository(BaseRepository[User]):
    """Repository for User model with role-assignment queries."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find user by email."""
        result = await self.session.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def get_assignments(
        self, user_id: UUID, organization_id: Optional[UUID] = None
    ) -> List[UserRole]:
        """Get a user's direct assignments within one scope, in assignment order."""
        result = await self.session.execute(
            select(UserRole)
            .where(UserRole.user_id == user_id, _scope(organization_id))
            .order_by(UserRole.created_at, UserRole.id)
        )
        return list(result.scalars().all())

    async def replace_assignments(
        self,
        user: User,
        roles: Sequence[Role],
        organization_id: Optional[UUID] = None,
        assigned_by: Optional[UUID] = None,
    ) -> List[UserRole]:
        """
        Replace a user's assignments within one scope.

        Assignments in other scopes are left untouched. Assignments to roles
        that stay in the set are kept as they are; dropped ones are removed
        through the collection's delete-orphan cascade.

        Args:
            user: User with ``role_assignments`` loaded
            roles: Complete set of roles for this scope
            organization_id: Scope (None = platform-wide)
            assigned_by: Principal performing the change

        Returns:
            Assignments in this scope after the change
        """
        existing = {
            assignment.role_id: assignment
            for assignment in user.role_assignments
            if assignment.organization_id == organization_id
        }
        other_scopes = [
            assignment
            for assignment in user.role_assignments
            if assignment.organization_id != organization_id
        ]
        scoped = [
            existing.get(role.id)
            or UserRole(role=role, organization_id=organization_id, assigned_by=assigned_by)
            for role in roles
        ]
        user.role_assignments = other_scopes + scoped
        await self.session.flush()
        return scoped

    async def count_role_holders(
        self,
        role_names: Sequence[str],
        organization_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> int:
        """
        Count distinct users holding any of ``role_names`` in one scope.

        Args:
            role_names: Role names to look for
            organization_id: Scope (None = platform-wide assignments only)
            exclude_user_id: User to leave out of the count
        """
        stmt = (
            select(func.count(func.distinct(UserRole.user_id)))
            .join(Role, Role.id == UserRole.role_id)
            .where(Role.name.in_(role_names), _scope(organization_id))
        )
        if exclude_user_id is not None:
            stmt = stmt.where(UserRole.user_id != exclude_user_id)
        result = await self.session.execute(stmt)
        return result.scalar()
