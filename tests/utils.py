"""
Helpers shared by the roleguard tests.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from roleguard.models import User, UserRole
from roleguard.repositories import UserRepository


async def create_user(
    session: AsyncSession,
    email: str,
    role_ids: Optional[List[UUID]] = None,
    organization_id: Optional[UUID] = None,
    is_active: bool = True,
) -> UUID:
    """Create a user holding ``role_ids`` in one scope and return its id."""
    user = User(email=email, first_name=email.split("@")[0].title(), is_active=is_active)
    user.role_assignments = [
        UserRole(role_id=role_id, organization_id=organization_id)
        for role_id in role_ids or []
    ]
    session.add(user)
    await session.commit()
    user_id = user.id
    session.expunge_all()
    return user_id


async def add_assignment(
    session: AsyncSession,
    user_id: UUID,
    role_id: UUID,
    organization_id: Optional[UUID] = None,
) -> None:
    """Give an existing user one more assignment."""
    session.add(UserRole(user_id=user_id, role_id=role_id, organization_id=organization_id))
    await session.commit()
    session.expunge_all()


async def load_user(session: AsyncSession, user_id: UUID) -> User:
    """Load a user and its assignments straight from the database."""
    session.expunge_all()
    return await UserRepository(session).get_by_id(user_id)


async def scoped_role_ids(
    session: AsyncSession, user_id: UUID, organization_id: Optional[UUID] = None
) -> set:
    """Role ids a user holds in one scope, read from the database."""
    assignments = await UserRepository(session).get_assignments(user_id, organization_id)
    return {assignment.role_id for assignment in assignments}
