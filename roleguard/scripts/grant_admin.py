"""
Script to grant the platform admin role to a user.
"""
import asyncio
import sys
from typing import Optional

import click

from roleguard.core.config import settings
from roleguard.database import get_session_factory
from roleguard.repositories.audit_log_repository import AuditLogRepository
from roleguard.repositories.role_repository import RoleRepository
from roleguard.repositories.user_repository import UserRepository
from roleguard.services.audit_service import AuditService
from roleguard.services.principal_role_service import PrincipalRoleService


class GrantAdminError(Exception):
    """Precondition for granting the admin role is not met."""


async def grant_admin(
    email: str,
    create: bool = False,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> bool:
    """
    Assign the platform admin role to the user with ``email``.

    Args:
        email: Email address of the user
        create: Create the user if it does not exist
        first_name: First name for a created user
        last_name: Last name for a created user

    Returns:
        True if the role was granted, False if the user already held it
    """
    async with get_session_factory()() as session:
        user_repo = UserRepository(session)
        role_repo = RoleRepository(session)

        admin_role = await role_repo.get_by_name(settings.platform_admin_role)
        if not admin_role:
            raise GrantAdminError(
                f"{settings.platform_admin_role} role not found. Run 'roleguard-seed-roles' first."
            )

        user = await user_repo.get_by_email(email)
        if not user:
            if not create:
                raise GrantAdminError(f"User '{email}' not found. Use --create to add it.")
            user = await user_repo.create(
                email=email,
                first_name=first_name,
                last_name=last_name,
                is_active=True
            )
            await session.commit()
            click.echo(f"✓ Created user: {email}")
        elif any(
            assignment.role_id == admin_role.id and assignment.organization_id is None
            for assignment in user.role_assignments
        ):
            return False

        service = PrincipalRoleService(
            user_repository=user_repo,
            role_repository=role_repo,
            audit_service=AuditService(AuditLogRepository(session)),
        )
        await service.add_principal_role(user.id, admin_role.id)
        return True


@click.command()
@click.option("--email", prompt=True, help="Email address of the user")
@click.option("--create", is_flag=True, help="Create the user if it does not exist")
@click.option("--first-name", default=None, help="First name for a created user")
@click.option("--last-name", default=None, help="Last name for a created user")
def main(email: str, create: bool, first_name: Optional[str], last_name: Optional[str]):
    """Grant the platform admin role to a user."""
    try:
        granted = asyncio.run(grant_admin(email, create, first_name, last_name))
    except GrantAdminError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"✗ Error granting admin role: {e}", err=True)
        sys.exit(1)

    if granted:
        click.echo(f"✓ Assigned {settings.platform_admin_role} to {email}")
    else:
        click.echo(f"→ {email} already has {settings.platform_admin_role}")


if __name__ == "__main__":
    main()
