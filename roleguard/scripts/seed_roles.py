"""
Create the built-in role hierarchy.

    ROLE_OWNER -> ROLE_ADMIN -> ROLE_MODERATOR -> ROLE_USER
    ROLE_EDITOR -> ROLE_USER

Re-running is safe; existing roles are left untouched unless --force is given.
"""
import asyncio
import sys
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import click

from roleguard.database import get_session_factory
from roleguard.models.enums import SystemRole
from roleguard.repositories.role_repository import RoleRepository


# (role, parent, description); parents are listed before their children.
SYSTEM_ROLES: List[Tuple[SystemRole, Optional[SystemRole], str]] = [
    (SystemRole.USER, None, "Baseline access for every signed-in principal"),
    (SystemRole.MODERATOR, SystemRole.USER, "Can moderate content created by other users"),
    (SystemRole.ADMIN, SystemRole.MODERATOR, "Full platform access including role management"),
    (SystemRole.OWNER, SystemRole.ADMIN, "Owns the installation or organization"),
    (SystemRole.EDITOR, SystemRole.USER, "Can create and edit content"),
]


async def seed_roles(force: bool = False) -> Tuple[int, int]:
    """
    Insert missing system roles, optionally resetting existing ones.

    Args:
        force: Reset description, parent and is_system on roles that already exist

    Returns:
        (created, updated)
    """
    created = updated = 0
    role_ids: Dict[SystemRole, UUID] = {}

    async with get_session_factory()() as session:
        repo = RoleRepository(session)
        try:
            for system_role, parent, description in SYSTEM_ROLES:
                values = {
                    "description": description,
                    "parent_id": role_ids[parent] if parent else None,
                    "is_system": True,
                }
                role = await repo.get_by_name(system_role.value)

                if role is None:
                    role = await repo.create(name=system_role.value, **values)
                    created += 1
                    click.echo(f"  + {system_role.value}")
                elif force:
                    await repo.update(role.id, **values)
                    updated += 1
                    click.echo(f"  ~ {system_role.value} (reset)")
                else:
                    click.echo(f"  = {system_role.value} (exists)")

                role_ids[system_role] = role.id

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return created, updated


@click.command()
@click.option("--force", is_flag=True, help="Reset description and parent of existing system roles")
def main(force: bool):
    """Seed the system role hierarchy."""
    click.echo("System roles:")
    try:
        created, updated = asyncio.run(seed_roles(force))
    except Exception as e:
        click.secho(f"Seeding failed: {e}", fg="red", err=True)
        sys.exit(1)

    unchanged = len(SYSTEM_ROLES) - created - updated
    click.secho(f"{created} created, {updated} reset, {unchanged} unchanged", fg="green")


if __name__ == "__main__":
    main()
