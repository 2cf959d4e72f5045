"""
Permission attributes checked by the voters.

Role attributes (``ROLE_*``) are resolved through the role hierarchy; every
other attribute passed to ``is_granted`` must be one of these.
"""
from enum import Enum
from typing import Dict, FrozenSet

from roleguard.models.enums import SystemRole


class Permission(str, Enum):
    ORGANIZATION_VIEW = "organization.view"
    ORGANIZATION_EDIT = "organization.edit"
    ORGANIZATION_MANAGE = "organization.manage"
    ORGANIZATION_DELETE = "organization.delete"
    ORGANIZATION_MEMBERS_VIEW = "organization.members.view"
    ORGANIZATION_MEMBERS_MANAGE = "organization.members.manage"
    ORGANIZATION_INVITES_MANAGE = "organization.invites.manage"

    USER_VIEW = "user.view"
    USER_EDIT = "user.edit"
    USER_DELETE = "user.delete"
    USER_ROLES_MANAGE = "user.roles.manage"


ORGANIZATION_PERMISSIONS: FrozenSet[str] = frozenset(
    p.value for p in Permission if p.value.startswith("organization.")
)
USER_PERMISSIONS: FrozenSet[str] = frozenset(
    p.value for p in Permission if p.value.startswith("user.")
)

# Least role an organization-scoped assignment must grant, through the hierarchy.
ORGANIZATION_MINIMUM_ROLES: Dict[str, SystemRole] = {
    Permission.ORGANIZATION_VIEW.value: SystemRole.USER,
    Permission.ORGANIZATION_EDIT.value: SystemRole.ADMIN,
    Permission.ORGANIZATION_MANAGE.value: SystemRole.ADMIN,
    Permission.ORGANIZATION_DELETE.value: SystemRole.OWNER,
    Permission.ORGANIZATION_MEMBERS_VIEW.value: SystemRole.USER,
    Permission.ORGANIZATION_MEMBERS_MANAGE.value: SystemRole.ADMIN,
    Permission.ORGANIZATION_INVITES_MANAGE.value: SystemRole.ADMIN,
}

# Actions a principal may always take on its own account.
SELF_SERVICE_PERMISSIONS: FrozenSet[str] = frozenset(
    {Permission.USER_VIEW.value, Permission.USER_EDIT.value}
)
