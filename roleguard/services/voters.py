"""
Voters for permission attributes.

A voter claims an attribute/subject pair through ``supports`` and then
grants, denies or abstains. ``AuthorizationService.is_granted`` asks the
registered voters in order; the first non-abstaining vote decides and an
attribute nobody claims is denied.
"""
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Protocol
from uuid import UUID

from roleguard.core.config import settings
from roleguard.core.permissions import (
    ORGANIZATION_MINIMUM_ROLES,
    ORGANIZATION_PERMISSIONS,
    SELF_SERVICE_PERMISSIONS,
    USER_PERMISSIONS,
)
from roleguard.models.enums import SystemRole
from roleguard.models.user import User

if TYPE_CHECKING:
    from roleguard.services.authorization_service import AuthorizationService


class VoteResult(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    ABSTAIN = "abstain"


class Voter(Protocol):
    def supports(self, attribute: str, subject: Any) -> bool:
        ...

    async def vote(
        self,
        authorization: "AuthorizationService",
        principal: User,
        attribute: str,
        subject: Any,
    ) -> VoteResult:
        ...


def subject_id(subject: Any) -> Optional[UUID]:
    """A subject is either an id or an object carrying a UUID ``id``."""
    if isinstance(subject, UUID):
        return subject
    candidate = getattr(subject, "id", None)
    return candidate if isinstance(candidate, UUID) else None


class OrganizationVoter:
    """
    Organization permissions, decided by the principal's roles inside that
    organization.

    The subject is the organization id. Platform-wide assignments do not make
    a principal a member; only assignments scoped to the organization count,
    and each permission needs the minimum role from
    ``ORGANIZATION_MINIMUM_ROLES`` (directly or by inheritance). A platform
    admin is granted every permission whose minimum is ROLE_ADMIN or higher.
    """

    ELEVATED_ROLES = (SystemRole.ADMIN, SystemRole.OWNER)

    def supports(self, attribute: str, subject: Any) -> bool:
        return attribute in ORGANIZATION_PERMISSIONS and subject_id(subject) is not None

    async def vote(self, authorization, principal, attribute, subject) -> VoteResult:
        required = ORGANIZATION_MINIMUM_ROLES.get(attribute)
        if required is None:
            return VoteResult.ABSTAIN

        if required in self.ELEVATED_ROLES and await authorization.is_granted(
            principal, settings.platform_admin_role
        ):
            return VoteResult.GRANTED

        organization_id = subject_id(subject)
        scoped_names = [
            assignment.role.name
            for assignment in principal.role_assignments or []
            if assignment.organization_id == organization_id and assignment.role is not None
        ]
        if not scoped_names:
            return VoteResult.DENIED

        if await authorization.is_granted_for_roles(scoped_names, required.value):
            return VoteResult.GRANTED
        return VoteResult.DENIED


class UserVoter:
    """
    Account-management permissions on another principal.

    Principals may view and edit themselves but never delete themselves or
    manage their own roles. Platform ROLE_ADMIN may do everything to others;
    ROLE_MODERATOR may view and edit them.
    """

    def supports(self, attribute: str, subject: Any) -> bool:
        return attribute in USER_PERMISSIONS and subject_id(subject) is not None

    async def vote(self, authorization, principal, attribute, subject) -> VoteResult:
        if subject_id(subject) == principal.id:
            if attribute in SELF_SERVICE_PERMISSIONS:
                return VoteResult.GRANTED
            return VoteResult.DENIED

        if await authorization.is_granted(principal, SystemRole.ADMIN.value):
            return VoteResult.GRANTED

        if attribute in SELF_SERVICE_PERMISSIONS and await authorization.is_granted(
            principal, SystemRole.MODERATOR.value
        ):
            return VoteResult.GRANTED

        return VoteResult.DENIED


def default_voters() -> List[Voter]:
    return [OrganizationVoter(), UserVoter()]
