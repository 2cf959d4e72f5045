"""
Authorization service resolving granted roles through the role hierarchy.
"""
from typing import Any, Iterable, List, Optional, Sequence, Set
from uuid import UUID

from roleguard.core.exceptions import NotFoundError
from roleguard.core.hierarchy_cache import HierarchyCache, RoleHierarchy
from roleguard.core.logging import get_logger
from roleguard.models.user import User
from roleguard.repositories.role_repository import RoleRepository
from roleguard.repositories.user_repository import UserRepository
from roleguard.schemas.role import PrincipalRolesResponse, RoleSummary
from roleguard.services.voters import Voter, VoteResult, default_voters

logger = get_logger(__name__)

ROLE_PREFIX = "ROLE_"


def direct_role_names(principal: User, organization_id: Optional[UUID] = None) -> List[str]:
    """
    Names of a principal's direct roles visible in an organization context.

    Platform-wide assignments apply everywhere. Organization-scoped
    assignments apply only when ``organization_id`` matches.

    Args:
        principal: User with ``role_assignments`` loaded
        organization_id: Organization context (None = platform-wide only)

    Returns:
        Role names in assignment order, without duplicates
    """
    names = []
    for assignment in principal.role_assignments or []:
        if assignment.organization_id is not None and assignment.organization_id != organization_id:
            continue
        if assignment.role is not None and assignment.role.name not in names:
            names.append(assignment.role.name)
    return names


class AuthorizationService:
    """
    Answers "does this principal hold role R?".

    A principal holds R when R is one of its direct roles or an ancestor of
    one. Lookups go through the process-wide hierarchy cache, which is
    populated from the store on first use after invalidation.
    """

    def __init__(
        self,
        role_repository: RoleRepository,
        user_repository: UserRepository,
        hierarchy_cache: HierarchyCache,
        voters: Optional[Sequence[Voter]] = None,
    ):
        """
        Initialize authorization service.

        Args:
            role_repository: Role repository used to load the hierarchy
            user_repository: User repository used to load principals
            hierarchy_cache: Process-wide hierarchy cache
            voters: Voters for permission attributes, asked in order
                (defaults to the organization and user voters)
        """
        self.role_repo = role_repository
        self.user_repo = user_repository
        self.cache = hierarchy_cache
        self.voters = list(voters) if voters is not None else default_voters()

    async def get_hierarchy(self) -> RoleHierarchy:
        """Current hierarchy snapshot, loading it when the cache is cold."""
        return await self.cache.get_or_populate(self.role_repo.list_nodes)

    async def is_granted(
        self,
        principal: Optional[User],
        required_role_name: str,
        organization_id: Optional[UUID] = None,
        subject: Any = None,
    ) -> bool:
        """
        Check whether a principal holds a role directly or by inheritance,
        or is granted a permission attribute by the voters.

        Args:
            principal: User with role assignments loaded (None = anonymous)
            required_role_name: Role name such as "ROLE_ADMIN", or a
                permission such as "organization.edit"
            organization_id: Organization context for role checks
                (None = platform-wide only)
            subject: What a permission applies to, e.g. an organization or
                user id; ignored for role checks

        Returns:
            True if granted
        """
        if principal is None or not principal.is_active:
            return False

        if not required_role_name.startswith(ROLE_PREFIX):
            return await self._vote(principal, required_role_name, subject)

        names = direct_role_names(principal, organization_id)
        granted = await self.is_granted_for_roles(names, required_role_name)

        logger.debug(
            "authorization_decision",
            principal_id=principal.id,
            required_role=required_role_name,
            organization_id=str(organization_id) if organization_id else None,
            granted=granted,
        )
        return granted

    async def _vote(self, principal: User, attribute: str, subject: Any) -> bool:
        # First voter to grant or deny decides; nobody claiming it means deny.
        for voter in self.voters:
            if not voter.supports(attribute, subject):
                continue
            result = await voter.vote(self, principal, attribute, subject)
            logger.debug(
                "voter_decision",
                voter=type(voter).__name__,
                principal_id=principal.id,
                attribute=attribute,
                result=result.value,
            )
            if result is VoteResult.GRANTED:
                return True
            if result is VoteResult.DENIED:
                return False
        return False

    async def is_granted_for_roles(self, role_names: Iterable[str], required_role_name: str) -> bool:
        """
        Check a bare set of direct role names against a required role.

        Args:
            role_names: Principal's direct role names
            required_role_name: Role name to check

        Returns:
            True if the required role is direct or inherited
        """
        names = list(role_names)
        if not names:
            return False
        if required_role_name in names:
            return True

        hierarchy = await self.get_hierarchy()
        for name in names:
            node = hierarchy.get_by_name(name)
            if node is None:
                continue
            for ancestor_id in hierarchy.ancestors(node.id):
                if hierarchy.get(ancestor_id).name == required_role_name:
                    return True
        return False

    async def get_reachable_role_names(self, role_names: Iterable[str]) -> Set[str]:
        """Direct role names plus every inherited role name."""
        names = list(role_names)
        if not names:
            return set()
        hierarchy = await self.get_hierarchy()
        return hierarchy.expand_names(names)

    async def get_inherited_roles(self, direct_role_ids: Sequence[UUID]) -> List[RoleSummary]:
        """
        Roles inherited from a set of direct roles.

        Returns the union of strict ancestors of every direct role, minus the
        direct roles themselves. No ordering is guaranteed.

        Args:
            direct_role_ids: IDs of the directly assigned roles

        Returns:
            Inherited role summaries, deduplicated
        """
        if not direct_role_ids:
            return []
        hierarchy = await self.get_hierarchy()
        return [
            RoleSummary(id=node.id, name=node.name, description=node.description)
            for node in hierarchy.inherited(direct_role_ids)
        ]

    async def get_principal_roles(
        self, principal_id: UUID, organization_id: Optional[UUID] = None
    ) -> PrincipalRolesResponse:
        """
        Direct and inherited roles of a principal within one scope.

        Raises:
            NotFoundError: If the principal does not exist
        """
        user = await self.user_repo.get_by_id(principal_id)
        if user is None:
            raise NotFoundError("User not found")

        assignments = await self.user_repo.get_assignments(principal_id, organization_id)
        direct_roles = []
        seen = set()
        for assignment in assignments:
            if assignment.role_id in seen:
                continue
            seen.add(assignment.role_id)
            direct_roles.append(RoleSummary.model_validate(assignment.role))

        inherited_roles = await self.get_inherited_roles([role.id for role in direct_roles])

        return PrincipalRolesResponse(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            organization_id=organization_id,
            direct_roles=direct_roles,
            inherited_roles=inherited_roles,
        )
