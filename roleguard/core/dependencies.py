"""
FastAPI dependency functions for services and role-based authorization.
"""
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from roleguard.core.exceptions import AuthenticationRequiredError, InsufficientPermissionsError
from roleguard.core.hierarchy_cache import HierarchyCache, get_hierarchy_cache
from roleguard.core.logging import get_logger
from roleguard.core.permissions import Permission
from roleguard.core.rate_limiter import RoleMutationThrottle, get_role_mutation_throttle
from roleguard.database import get_db
from roleguard.models.user import User
from roleguard.repositories.audit_log_repository import AuditLogRepository
from roleguard.repositories.role_repository import RoleRepository
from roleguard.repositories.user_repository import UserRepository
from roleguard.services.audit_service import AuditService
from roleguard.services.authorization_service import AuthorizationService
from roleguard.services.principal_role_service import PrincipalRoleService
from roleguard.services.role_service import RoleService

logger = get_logger(__name__)


async def get_audit_service(request: Request, db: AsyncSession = Depends(get_db)) -> AuditService:
    """Get audit service bound to the request session and its client context."""
    return AuditService(AuditLogRepository(db), request=request)


async def get_role_service(
    db: AsyncSession = Depends(get_db),
    cache: HierarchyCache = Depends(get_hierarchy_cache),
    audit_service: AuditService = Depends(get_audit_service),
    throttle: RoleMutationThrottle = Depends(get_role_mutation_throttle),
) -> RoleService:
    """
    Get role service instance with injected dependencies.

    Args:
        db: Database session
        cache: Process-wide hierarchy cache
        audit_service: Request-scoped audit service
        throttle: Process-wide per-admin budget for role updates and deletions

    Returns:
        RoleService instance
    """
    return RoleService(
        role_repository=RoleRepository(db),
        audit_service=audit_service,
        hierarchy_cache=cache,
        mutation_throttle=throttle,
    )


async def get_authorization_service(
    db: AsyncSession = Depends(get_db),
    cache: HierarchyCache = Depends(get_hierarchy_cache),
) -> AuthorizationService:
    """Get authorization service instance with injected dependencies."""
    return AuthorizationService(
        role_repository=RoleRepository(db),
        user_repository=UserRepository(db),
        hierarchy_cache=cache,
    )


async def get_principal_role_service(
    db: AsyncSession = Depends(get_db),
    audit_service: AuditService = Depends(get_audit_service),
) -> PrincipalRoleService:
    """Get principal role service instance with injected dependencies."""
    return PrincipalRoleService(
        user_repository=UserRepository(db),
        role_repository=RoleRepository(db),
        audit_service=audit_service,
    )


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Load the authenticated principal.

    Authentication happens upstream; it is expected to leave the principal's
    id in ``request.state.principal_id``.

    Raises:
        AuthenticationRequiredError: If no principal is set, or it is unknown or inactive
    """
    principal_id: Optional[UUID] = getattr(request.state, "principal_id", None)
    if principal_id is None:
        raise AuthenticationRequiredError()

    user = await UserRepository(db).get_by_id(principal_id)
    if user is None or not user.is_active:
        raise AuthenticationRequiredError()
    return user


def require_role(required_role: str, organization_param: Optional[str] = None) -> Callable:
    """
    Factory function to create a role-based dependency.

    The check honours inheritance: a principal holding a descendant of
    ``required_role`` passes.

    Args:
        required_role: Required role name, e.g. "ROLE_ADMIN"
        organization_param: Path or query parameter holding the organization
            id to check within (None = platform-wide)

    Returns:
        Dependency function returning the principal when granted
    """
    async def role_checker(
        request: Request,
        current_principal: User = Depends(get_current_principal),
        authorization: AuthorizationService = Depends(get_authorization_service),
    ) -> User:
        organization_id = _uuid_from_request(request, organization_param)
        if not await authorization.is_granted(current_principal, required_role, organization_id):
            logger.warning(
                "authorization_denied",
                principal_id=current_principal.id,
                required_role=required_role,
            )
            raise InsufficientPermissionsError(f"This action requires {required_role} role")
        return current_principal

    return role_checker


def require_any_role(*roles: str) -> Callable:
    """
    Factory function to create dependency that checks for any of multiple roles.

    Args:
        roles: Role names (principal must be granted at least one)

    Returns:
        Dependency function returning the principal when granted
    """
    async def role_checker(
        current_principal: User = Depends(get_current_principal),
        authorization: AuthorizationService = Depends(get_authorization_service),
    ) -> User:
        for role in roles:
            if await authorization.is_granted(current_principal, role):
                return current_principal

        roles_str = ", ".join(roles)
        raise InsufficientPermissionsError(
            f"This action requires one of the following roles: {roles_str}"
        )

    return role_checker


def require_permission(permission: Permission, subject_param: str) -> Callable:
    """
    Factory for a dependency checking a permission through the voters.

    Args:
        permission: Permission attribute, e.g. Permission.ORGANIZATION_EDIT
        subject_param: Path or query parameter holding the subject's id
            (an organization id or a user id)

    Returns:
        Dependency function returning the principal when granted
    """
    async def permission_checker(
        request: Request,
        current_principal: User = Depends(get_current_principal),
        authorization: AuthorizationService = Depends(get_authorization_service),
    ) -> User:
        subject = _uuid_from_request(request, subject_param)
        if not await authorization.is_granted(current_principal, permission.value, subject=subject):
            logger.warning(
                "authorization_denied",
                principal_id=current_principal.id,
                permission=permission.value,
                subject=str(subject) if subject else None,
            )
            raise InsufficientPermissionsError(f"This action requires the {permission.value} permission")
        return current_principal

    return permission_checker


def _uuid_from_request(request: Request, param: Optional[str]) -> Optional[UUID]:
    if param is None:
        return None
    raw = request.path_params.get(param) or request.query_params.get(param)
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None
