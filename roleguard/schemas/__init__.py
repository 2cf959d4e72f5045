# Schemas package

from roleguard.schemas.role import (
    AssignedUserSummary,
    PrincipalRolesResponse,
    RoleCreateRequest,
    RoleDetailResponse,
    RoleResponse,
    RoleSummary,
    RoleUpdateRequest,
)

__all__ = [
    "AssignedUserSummary",
    "PrincipalRolesResponse",
    "RoleCreateRequest",
    "RoleDetailResponse",
    "RoleResponse",
    "RoleSummary",
    "RoleUpdateRequest",
]
