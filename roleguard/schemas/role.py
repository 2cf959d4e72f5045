"""
Pydantic schemas for role management and principal role assignment.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roleguard.core.role_validator import (
    ROLE_DESCRIPTION_MAX_LENGTH,
    is_valid_role_name,
)


class RoleCreateRequest(BaseModel):
    """Request schema for creating a role."""

    name: str = Field(..., description="Role name, e.g. ROLE_BILLING_ADMIN")
    description: Optional[str] = Field(None, max_length=ROLE_DESCRIPTION_MAX_LENGTH)
    parent_id: Optional[UUID] = Field(None, description="Role to inherit from")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate role name format."""
        if not is_valid_role_name(v):
            raise ValueError(
                "Role name must start with ROLE_, followed by an uppercase letter and at least "
                "one more uppercase letter, digit or underscore"
            )
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "ROLE_BILLING_ADMIN",
                "description": "Manages invoices and payment methods",
                "parent_id": "123e4567-e89b-12d3-a456-426614174000"
            }
        }
    )


class RoleUpdateRequest(BaseModel):
    """
    Request schema for updating a role.

    Only fields present in the payload are applied; an explicit
    ``parent_id: null`` detaches the role from its parent.
    """

    description: Optional[str] = Field(None, max_length=ROLE_DESCRIPTION_MAX_LENGTH)
    parent_id: Optional[UUID] = None


class RoleSummary(BaseModel):
    """Compact role reference."""

    id: UUID
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AssignedUserSummary(BaseModel):
    """Principal holding a role."""

    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RoleResponse(BaseModel):
    """Role as shown in list views."""

    id: UUID
    name: str
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    parent_name: Optional[str] = None
    is_system: bool
    user_count: int = 0
    child_count: int = 0
    created_at: datetime
    updated_at: datetime


class RoleDetailResponse(RoleResponse):
    """Role with paginated assigned users and child roles."""

    users: List[AssignedUserSummary] = Field(default_factory=list)
    total_users: int = 0
    has_more_users: bool = False
    child_roles: List[RoleSummary] = Field(default_factory=list)


class PrincipalRolesResponse(BaseModel):
    """A principal's direct and inherited roles within one scope."""

    user_id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_id: Optional[UUID] = None
    direct_roles: List[RoleSummary] = Field(default_factory=list)
    inherited_roles: List[RoleSummary] = Field(default_factory=list)
