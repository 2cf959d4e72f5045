"""
UserRole association between principals and roles.
"""
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roleguard.models.base import Base, TimestampMixin


class UserRole(Base, TimestampMixin):
    """
    Direct role assignment, optionally scoped to an organization.

    ``organization_id`` NULL means the assignment applies platform-wide.
    """
    __tablename__ = "user_roles"

    # Primary key
    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    # Foreign keys
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False
    )
    organization_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    # Assignment tracking
    assigned_by: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="role_assignments",
        foreign_keys=[user_id]
    )
    role: Mapped["Role"] = relationship(
        "Role",
        back_populates="assignments",
        lazy="joined"
    )

    # Constraints and indexes. NULLs are distinct in a unique constraint, so
    # platform-wide rows get their own partial unique index.
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "organization_id", name="uq_user_role_org"),
        Index(
            "uq_user_role_platform",
            "user_id",
            "role_id",
            unique=True,
            postgresql_where=text("organization_id IS NULL"),
            sqlite_where=text("organization_id IS NULL"),
        ),
        Index("ix_user_roles_user_id", "user_id"),
        Index("ix_user_roles_role_id", "role_id"),
        Index("ix_user_roles_organization_id", "organization_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserRole(user_id={self.user_id}, role_id={self.role_id}, "
            f"organization_id={self.organization_id})>"
        )
