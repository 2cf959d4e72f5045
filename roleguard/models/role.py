"""
Role model for hierarchical role-based access control (RBAC).
"""
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roleguard.models.base import Base, TimestampMixin


class Role(Base, TimestampMixin):
    """
    Role in a forest of single-parent roles.

    A role inherits nothing by itself; a principal holding a role is granted
    that role and every ancestor reachable through ``parent_id``. Names are
    fixed at creation. System roles are seeded and cannot be deleted.
    """
    __tablename__ = "roles"

    # Primary key
    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    # Role fields
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Self-referencing parent (adjacency list)
    parent_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )

    # Relationships
    parent: Mapped[Optional["Role"]] = relationship(
        "Role",
        remote_side=[id],
        back_populates="children",
        lazy="select"
    )
    children: Mapped[List["Role"]] = relationship(
        "Role",
        back_populates="parent",
        lazy="select"
    )
    assignments: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="role",
        lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name}, parent_id={self.parent_id})>"
