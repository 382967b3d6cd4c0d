"""Marketplace user record (the columns the RBAC core reads and writes)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, ForeignKey, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixer_rbac.db.base import Base, enum_values, utc_now
from fixer_rbac.db.enums import ApprovalStatus

if TYPE_CHECKING:
    from fixer_rbac.db.models.rbac import UserPermission, UserRole


class User(Base):
    """Customer, provider, or staff account.

    ``approval_status`` mirrors the outcome of the user's latest resolved
    approval request; the approval workflow is the only writer.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    user_type: Mapped[str] = mapped_column(String(50), nullable=False, default="customer")
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, values_callable=enum_values, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )
    approved_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    user_roles: Mapped[list[UserRole]] = relationship(
        "UserRole", back_populates="user", foreign_keys="UserRole.user_id", cascade="all, delete-orphan"
    )
    user_permissions: Mapped[list[UserPermission]] = relationship(
        "UserPermission", back_populates="user", cascade="all, delete-orphan"
    )
