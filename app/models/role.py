import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import UserRole


class RoleCode(str, Enum):
    """Role codes approval chain levels can name as their assignee."""
    COMPENSATION_MANAGER = "COMPENSATION_MANAGER"
    HR_ADMIN = "HR_ADMIN"
    FINANCE_HEAD = "FINANCE_HEAD"
    BU_LEADER = "BU_LEADER"
    # Resolved through the plan's department before any role lookup
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    REPORTING_MANAGER = "REPORTING_MANAGER"


class Role(Base):
    """
    Named organisational role.

    `code` is the join key for ROLE assignees on approval chain levels.
    Deactivating a role takes all of its holders out of approver lookups
    without touching their assignments.
    """
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    assignments: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Role(code='{self.code}')>"
