"""
Workforce plan approval records.

One row per approval step a plan enters. A row is created PENDING when its
chain level is entered and moves exactly once to APPROVED, REJECTED or
REVISION_REQUESTED. Rows are never deleted by the workflow, so the list of
approvals on a plan is its sign-off history across submissions.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy import Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.workforce import WorkforcePlan


class ApprovalStatus(str, Enum):
    """Status of an approval step."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class Approval(Base):
    """
    A single approval decision at one step of a workforce plan's chain.
    """
    __tablename__ = "workforce_approvals"
    __table_args__ = (
        Index("ix_workforce_approval_plan_status", "workforce_plan_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    workforce_plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workforce_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Chain position (matches ApprovalChainLevel.level)
    step: Mapped[int] = mapped_column(Integer, nullable=False)

    # Who must decide
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    approver_role: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Role code the approver was resolved from, NULL for named users"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        comment="PENDING, APPROVED, REJECTED, REVISION_REQUESTED"
    )
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic lock
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    workforce_plan: Mapped["WorkforcePlan"] = relationship("WorkforcePlan", back_populates="approvals")
    approver: Mapped["User"] = relationship("User", foreign_keys=[approver_id])

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<Approval(step={self.step}, status='{self.status}', approver_id='{self.approver_id}')>"
