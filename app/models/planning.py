"""
Planning cycle, approval chain and budget allocation models.

A planning cycle owns an ordered approval chain. Each chain level has one
or more assignees:
- ROLE assignees resolve at runtime to a user holding the role
- USER assignees name a fixed approver
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Numeric, Date
from sqlalchemy import UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.organization import Department


class CycleType(str, Enum):
    """Kind of planning cycle."""
    ANNUAL = "ANNUAL"
    QUARTERLY = "QUARTERLY"
    MID_YEAR = "MID_YEAR"


class CycleStatus(str, Enum):
    """Lifecycle of a planning cycle."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class AssigneeType(str, Enum):
    """How an approval chain assignee is resolved."""
    ROLE = "ROLE"
    USER = "USER"


class PlanningCycle(Base):
    """A budgeting/workforce planning period with its approval chain."""
    __tablename__ = "planning_cycles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(
        String(50),
        default="ANNUAL",
        nullable=False,
        comment="ANNUAL, QUARTERLY, MID_YEAR"
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default="DRAFT",
        nullable=False,
        index=True,
        comment="DRAFT, ACTIVE, CLOSED"
    )
    total_budget: Mapped[Decimal] = mapped_column(
        Numeric(16, 2),
        default=Decimal("0"),
        nullable=False
    )

    # Approval chain behaviour
    auto_approve_if_missing: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Skip chain levels whose approver cannot be resolved"
    )

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

    # Relationships
    approval_chain_levels: Mapped[List["ApprovalChainLevel"]] = relationship(
        "ApprovalChainLevel",
        back_populates="cycle",
        cascade="all, delete-orphan",
        order_by="ApprovalChainLevel.level"
    )
    budget_allocations: Mapped[List["BudgetAllocation"]] = relationship(
        "BudgetAllocation",
        back_populates="cycle"
    )

    def __repr__(self) -> str:
        return f"<PlanningCycle(name='{self.name}', status='{self.status}')>"


class ApprovalChainLevel(Base):
    """One ordered step of a cycle's sign-off sequence."""
    __tablename__ = "approval_chain_levels"
    __table_args__ = (
        UniqueConstraint("cycle_id", "level", name="uq_approval_chain_cycle_level"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    cycle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("planning_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based position in the chain"
    )
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    cycle: Mapped["PlanningCycle"] = relationship(
        "PlanningCycle",
        back_populates="approval_chain_levels"
    )
    assignees: Mapped[List["ApprovalAssignee"]] = relationship(
        "ApprovalAssignee",
        back_populates="chain_level",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ApprovalChainLevel(cycle_id='{self.cycle_id}', level={self.level})>"


class ApprovalAssignee(Base):
    """Candidate approver for a chain level, by role or by named user."""
    __tablename__ = "approval_assignees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    chain_level_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("approval_chain_levels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assignee_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ROLE, USER"
    )
    role_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Role code for ROLE assignees"
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True
    )

    # Relationships
    chain_level: Mapped["ApprovalChainLevel"] = relationship(
        "ApprovalChainLevel",
        back_populates="assignees"
    )
    user: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<ApprovalAssignee(type='{self.assignee_type}', role='{self.role_type}', user_id='{self.user_id}')>"


class BudgetAllocation(Base):
    """Budget figures for one department within one planning cycle."""
    __tablename__ = "budget_allocations"
    __table_args__ = (
        UniqueConstraint("cycle_id", "department_id", name="uq_budget_allocation_cycle_department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    cycle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("planning_cycles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    salary_fixed: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    salary_variable: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    benefits: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    new_hiring_budget: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)

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

    # Relationships
    cycle: Mapped["PlanningCycle"] = relationship("PlanningCycle", back_populates="budget_allocations")
    department: Mapped["Department"] = relationship("Department")

    def __repr__(self) -> str:
        return f"<BudgetAllocation(cycle_id='{self.cycle_id}', department_id='{self.department_id}')>"
