"""
Workforce plan models.

A workforce plan belongs to exactly one (planning cycle, department) pair
and moves through DRAFT -> SUBMITTED -> APPROVED/REJECTED/DRAFT -> LOCKED
(see app.services.workforce_state_machine).

Each plan owns one or more scenarios; exactly one is flagged as the
baseline (plan of record for reporting, submission and budget checks).
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Numeric
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.organization import Department, JobRole, JobLevel
    from app.models.planning import PlanningCycle
    from app.models.approval import Approval


class WorkforcePlanStatus(str, Enum):
    """Status of a workforce plan."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    LOCKED = "LOCKED"


class ExitReason(str, Enum):
    """Why a planned exit happens."""
    ATTRITION = "ATTRITION"
    RETIREMENT = "RETIREMENT"
    RESTRUCTURING = "RESTRUCTURING"


class WorkforcePlan(Base):
    """
    Department staffing plan for a planning cycle.

    Status updates are guarded by an optimistic version counter: a flush
    against a row another transaction already changed raises StaleDataError.
    """
    __tablename__ = "workforce_plans"
    __table_args__ = (
        UniqueConstraint("cycle_id", "department_id", name="uq_workforce_plan_cycle_department"),
        Index("ix_workforce_plan_status", "status"),
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

    status: Mapped[str] = mapped_column(
        String(50),
        default="DRAFT",
        nullable=False,
        comment="DRAFT, SUBMITTED, APPROVED, REJECTED, LOCKED"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Submission
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

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
    cycle: Mapped["PlanningCycle"] = relationship("PlanningCycle")
    department: Mapped["Department"] = relationship("Department")
    submitted_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[submitted_by_id])
    scenarios: Mapped[List["WorkforcePlanScenario"]] = relationship(
        "WorkforcePlanScenario",
        back_populates="workforce_plan",
        cascade="all, delete-orphan",
        order_by="WorkforcePlanScenario.created_at"
    )
    approvals: Mapped[List["Approval"]] = relationship(
        "Approval",
        back_populates="workforce_plan",
        cascade="all, delete-orphan",
        order_by="Approval.created_at"
    )

    @property
    def baseline_scenario(self) -> Optional["WorkforcePlanScenario"]:
        """The scenario flagged as plan of record, if any."""
        return next((s for s in self.scenarios if s.is_baseline), None)

    def __repr__(self) -> str:
        return f"<WorkforcePlan(id='{self.id}', status='{self.status}')>"


class WorkforcePlanScenario(Base):
    """A what-if variant of a workforce plan."""
    __tablename__ = "workforce_plan_scenarios"

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
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_baseline: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

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
    workforce_plan: Mapped["WorkforcePlan"] = relationship("WorkforcePlan", back_populates="scenarios")
    entries: Mapped[List["WorkforcePlanEntry"]] = relationship(
        "WorkforcePlanEntry",
        back_populates="scenario",
        cascade="all, delete-orphan"
    )
    exits: Mapped[List["PlannedExit"]] = relationship(
        "PlannedExit",
        back_populates="scenario",
        cascade="all, delete-orphan",
        order_by="PlannedExit.exit_month"
    )

    def __repr__(self) -> str:
        return f"<WorkforcePlanScenario(name='{self.name}', baseline={self.is_baseline})>"


class WorkforcePlanEntry(Base):
    """Staffing line for one job role at one job level within a scenario."""
    __tablename__ = "workforce_plan_entries"
    __table_args__ = (
        UniqueConstraint(
            "scenario_id", "job_role_id", "job_level_id",
            name="uq_workforce_entry_scenario_role_level"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    scenario_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workforce_plan_scenarios.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    job_role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("job_roles.id", ondelete="RESTRICT"),
        nullable=False
    )
    job_level_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("job_levels.id", ondelete="RESTRICT"),
        nullable=False
    )

    current_headcount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    q1_hires: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    q2_hires: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    q3_hires: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    q4_hires: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    planned_exits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    avg_compensation: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        nullable=False
    )
    total_payroll_impact: Mapped[Decimal] = mapped_column(
        Numeric(16, 2),
        default=Decimal("0"),
        nullable=False,
        comment="(q1+q2+q3+q4 hires) * avg_compensation, computed on write"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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
    scenario: Mapped["WorkforcePlanScenario"] = relationship("WorkforcePlanScenario", back_populates="entries")
    job_role: Mapped["JobRole"] = relationship("JobRole")
    job_level: Mapped["JobLevel"] = relationship("JobLevel")

    @property
    def total_hires(self) -> int:
        return self.q1_hires + self.q2_hires + self.q3_hires + self.q4_hires

    def __repr__(self) -> str:
        return f"<WorkforcePlanEntry(scenario_id='{self.scenario_id}', job_role_id='{self.job_role_id}')>"


class PlannedExit(Base):
    """Reason-coded, month-coded attrition within a scenario."""
    __tablename__ = "planned_exits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    scenario_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workforce_plan_scenarios.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    job_role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("job_roles.id", ondelete="RESTRICT"),
        nullable=False
    )
    job_level_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("job_levels.id", ondelete="RESTRICT"),
        nullable=False
    )
    exit_month: Mapped[int] = mapped_column(Integer, nullable=False, comment="1-12")
    exit_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    reason: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ATTRITION, RETIREMENT, RESTRUCTURING"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    scenario: Mapped["WorkforcePlanScenario"] = relationship("WorkforcePlanScenario", back_populates="exits")

    def __repr__(self) -> str:
        return f"<PlannedExit(month={self.exit_month}, count={self.exit_count}, reason='{self.reason}')>"
