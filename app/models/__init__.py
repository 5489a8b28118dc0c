"""SQLAlchemy models. Importing this package registers every table on Base.metadata."""
from app.models.user import User, UserRole
from app.models.role import Role, RoleCode
from app.models.organization import Department, JobRole, JobLevel
from app.models.planning import (
    PlanningCycle,
    ApprovalChainLevel,
    ApprovalAssignee,
    BudgetAllocation,
    CycleType,
    CycleStatus,
    AssigneeType,
)
from app.models.workforce import (
    WorkforcePlan,
    WorkforcePlanScenario,
    WorkforcePlanEntry,
    PlannedExit,
    WorkforcePlanStatus,
    ExitReason,
)
from app.models.approval import Approval, ApprovalStatus

__all__ = [
    "User",
    "UserRole",
    "Role",
    "RoleCode",
    "Department",
    "JobRole",
    "JobLevel",
    "PlanningCycle",
    "ApprovalChainLevel",
    "ApprovalAssignee",
    "BudgetAllocation",
    "CycleType",
    "CycleStatus",
    "AssigneeType",
    "WorkforcePlan",
    "WorkforcePlanScenario",
    "WorkforcePlanEntry",
    "PlannedExit",
    "WorkforcePlanStatus",
    "ExitReason",
    "Approval",
    "ApprovalStatus",
]
