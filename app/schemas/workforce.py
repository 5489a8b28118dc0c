"""Pydantic schemas for workforce plans, scenarios, entries and planned exits."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PaginatedResponse
from app.schemas.approval import ApprovalResponse, ApprovalSummary
from app.models.workforce import WorkforcePlanStatus


# ==================== Plan Schemas ====================

class WorkforcePlanCreate(BaseCreateSchema):
    """Schema for creating a workforce plan."""
    cycle_id: UUID
    department_id: UUID
    notes: Optional[str] = None


class WorkforcePlanUpdate(BaseUpdateSchema):
    """Schema for updating a workforce plan."""
    notes: Optional[str] = None
    status: Optional[WorkforcePlanStatus] = None


class PlanStats(BaseModel):
    """Baseline scenario totals for a plan."""
    total_headcount: int = 0
    total_hires: int = 0
    total_payroll_impact: Decimal = Decimal("0")
    scenario_count: int = 0


class WorkforcePlanResponse(BaseResponseSchema):
    """Response schema for WorkforcePlan."""
    id: UUID
    cycle_id: UUID
    cycle_name: Optional[str] = None
    department_id: UUID
    department_name: Optional[str] = None
    status: str
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    submitted_by_id: Optional[UUID] = None
    version: int
    allowed_transitions: List[str] = []
    stats: PlanStats = PlanStats()
    created_at: datetime
    updated_at: datetime


class WorkforcePlanListResponse(PaginatedResponse):
    """Response for listing workforce plans."""
    items: List[WorkforcePlanResponse]


# ==================== Entry Schemas ====================

class WorkforceEntryInput(BaseModel):
    """One staffing line in a bulk entry update."""
    job_role_id: UUID
    job_level_id: UUID
    current_headcount: int = Field(0, ge=0)
    q1_hires: int = Field(0, ge=0)
    q2_hires: int = Field(0, ge=0)
    q3_hires: int = Field(0, ge=0)
    q4_hires: int = Field(0, ge=0)
    planned_exits: int = Field(0, ge=0)
    avg_compensation: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class WorkforceEntriesUpdate(BaseModel):
    """Bulk upsert of entries; scenario defaults to the plan's baseline."""
    scenario_id: Optional[UUID] = None
    entries: List[WorkforceEntryInput]


class WorkforceEntryResponse(BaseResponseSchema):
    id: UUID
    scenario_id: UUID
    job_role_id: UUID
    job_role_name: Optional[str] = None
    job_level_id: UUID
    job_level_code: Optional[str] = None
    current_headcount: int
    q1_hires: int
    q2_hires: int
    q3_hires: int
    q4_hires: int
    total_hires: int
    planned_exits: int
    avg_compensation: Decimal
    total_payroll_impact: Decimal
    notes: Optional[str] = None


class EntryTotals(BaseModel):
    current_headcount: int = 0
    new_hires: int = 0
    planned_exits: int = 0
    projected_headcount: int = 0
    total_payroll_impact: Decimal = Decimal("0")


class WorkforceEntriesResponse(BaseModel):
    plan_id: UUID
    scenario_id: UUID
    scenario_name: str
    is_editable: bool
    entries: List[WorkforceEntryResponse]
    totals: EntryTotals


# ==================== Planned Exit Schemas ====================

class PlannedExitCreate(BaseCreateSchema):
    """Month and reason are checked by the service (400 on bad values)."""
    job_role_id: UUID
    job_level_id: UUID
    exit_month: int
    exit_count: int = Field(1, ge=1)
    reason: str


class PlannedExitResponse(BaseResponseSchema):
    id: UUID
    scenario_id: UUID
    job_role_id: UUID
    job_level_id: UUID
    exit_month: int
    exit_count: int
    reason: str
    created_at: datetime


class ExitSummary(BaseModel):
    total_exits: int = 0
    by_month: Dict[int, int] = {}
    by_reason: Dict[str, int] = {}


class PlannedExitListResponse(BaseModel):
    scenario_id: UUID
    items: List[PlannedExitResponse]
    summary: ExitSummary


# ==================== Scenario Schemas ====================

class ScenarioCreate(BaseCreateSchema):
    """Schema for adding a scenario, optionally seeded from a sibling's entries."""
    name: str = Field(..., min_length=1, max_length=200)
    copy_from_scenario_id: Optional[UUID] = None


class ScenarioUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_baseline: Optional[bool] = None


class ScenarioClone(BaseModel):
    """The new scenario name is required; a blank one is refused with 400."""
    name: Optional[str] = Field(None, max_length=200)


class ScenarioResponse(BaseResponseSchema):
    id: UUID
    workforce_plan_id: UUID
    name: str
    is_baseline: bool
    entry_count: int = 0
    exit_count: int = 0
    totals: EntryTotals = EntryTotals()
    created_at: datetime
    updated_at: datetime


class ScenarioDetailResponse(ScenarioResponse):
    entries: List[WorkforceEntryResponse] = []
    exits: List[PlannedExitResponse] = []


class WorkforcePlanDetailResponse(WorkforcePlanResponse):
    """Plan with scenarios and approval history."""
    scenarios: List[ScenarioDetailResponse] = []
    approvals: List[ApprovalResponse] = []


# ==================== Budget Check ====================

class BudgetBlock(BaseModel):
    total_budget: Decimal
    salary_budget: Decimal
    hiring_budget: Decimal
    has_budget_allocation: bool


class PayrollBlock(BaseModel):
    current_payroll: Decimal
    new_hires_payroll: Decimal
    q1_payroll: Decimal
    q2_payroll: Decimal
    q3_payroll: Decimal
    q4_payroll: Decimal
    total_projected_payroll: Decimal


class HeadcountBlock(BaseModel):
    current: int
    new_hires: int
    exits: int
    projected_end: int
    net_change: int


class VarianceBlock(BaseModel):
    amount: Decimal
    percent: Decimal
    status: str


class BudgetCheckResponse(BaseModel):
    plan_id: UUID
    scenario_id: UUID
    scenario_name: str
    budget: BudgetBlock
    payroll: PayrollBlock
    headcount: HeadcountBlock
    variance: VarianceBlock


# ==================== Review Queue ====================

class ReviewQueueItem(WorkforcePlanResponse):
    """Plan as shown to reviewers."""
    latest_approval: Optional[ApprovalResponse] = None
    current_approver_id: Optional[UUID] = None
    approval_summary: ApprovalSummary = ApprovalSummary()


class ReviewQueueResponse(PaginatedResponse):
    items: List[ReviewQueueItem]
