"""
Workforce Plan API Endpoints.

Provides:
- Plan list / create / detail / update / delete
- Submission into the cycle's approval chain
- Entry grid read and bulk upsert
- Scenario list / create for a plan
- Budget check against the department's allocation
"""
from dataclasses import asdict
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentUser, Page
from app.schemas.base import MessageResponse
from app.config import settings
from app.models.approval import Approval
from app.models.user import User
from app.models.workforce import (
    PlannedExit,
    WorkforcePlan,
    WorkforcePlanEntry,
    WorkforcePlanScenario,
    WorkforcePlanStatus,
)
from app.schemas.approval import ApprovalResponse
from app.schemas.workforce import (
    BudgetCheckResponse,
    EntryTotals,
    PlannedExitResponse,
    PlanStats,
    ScenarioCreate,
    ScenarioDetailResponse,
    ScenarioResponse,
    WorkforceEntriesResponse,
    WorkforceEntriesUpdate,
    WorkforceEntryResponse,
    WorkforcePlanCreate,
    WorkforcePlanDetailResponse,
    WorkforcePlanListResponse,
    WorkforcePlanResponse,
    WorkforcePlanUpdate,
)
from app.services.workforce_approval_service import WorkforceApprovalService
from app.services.workforce_plan_service import WorkforcePlanService, plan_stats, scenario_totals
from app.services.workforce_state_machine import can_edit, get_allowed_transitions


router = APIRouter(prefix="/workforce-plans", tags=["Workforce Plans"])


# ============== Helper Functions ==============

def _get_user_name(user: Optional[User]) -> Optional[str]:
    """Get user display name."""
    return user.full_name if user else None


def build_entry_response(entry: WorkforcePlanEntry) -> WorkforceEntryResponse:
    response = WorkforceEntryResponse.model_validate(entry)
    response.job_role_name = entry.job_role.name if entry.job_role else None
    response.job_level_code = entry.job_level.level_code if entry.job_level else None
    return response


def build_exit_response(exit_: PlannedExit) -> PlannedExitResponse:
    return PlannedExitResponse.model_validate(exit_)


def build_approval_response(approval: Approval) -> ApprovalResponse:
    response = ApprovalResponse.model_validate(approval)
    response.approver_name = _get_user_name(approval.approver)
    return response


def build_scenario_response(scenario: WorkforcePlanScenario, detail: bool = False):
    data = dict(
        id=scenario.id,
        workforce_plan_id=scenario.workforce_plan_id,
        name=scenario.name,
        is_baseline=scenario.is_baseline,
        entry_count=len(scenario.entries),
        exit_count=len(scenario.exits),
        totals=EntryTotals(**scenario_totals(scenario.entries)),
        created_at=scenario.created_at,
        updated_at=scenario.updated_at,
    )
    if not detail:
        return ScenarioResponse(**data)
    return ScenarioDetailResponse(
        **data,
        entries=[build_entry_response(e) for e in scenario.entries],
        exits=[build_exit_response(x) for x in scenario.exits],
    )


def build_plan_response(plan: WorkforcePlan, response_cls=WorkforcePlanResponse, **extra):
    """Plan fields plus display names, allowed transitions and baseline stats."""
    return response_cls(
        id=plan.id,
        cycle_id=plan.cycle_id,
        cycle_name=plan.cycle.name if plan.cycle else None,
        department_id=plan.department_id,
        department_name=plan.department.name if plan.department else None,
        status=plan.status,
        notes=plan.notes,
        submitted_at=plan.submitted_at,
        submitted_by_id=plan.submitted_by_id,
        version=plan.version,
        allowed_transitions=get_allowed_transitions(plan.status),
        stats=PlanStats(**plan_stats(plan)),
        created_at=plan.created_at,
        updated_at=plan.updated_at,
        **extra,
    )


def build_plan_detail_response(plan: WorkforcePlan) -> WorkforcePlanDetailResponse:
    return build_plan_response(
        plan,
        WorkforcePlanDetailResponse,
        scenarios=[build_scenario_response(s, detail=True) for s in plan.scenarios],
        approvals=[build_approval_response(a) for a in plan.approvals],
    )


# ============== Plans ==============

@router.get("", response_model=WorkforcePlanListResponse)
async def list_workforce_plans(
    db: DB,
    current_user: CurrentUser,
    pagination: Page,
    cycle_id: Optional[UUID] = None,
    department_id: Optional[UUID] = None,
    plan_status: Optional[WorkforcePlanStatus] = Query(None, alias="status"),
):
    """List workforce plans with baseline stats."""
    service = WorkforcePlanService(db)
    plans, total = await service.get_plans(
        cycle_id=cycle_id,
        department_id=department_id,
        statuses=[plan_status.value] if plan_status else None,
        skip=pagination.skip,
        limit=pagination.size,
    )
    items = [build_plan_response(p) for p in plans]
    return WorkforcePlanListResponse.build(items, total, pagination.page, pagination.size)


@router.post("", response_model=WorkforcePlanDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_workforce_plan(
    plan_in: WorkforcePlanCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create a DRAFT plan for a department in a cycle, with a Baseline scenario."""
    plan = await WorkforcePlanService(db).create_plan(plan_in, current_user.id)
    await db.commit()
    return build_plan_detail_response(plan)


@router.get("/{plan_id}", response_model=WorkforcePlanDetailResponse)
async def get_workforce_plan(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Get a plan with scenarios, entries, exits and approval history."""
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    return build_plan_detail_response(plan)


@router.put("/{plan_id}", response_model=WorkforcePlanDetailResponse)
async def update_workforce_plan(
    plan_id: UUID,
    plan_in: WorkforcePlanUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update notes and/or status (e.g. APPROVED -> LOCKED)."""
    plan = await WorkforcePlanService(db).update_plan(plan_id, plan_in, current_user.id)
    await db.commit()
    return build_plan_detail_response(plan)


@router.delete("/{plan_id}", response_model=MessageResponse)
async def delete_workforce_plan(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a DRAFT plan."""
    await WorkforcePlanService(db).delete_plan(plan_id)
    await db.commit()
    return MessageResponse(message="Workforce plan deleted successfully")


@router.post("/{plan_id}/submit", response_model=WorkforcePlanDetailResponse)
async def submit_workforce_plan(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Submit a DRAFT or REJECTED plan for approval."""
    await WorkforceApprovalService(db).submit(plan_id, current_user.id)
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    await db.commit()
    return build_plan_detail_response(plan)


# ============== Entries ==============

def _entries_response(plan: WorkforcePlan, scenario: WorkforcePlanScenario) -> WorkforceEntriesResponse:
    return WorkforceEntriesResponse(
        plan_id=plan.id,
        scenario_id=scenario.id,
        scenario_name=scenario.name,
        is_editable=can_edit(plan.status),
        entries=[build_entry_response(e) for e in scenario.entries],
        totals=EntryTotals(**scenario_totals(scenario.entries)),
    )


@router.get("/{plan_id}/entries", response_model=WorkforceEntriesResponse)
async def get_workforce_plan_entries(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
    scenario_id: Optional[UUID] = None,
):
    """Get the entry grid for a scenario (baseline by default)."""
    service = WorkforcePlanService(db)
    plan = await service.get_plan(plan_id)
    return _entries_response(plan, service.pick_scenario(plan, scenario_id))


@router.put("/{plan_id}/entries", response_model=WorkforceEntriesResponse)
async def update_workforce_plan_entries(
    plan_id: UUID,
    entries_in: WorkforceEntriesUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Create or update entries by job role and level."""
    service = WorkforcePlanService(db)
    plan, scenario_id = await service.upsert_entries(plan_id, entries_in)
    await db.commit()
    return _entries_response(plan, service.pick_scenario(plan, scenario_id))


# ============== Scenarios ==============

@router.get("/{plan_id}/scenarios", response_model=List[ScenarioResponse])
async def list_workforce_plan_scenarios(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """List scenarios, baseline first."""
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    scenarios = sorted(plan.scenarios, key=lambda s: not s.is_baseline)
    return [build_scenario_response(s) for s in scenarios]


@router.post(
    "/{plan_id}/scenarios",
    response_model=ScenarioDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_workforce_plan_scenario(
    plan_id: UUID,
    scenario_in: ScenarioCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Add a scenario, optionally copying entries from another scenario of the plan."""
    _, scenario = await WorkforcePlanService(db).create_scenario(plan_id, scenario_in)
    await db.commit()
    return build_scenario_response(scenario, detail=True)


# ============== Budget Check ==============

@router.get("/{plan_id}/budget-check", response_model=BudgetCheckResponse)
async def check_workforce_plan_budget(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
    scenario_id: Optional[UUID] = Query(None, description="Defaults to the baseline scenario"),
):
    """Compare planned hiring spend with the department's budget allocation."""
    plan, scenario, report = await WorkforcePlanService(db).budget_check(
        plan_id,
        scenario_id,
        under_threshold=Decimal(str(settings.UNDER_BUDGET_THRESHOLD_PERCENT)),
    )
    body = asdict(report)
    body["variance"]["status"] = report.variance.status.value
    return BudgetCheckResponse(
        plan_id=plan.id,
        scenario_id=scenario.id,
        scenario_name=scenario.name,
        **body,
    )
