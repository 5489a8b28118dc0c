"""
Workforce Scenario API Endpoints.

Scenario detail, rename / baseline switch, delete, clone and planned exits.
"""
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.base import MessageResponse
from app.api.v1.endpoints.workforce_plans import build_exit_response, build_scenario_response
from app.schemas.workforce import (
    ExitSummary,
    PlannedExitCreate,
    PlannedExitListResponse,
    PlannedExitResponse,
    ScenarioClone,
    ScenarioDetailResponse,
    ScenarioUpdate,
)
from app.services.workforce_plan_service import WorkforcePlanService, summarize_exits


router = APIRouter(prefix="/workforce-scenarios", tags=["Workforce Scenarios"])


@router.get("/{scenario_id}", response_model=ScenarioDetailResponse)
async def get_workforce_scenario(
    scenario_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Get a scenario with entries and exits."""
    _, scenario = await WorkforcePlanService(db).get_scenario(scenario_id)
    return build_scenario_response(scenario, detail=True)


@router.put("/{scenario_id}", response_model=ScenarioDetailResponse)
async def update_workforce_scenario(
    scenario_id: UUID,
    scenario_in: ScenarioUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Rename a scenario or make it the plan's baseline."""
    _, scenario = await WorkforcePlanService(db).update_scenario(scenario_id, scenario_in)
    await db.commit()
    return build_scenario_response(scenario, detail=True)


@router.delete("/{scenario_id}", response_model=MessageResponse)
async def delete_workforce_scenario(
    scenario_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a non-baseline scenario."""
    await WorkforcePlanService(db).delete_scenario(scenario_id)
    await db.commit()
    return MessageResponse(message="Scenario deleted successfully")


@router.post(
    "/{scenario_id}/clone",
    response_model=ScenarioDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def clone_workforce_scenario(
    scenario_id: UUID,
    clone_in: ScenarioClone,
    db: DB,
    current_user: CurrentUser,
):
    """Copy a scenario, its entries and its exits under a new name."""
    _, scenario = await WorkforcePlanService(db).clone_scenario(scenario_id, clone_in.name)
    await db.commit()
    return build_scenario_response(scenario, detail=True)


@router.get("/{scenario_id}/exits", response_model=PlannedExitListResponse)
async def list_planned_exits(
    scenario_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """List planned exits with totals by month and by reason."""
    _, scenario = await WorkforcePlanService(db).get_scenario(scenario_id)
    exits = sorted(scenario.exits, key=lambda x: (x.exit_month, x.reason))
    return PlannedExitListResponse(
        scenario_id=scenario.id,
        items=[build_exit_response(x) for x in exits],
        summary=ExitSummary(**summarize_exits(exits)),
    )


@router.post(
    "/{scenario_id}/exits",
    response_model=PlannedExitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_planned_exit(
    scenario_id: UUID,
    exit_in: PlannedExitCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Add a planned exit; the matching entry's planned exits go up by its count."""
    _, exit_ = await WorkforcePlanService(db).add_exit(scenario_id, exit_in)
    await db.commit()
    return build_exit_response(exit_)
