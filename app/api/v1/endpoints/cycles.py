"""
Planning Cycle API Endpoints.

Cycles carry the ordered approval chain that workforce plans are submitted into.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentUser, Page
from app.schemas.base import MessageResponse
from app.models.planning import CycleStatus
from app.schemas.planning import (
    PlanningCycleCreate,
    PlanningCycleListResponse,
    PlanningCycleResponse,
    PlanningCycleUpdate,
)
from app.services.planning_cycle_service import PlanningCycleService


router = APIRouter(prefix="/cycles", tags=["Planning Cycles"])


@router.get("", response_model=PlanningCycleListResponse)
async def list_cycles(
    db: DB,
    current_user: CurrentUser,
    pagination: Page,
    cycle_status: Optional[CycleStatus] = Query(None, alias="status"),
):
    """List planning cycles, newest first."""
    cycles, total = await PlanningCycleService(db).get_cycles(
        status=cycle_status.value if cycle_status else None,
        skip=pagination.skip,
        limit=pagination.size,
    )
    items = [PlanningCycleResponse.model_validate(c) for c in cycles]
    return PlanningCycleListResponse.build(items, total, pagination.page, pagination.size)


@router.post("", response_model=PlanningCycleResponse, status_code=status.HTTP_201_CREATED)
async def create_cycle(
    cycle_in: PlanningCycleCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create a planning cycle, optionally with its approval chain."""
    cycle = await PlanningCycleService(db).create_cycle(cycle_in)
    await db.commit()
    return PlanningCycleResponse.model_validate(cycle)


@router.get("/{cycle_id}", response_model=PlanningCycleResponse)
async def get_cycle(
    cycle_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Get a planning cycle with its ordered approval chain."""
    cycle = await PlanningCycleService(db).get_cycle(cycle_id)
    return PlanningCycleResponse.model_validate(cycle)


@router.put("/{cycle_id}", response_model=PlanningCycleResponse)
async def update_cycle(
    cycle_id: UUID,
    cycle_in: PlanningCycleUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update a planning cycle. Supplying approval_chain replaces it (DRAFT cycles only)."""
    cycle = await PlanningCycleService(db).update_cycle(cycle_id, cycle_in)
    await db.commit()
    return PlanningCycleResponse.model_validate(cycle)


@router.delete("/{cycle_id}", response_model=MessageResponse)
async def delete_cycle(
    cycle_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a planning cycle that no plan or budget allocation uses."""
    await PlanningCycleService(db).delete_cycle(cycle_id)
    await db.commit()
    return MessageResponse(message="Planning cycle deleted successfully")
