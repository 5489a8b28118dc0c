"""Budget Allocation API Endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser, Page
from app.models.planning import BudgetAllocation
from app.schemas.planning import (
    BudgetAllocationCreate,
    BudgetAllocationListResponse,
    BudgetAllocationResponse,
)
from app.services.planning_cycle_service import PlanningCycleService


router = APIRouter(prefix="/budget-allocations", tags=["Budget Allocations"])


def _build_allocation_response(allocation: BudgetAllocation) -> BudgetAllocationResponse:
    response = BudgetAllocationResponse.model_validate(allocation)
    response.department_name = allocation.department.name if allocation.department else None
    return response


@router.get("", response_model=BudgetAllocationListResponse)
async def list_budget_allocations(
    db: DB,
    current_user: CurrentUser,
    pagination: Page,
    cycle_id: Optional[UUID] = None,
    department_id: Optional[UUID] = None,
):
    """List department budget allocations."""
    allocations, total = await PlanningCycleService(db).get_budget_allocations(
        cycle_id=cycle_id,
        department_id=department_id,
        skip=pagination.skip,
        limit=pagination.size,
    )
    items = [_build_allocation_response(a) for a in allocations]
    return BudgetAllocationListResponse.build(items, total, pagination.page, pagination.size)


@router.post("", response_model=BudgetAllocationResponse, status_code=status.HTTP_201_CREATED)
async def create_budget_allocation(
    allocation_in: BudgetAllocationCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Allocate a department's budget for a planning cycle."""
    allocation = await PlanningCycleService(db).create_budget_allocation(allocation_in)
    await db.commit()
    return _build_allocation_response(allocation)
