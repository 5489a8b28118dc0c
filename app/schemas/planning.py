"""Pydantic schemas for planning cycles, approval chains and budget allocations."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PaginatedResponse
from app.models.planning import AssigneeType, CycleStatus, CycleType


# ==================== Approval Chain Schemas ====================

class ApprovalAssigneeInput(BaseModel):
    """ROLE assignees need role_type, USER assignees need user_id."""
    assignee_type: AssigneeType
    role_type: Optional[str] = Field(None, max_length=50)
    user_id: Optional[UUID] = None


class ApprovalChainLevelInput(BaseModel):
    """Chain levels are numbered by their position in the submitted list."""
    name: Optional[str] = Field(None, max_length=100)
    assignees: List[ApprovalAssigneeInput] = []


class ApprovalAssigneeResponse(BaseResponseSchema):
    id: UUID
    assignee_type: str
    role_type: Optional[str] = None
    user_id: Optional[UUID] = None


class ApprovalChainLevelResponse(BaseResponseSchema):
    id: UUID
    level: int
    name: Optional[str] = None
    assignees: List[ApprovalAssigneeResponse] = []


# ==================== Planning Cycle Schemas ====================

class PlanningCycleCreate(BaseCreateSchema):
    """Schema for creating a planning cycle."""
    name: str = Field(..., min_length=1, max_length=200)
    type: CycleType = CycleType.ANNUAL
    start_date: date
    end_date: date
    status: CycleStatus = CycleStatus.DRAFT
    total_budget: Decimal = Field(Decimal("0"), ge=0)
    auto_approve_if_missing: bool = False
    approval_chain: List[ApprovalChainLevelInput] = []


class PlanningCycleUpdate(BaseUpdateSchema):
    """approval_chain replaces the whole chain and is only accepted while the cycle is DRAFT."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[CycleType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[CycleStatus] = None
    total_budget: Optional[Decimal] = Field(None, ge=0)
    auto_approve_if_missing: Optional[bool] = None
    approval_chain: Optional[List[ApprovalChainLevelInput]] = None


class PlanningCycleResponse(BaseResponseSchema):
    id: UUID
    name: str
    type: str
    start_date: date
    end_date: date
    status: str
    total_budget: Decimal
    auto_approve_if_missing: bool
    approval_chain: List[ApprovalChainLevelResponse] = Field(
        default=[], validation_alias="approval_chain_levels"
    )
    created_at: datetime
    updated_at: datetime


class PlanningCycleListResponse(PaginatedResponse):
    items: List[PlanningCycleResponse]


# ==================== Budget Allocation Schemas ====================

class BudgetAllocationCreate(BaseCreateSchema):
    """total_budget defaults to the sum of the component budgets."""
    cycle_id: UUID
    department_id: UUID
    salary_fixed: Decimal = Field(Decimal("0"), ge=0)
    salary_variable: Decimal = Field(Decimal("0"), ge=0)
    benefits: Decimal = Field(Decimal("0"), ge=0)
    new_hiring_budget: Decimal = Field(Decimal("0"), ge=0)
    total_budget: Optional[Decimal] = Field(None, ge=0)


class BudgetAllocationResponse(BaseResponseSchema):
    id: UUID
    cycle_id: UUID
    department_id: UUID
    department_name: Optional[str] = None
    salary_fixed: Decimal
    salary_variable: Decimal
    benefits: Decimal
    new_hiring_budget: Decimal
    total_budget: Decimal
    created_at: datetime
    updated_at: datetime


class BudgetAllocationListResponse(PaginatedResponse):
    items: List[BudgetAllocationResponse]
