"""Planning Cycle Service: cycles, their approval chains and department budget allocations."""
from decimal import Decimal
from typing import Optional, List, Tuple
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import InvalidStateError, NotFoundError
from app.models.organization import Department
from app.models.planning import (
    ApprovalAssignee,
    ApprovalChainLevel,
    AssigneeType,
    BudgetAllocation,
    CycleStatus,
    PlanningCycle,
)
from app.models.user import User
from app.models.workforce import WorkforcePlan
from app.schemas.planning import (
    ApprovalChainLevelInput,
    BudgetAllocationCreate,
    PlanningCycleCreate,
    PlanningCycleUpdate,
)


logger = logging.getLogger(__name__)


class PlanningCycleService:
    """Service for planning cycle and budget allocation management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== CYCLE METHODS ====================

    async def get_cycles(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 25,
    ) -> Tuple[List[PlanningCycle], int]:
        """Get paginated list of planning cycles, newest first."""
        query = select(PlanningCycle)
        if status:
            query = query.where(PlanningCycle.status == status)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        query = (
            query.options(
                selectinload(PlanningCycle.approval_chain_levels).selectinload(ApprovalChainLevel.assignees)
            )
            .order_by(PlanningCycle.start_date.desc(), PlanningCycle.name)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_cycle(self, cycle_id: uuid.UUID) -> PlanningCycle:
        """Get a cycle with its ordered approval chain."""
        result = await self.db.execute(
            select(PlanningCycle)
            .options(
                selectinload(PlanningCycle.approval_chain_levels).selectinload(ApprovalChainLevel.assignees)
            )
            .where(PlanningCycle.id == cycle_id)
            .execution_options(populate_existing=True)
        )
        cycle = result.scalar_one_or_none()
        if not cycle:
            raise NotFoundError("Planning cycle not found", details={"cycle_id": str(cycle_id)})
        return cycle

    async def _build_chain(self, levels: List[ApprovalChainLevelInput]) -> List[ApprovalChainLevel]:
        """Validate chain input and number the levels 1..N in the given order."""
        user_ids = {
            a.user_id for level in levels for a in level.assignees
            if a.assignee_type == AssigneeType.USER and a.user_id
        }
        if user_ids:
            found = set((await self.db.scalars(select(User.id).where(User.id.in_(user_ids)))).all())
            missing = user_ids - found
            if missing:
                raise NotFoundError("Approver user not found", details={"user_ids": sorted(str(i) for i in missing)})

        chain = []
        for position, level_input in enumerate(levels, start=1):
            if not level_input.assignees:
                raise InvalidStateError(
                    f"Approval level {position} needs at least one assignee",
                    details={"level": position},
                )
            level = ApprovalChainLevel(level=position, name=level_input.name)
            for assignee in level_input.assignees:
                if assignee.assignee_type == AssigneeType.ROLE and not assignee.role_type:
                    raise InvalidStateError(
                        f"Role assignee on approval level {position} needs a role_type",
                        details={"level": position},
                    )
                if assignee.assignee_type == AssigneeType.USER and not assignee.user_id:
                    raise InvalidStateError(
                        f"User assignee on approval level {position} needs a user_id",
                        details={"level": position},
                    )
                level.assignees.append(ApprovalAssignee(
                    assignee_type=assignee.assignee_type.value,
                    role_type=assignee.role_type if assignee.assignee_type == AssigneeType.ROLE else None,
                    user_id=assignee.user_id if assignee.assignee_type == AssigneeType.USER else None,
                ))
            chain.append(level)
        return chain

    @staticmethod
    def _check_dates(start_date, end_date) -> None:
        if end_date < start_date:
            raise InvalidStateError("Cycle end date must not be before its start date")

    async def create_cycle(self, data: PlanningCycleCreate) -> PlanningCycle:
        self._check_dates(data.start_date, data.end_date)
        chain = await self._build_chain(data.approval_chain)

        cycle = PlanningCycle(
            name=data.name,
            type=data.type.value,
            start_date=data.start_date,
            end_date=data.end_date,
            status=data.status.value,
            total_budget=data.total_budget,
            auto_approve_if_missing=data.auto_approve_if_missing,
        )
        cycle.approval_chain_levels.extend(chain)
        self.db.add(cycle)
        await self.db.flush()

        logger.info(f"Planning cycle {cycle.id} created with {len(chain)} approval levels")
        return await self.get_cycle(cycle.id)

    async def update_cycle(self, cycle_id: uuid.UUID, data: PlanningCycleUpdate) -> PlanningCycle:
        """Update cycle fields; a new approval chain replaces the old one while the cycle is DRAFT."""
        cycle = await self.get_cycle(cycle_id)
        update_data = data.model_dump(exclude_unset=True, exclude={"approval_chain"})

        if data.approval_chain is not None:
            if cycle.status != CycleStatus.DRAFT.value:
                raise InvalidStateError(
                    "The approval chain can only be changed while the cycle is DRAFT",
                    details={"status": cycle.status},
                )
            chain = await self._build_chain(data.approval_chain)
            # Old levels must be gone before new ones reuse their (cycle, level) numbers
            cycle.approval_chain_levels.clear()
            await self.db.flush()
            cycle.approval_chain_levels.extend(chain)
            logger.info(f"Planning cycle {cycle.id}: approval chain replaced with {len(chain)} levels")

        self._check_dates(
            update_data.get("start_date", cycle.start_date),
            update_data.get("end_date", cycle.end_date),
        )
        for field, value in update_data.items():
            if value is None:
                continue
            if field in ("type", "status"):
                value = value.value
            setattr(cycle, field, value)

        await self.db.flush()
        return await self.get_cycle(cycle_id)

    async def delete_cycle(self, cycle_id: uuid.UUID) -> None:
        cycle = await self.get_cycle(cycle_id)

        plan_count = await self.db.scalar(
            select(func.count(WorkforcePlan.id)).where(WorkforcePlan.cycle_id == cycle_id)
        )
        allocation_count = await self.db.scalar(
            select(func.count(BudgetAllocation.id)).where(BudgetAllocation.cycle_id == cycle_id)
        )
        if plan_count or allocation_count:
            raise InvalidStateError(
                "Cannot delete a planning cycle that has workforce plans or budget allocations",
                details={"workforce_plans": plan_count, "budget_allocations": allocation_count},
            )

        await self.db.delete(cycle)
        await self.db.flush()
        logger.info(f"Planning cycle {cycle_id} deleted")

    # ==================== BUDGET ALLOCATION METHODS ====================

    async def get_budget_allocations(
        self,
        cycle_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 25,
    ) -> Tuple[List[BudgetAllocation], int]:
        query = select(BudgetAllocation)
        conditions = []
        if cycle_id:
            conditions.append(BudgetAllocation.cycle_id == cycle_id)
        if department_id:
            conditions.append(BudgetAllocation.department_id == department_id)
        if conditions:
            query = query.where(and_(*conditions))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        query = (
            query.options(selectinload(BudgetAllocation.department))
            .order_by(BudgetAllocation.created_at.desc(), BudgetAllocation.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create_budget_allocation(self, data: BudgetAllocationCreate) -> BudgetAllocation:
        if not await self.db.get(PlanningCycle, data.cycle_id):
            raise NotFoundError("Planning cycle not found", details={"cycle_id": str(data.cycle_id)})
        department = await self.db.get(Department, data.department_id)
        if not department:
            raise NotFoundError("Department not found", details={"department_id": str(data.department_id)})

        existing = await self.db.scalar(
            select(BudgetAllocation.id).where(
                BudgetAllocation.cycle_id == data.cycle_id,
                BudgetAllocation.department_id == data.department_id,
            )
        )
        if existing:
            raise InvalidStateError(
                "A budget allocation already exists for this department in this cycle",
                details={"budget_allocation_id": str(existing)},
            )

        total_budget = data.total_budget
        if total_budget is None:
            total_budget = data.salary_fixed + data.salary_variable + data.benefits + data.new_hiring_budget

        allocation = BudgetAllocation(
            cycle_id=data.cycle_id,
            department_id=data.department_id,
            salary_fixed=data.salary_fixed,
            salary_variable=data.salary_variable,
            benefits=data.benefits,
            new_hiring_budget=data.new_hiring_budget,
            total_budget=Decimal(total_budget),
        )
        allocation.department = department
        self.db.add(allocation)
        await self.db.flush()

        logger.info(f"Budget allocation {allocation.id} created for department {department.code}")
        return allocation
