"""Workforce Plan Service for plan, scenario, entry and planned-exit management."""
from collections import Counter
from decimal import Decimal
from typing import Optional, List, Tuple, Dict, Iterable
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import InvalidStateError, NotFoundError
from app.models.approval import Approval
from app.models.organization import Department, JobLevel, JobRole
from app.models.planning import BudgetAllocation, PlanningCycle
from app.models.workforce import (
    ExitReason,
    PlannedExit,
    WorkforcePlan,
    WorkforcePlanEntry,
    WorkforcePlanScenario,
)
from app.schemas.workforce import (
    PlannedExitCreate,
    ScenarioCreate,
    ScenarioUpdate,
    WorkforceEntriesUpdate,
    WorkforcePlanCreate,
    WorkforcePlanUpdate,
)
from app.services.budget_variance import BudgetVarianceReport, calculate_budget_variance
from app.services.workforce_state_machine import (
    PlanStatus,
    can_delete,
    can_edit,
    transition_plan,
)


logger = logging.getLogger(__name__)

BASELINE_SCENARIO_NAME = "Baseline"


def payroll_impact(entry: WorkforcePlanEntry) -> Decimal:
    """Annual payroll cost of the entry's planned hires."""
    return Decimal(entry.total_hires) * Decimal(entry.avg_compensation or 0)


def scenario_totals(entries: Iterable[WorkforcePlanEntry]) -> Dict:
    """Headcount and payroll totals over a scenario's entries."""
    entries = list(entries)
    current = sum(e.current_headcount for e in entries)
    hires = sum(e.total_hires for e in entries)
    exits = sum(e.planned_exits for e in entries)
    return {
        "current_headcount": current,
        "new_hires": hires,
        "planned_exits": exits,
        "projected_headcount": current + hires - exits,
        "total_payroll_impact": sum(
            (Decimal(e.total_payroll_impact or 0) for e in entries), Decimal("0")
        ),
    }


def plan_stats(plan: WorkforcePlan) -> Dict:
    """Baseline stats shown on plan lists and the review queue."""
    baseline = plan.baseline_scenario
    totals = scenario_totals(baseline.entries if baseline else [])
    return {
        "total_headcount": totals["current_headcount"],
        "total_hires": totals["new_hires"],
        "total_payroll_impact": totals["total_payroll_impact"],
        "scenario_count": len(plan.scenarios),
    }


def summarize_exits(exits: Iterable[PlannedExit]) -> Dict:
    by_month: Counter = Counter()
    by_reason: Counter = Counter()
    for exit_ in exits:
        by_month[exit_.exit_month] += exit_.exit_count
        by_reason[exit_.reason] += exit_.exit_count
    return {
        "total_exits": sum(by_month.values()),
        "by_month": dict(sorted(by_month.items())),
        "by_reason": dict(by_reason),
    }


class WorkforcePlanService:
    """Service for workforce plan management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== PLAN METHODS ====================

    def _plan_list_options(self):
        return (
            selectinload(WorkforcePlan.cycle),
            selectinload(WorkforcePlan.department),
            selectinload(WorkforcePlan.scenarios).selectinload(WorkforcePlanScenario.entries),
            selectinload(WorkforcePlan.approvals).selectinload(Approval.approver),
        )

    async def get_plans(
        self,
        cycle_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        statuses: Optional[List[str]] = None,
        skip: int = 0,
        limit: Optional[int] = 25,
    ) -> Tuple[List[WorkforcePlan], int]:
        """Get paginated list of workforce plans. limit=None returns every match."""
        query = select(WorkforcePlan)

        conditions = []
        if cycle_id:
            conditions.append(WorkforcePlan.cycle_id == cycle_id)
        if department_id:
            conditions.append(WorkforcePlan.department_id == department_id)
        if statuses:
            conditions.append(WorkforcePlan.status.in_(statuses))
        if conditions:
            query = query.where(and_(*conditions))

        # Count
        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query)

        # Paginate
        query = (
            query.options(*self._plan_list_options())
            .order_by(WorkforcePlan.created_at.desc(), WorkforcePlan.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)

        return list(result.scalars().all()), total

    async def get_plan(self, plan_id: uuid.UUID) -> WorkforcePlan:
        """Get a plan with scenarios, entries, exits and approval history."""
        result = await self.db.execute(
            select(WorkforcePlan)
            .options(
                selectinload(WorkforcePlan.cycle),
                selectinload(WorkforcePlan.department),
                selectinload(WorkforcePlan.scenarios)
                .selectinload(WorkforcePlanScenario.entries)
                .selectinload(WorkforcePlanEntry.job_role),
                selectinload(WorkforcePlan.scenarios)
                .selectinload(WorkforcePlanScenario.entries)
                .selectinload(WorkforcePlanEntry.job_level),
                selectinload(WorkforcePlan.scenarios).selectinload(WorkforcePlanScenario.exits),
                selectinload(WorkforcePlan.approvals).selectinload(Approval.approver),
            )
            .where(WorkforcePlan.id == plan_id)
            # Refresh objects already in the session after workflow changes
            .execution_options(populate_existing=True)
        )
        plan = result.scalar_one_or_none()
        if not plan:
            raise NotFoundError("Workforce plan not found", details={"plan_id": str(plan_id)})
        return plan

    async def create_plan(self, data: WorkforcePlanCreate, user_id: uuid.UUID) -> WorkforcePlan:
        """Create a DRAFT plan with an empty Baseline scenario."""
        cycle = await self.db.get(PlanningCycle, data.cycle_id)
        if not cycle:
            raise NotFoundError("Planning cycle not found", details={"cycle_id": str(data.cycle_id)})

        department = await self.db.get(Department, data.department_id)
        if not department:
            raise NotFoundError("Department not found", details={"department_id": str(data.department_id)})

        existing = await self.db.scalar(
            select(WorkforcePlan.id).where(
                WorkforcePlan.cycle_id == data.cycle_id,
                WorkforcePlan.department_id == data.department_id,
            )
        )
        if existing:
            raise InvalidStateError(
                "A workforce plan already exists for this department in this cycle",
                details={"plan_id": str(existing)},
            )

        plan = WorkforcePlan(
            cycle_id=data.cycle_id,
            department_id=data.department_id,
            notes=data.notes,
            status=PlanStatus.DRAFT,
        )
        plan.scenarios.append(WorkforcePlanScenario(name=BASELINE_SCENARIO_NAME, is_baseline=True))
        self.db.add(plan)
        await self.db.flush()

        logger.info(f"Workforce plan {plan.id} created for department {department.code} by {user_id}")
        return await self.get_plan(plan.id)

    async def update_plan(
        self,
        plan_id: uuid.UUID,
        data: WorkforcePlanUpdate,
        user_id: uuid.UUID,
    ) -> WorkforcePlan:
        """
        Update notes and/or status.

        Moving a plan into or out of review is owned by the submit and
        review operations, so SUBMITTED is refused on either side here.
        """
        plan = await self.get_plan(plan_id)
        update_data = data.model_dump(exclude_unset=True)

        if "notes" in update_data:
            if plan.status == PlanStatus.LOCKED:
                raise InvalidStateError("Locked workforce plans cannot be modified")
            plan.notes = update_data["notes"]

        new_status = update_data.get("status")
        if new_status is not None and new_status.value != plan.status:
            if PlanStatus.SUBMITTED in (plan.status, new_status.value):
                raise InvalidStateError(
                    "Use the submit and review operations to move a plan into or out of review",
                    details={"status": plan.status},
                )
            transition_plan(plan, new_status.value, user_id)

        await self.db.flush()
        return await self.get_plan(plan_id)

    async def delete_plan(self, plan_id: uuid.UUID) -> None:
        """Delete a DRAFT plan with everything it owns."""
        plan = await self.get_plan(plan_id)
        if not can_delete(plan.status):
            raise InvalidStateError(
                f"Only DRAFT workforce plans can be deleted (current status: {plan.status})",
                details={"status": plan.status},
            )
        await self.db.delete(plan)
        await self.db.flush()
        logger.info(f"Workforce plan {plan_id} deleted")

    @staticmethod
    def ensure_editable(plan: WorkforcePlan) -> None:
        if not can_edit(plan.status):
            raise InvalidStateError(
                f"Cannot modify a {plan.status.lower()} workforce plan",
                details={"status": plan.status},
            )

    @staticmethod
    def pick_scenario(
        plan: WorkforcePlan,
        scenario_id: Optional[uuid.UUID] = None,
    ) -> WorkforcePlanScenario:
        """Requested scenario, else the baseline, else the first scenario."""
        if scenario_id:
            scenario = next((s for s in plan.scenarios if s.id == scenario_id), None)
            if not scenario:
                raise NotFoundError(
                    "Scenario not found in this workforce plan",
                    details={"scenario_id": str(scenario_id)},
                )
            return scenario

        scenario = plan.baseline_scenario or (plan.scenarios[0] if plan.scenarios else None)
        if not scenario:
            raise NotFoundError("Workforce plan has no scenarios", details={"plan_id": str(plan.id)})
        return scenario

    # ==================== ENTRY METHODS ====================

    async def _check_job_references(self, role_ids: set, level_ids: set) -> None:
        if role_ids:
            found = set((await self.db.scalars(select(JobRole.id).where(JobRole.id.in_(role_ids)))).all())
            missing = role_ids - found
            if missing:
                raise NotFoundError("Job role not found", details={"job_role_ids": sorted(str(i) for i in missing)})
        if level_ids:
            found = set((await self.db.scalars(select(JobLevel.id).where(JobLevel.id.in_(level_ids)))).all())
            missing = level_ids - found
            if missing:
                raise NotFoundError("Job level not found", details={"job_level_ids": sorted(str(i) for i in missing)})

    async def upsert_entries(
        self,
        plan_id: uuid.UUID,
        data: WorkforceEntriesUpdate,
    ) -> Tuple[WorkforcePlan, uuid.UUID]:
        """
        Create or update entries by (job role, job level) in one scenario.

        Entries not named in the request are left as they are. Payroll
        impact is recomputed for every written entry.
        """
        plan = await self.get_plan(plan_id)
        self.ensure_editable(plan)
        scenario = self.pick_scenario(plan, data.scenario_id)

        await self._check_job_references(
            {e.job_role_id for e in data.entries},
            {e.job_level_id for e in data.entries},
        )

        existing = {(e.job_role_id, e.job_level_id): e for e in scenario.entries}
        for item in data.entries:
            values = item.model_dump()
            key = (item.job_role_id, item.job_level_id)
            entry = existing.get(key)
            if entry is None:
                entry = WorkforcePlanEntry(scenario_id=scenario.id, **values)
                scenario.entries.append(entry)
                existing[key] = entry
            else:
                for field, value in values.items():
                    setattr(entry, field, value)
            entry.total_payroll_impact = payroll_impact(entry)

        await self.db.flush()
        logger.info(f"Workforce plan {plan.id}: {len(data.entries)} entries written to scenario {scenario.id}")
        return await self.get_plan(plan_id), scenario.id

    # ==================== SCENARIO METHODS ====================

    async def get_scenario(self, scenario_id: uuid.UUID) -> Tuple[WorkforcePlan, WorkforcePlanScenario]:
        """Get a scenario together with its fully loaded plan."""
        plan_id = await self.db.scalar(
            select(WorkforcePlanScenario.workforce_plan_id).where(WorkforcePlanScenario.id == scenario_id)
        )
        if not plan_id:
            raise NotFoundError("Scenario not found", details={"scenario_id": str(scenario_id)})
        plan = await self.get_plan(plan_id)
        return plan, self.pick_scenario(plan, scenario_id)

    @staticmethod
    def _copy_into(target: WorkforcePlanScenario, source: WorkforcePlanScenario, with_exits: bool) -> None:
        for entry in source.entries:
            target.entries.append(WorkforcePlanEntry(
                job_role_id=entry.job_role_id,
                job_level_id=entry.job_level_id,
                current_headcount=entry.current_headcount,
                q1_hires=entry.q1_hires,
                q2_hires=entry.q2_hires,
                q3_hires=entry.q3_hires,
                q4_hires=entry.q4_hires,
                planned_exits=entry.planned_exits,
                avg_compensation=entry.avg_compensation,
                total_payroll_impact=entry.total_payroll_impact,
                notes=entry.notes,
            ))
        if with_exits:
            for exit_ in source.exits:
                target.exits.append(PlannedExit(
                    job_role_id=exit_.job_role_id,
                    job_level_id=exit_.job_level_id,
                    exit_month=exit_.exit_month,
                    exit_count=exit_.exit_count,
                    reason=exit_.reason,
                ))

    async def create_scenario(
        self,
        plan_id: uuid.UUID,
        data: ScenarioCreate,
    ) -> Tuple[WorkforcePlan, WorkforcePlanScenario]:
        """Add a non-baseline scenario, optionally seeded with a sibling's entries."""
        plan = await self.get_plan(plan_id)
        self.ensure_editable(plan)

        scenario = WorkforcePlanScenario(name=data.name, is_baseline=False)
        if data.copy_from_scenario_id:
            source = self.pick_scenario(plan, data.copy_from_scenario_id)
            self._copy_into(scenario, source, with_exits=False)

        plan.scenarios.append(scenario)
        await self.db.flush()
        return await self.get_scenario(scenario.id)

    async def update_scenario(
        self,
        scenario_id: uuid.UUID,
        data: ScenarioUpdate,
    ) -> Tuple[WorkforcePlan, WorkforcePlanScenario]:
        """Rename a scenario and/or make it the plan's baseline."""
        plan, scenario = await self.get_scenario(scenario_id)
        self.ensure_editable(plan)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("name"):
            scenario.name = update_data["name"]

        if update_data.get("is_baseline") is True and not scenario.is_baseline:
            for other in plan.scenarios:
                other.is_baseline = other.id == scenario.id
            logger.info(f"Workforce plan {plan.id}: scenario {scenario.id} is now the baseline")
        elif update_data.get("is_baseline") is False and scenario.is_baseline:
            raise InvalidStateError("A plan must keep a baseline scenario. Set another scenario as baseline instead.")

        await self.db.flush()
        return await self.get_scenario(scenario_id)

    async def delete_scenario(self, scenario_id: uuid.UUID) -> None:
        plan, scenario = await self.get_scenario(scenario_id)
        self.ensure_editable(plan)

        if len(plan.scenarios) <= 1:
            raise InvalidStateError("Cannot delete the only scenario in a plan")
        if scenario.is_baseline:
            raise InvalidStateError("Cannot delete baseline scenario. Set another scenario as baseline first.")

        plan.scenarios.remove(scenario)
        await self.db.flush()

    async def clone_scenario(
        self,
        scenario_id: uuid.UUID,
        name: Optional[str],
    ) -> Tuple[WorkforcePlan, WorkforcePlanScenario]:
        """Copy a scenario with its entries and exits under a new name."""
        if not name or not name.strip():
            raise InvalidStateError("New scenario name is required")

        plan, source = await self.get_scenario(scenario_id)
        self.ensure_editable(plan)

        clone = WorkforcePlanScenario(name=name.strip(), is_baseline=False)
        self._copy_into(clone, source, with_exits=True)
        plan.scenarios.append(clone)
        await self.db.flush()

        logger.info(f"Workforce plan {plan.id}: scenario {source.id} cloned to {clone.id}")
        return await self.get_scenario(clone.id)

    # ==================== PLANNED EXIT METHODS ====================

    async def add_exit(
        self,
        scenario_id: uuid.UUID,
        data: PlannedExitCreate,
    ) -> Tuple[WorkforcePlanScenario, PlannedExit]:
        """Record a planned exit and count it on the matching entry."""
        if not 1 <= data.exit_month <= 12:
            raise InvalidStateError("Exit month must be between 1 and 12", details={"exit_month": data.exit_month})
        valid_reasons = [r.value for r in ExitReason]
        if data.reason not in valid_reasons:
            raise InvalidStateError(
                f"Invalid exit reason. Must be one of: {', '.join(valid_reasons)}",
                details={"reason": data.reason},
            )

        plan, scenario = await self.get_scenario(scenario_id)
        self.ensure_editable(plan)
        await self._check_job_references({data.job_role_id}, {data.job_level_id})

        exit_ = PlannedExit(
            job_role_id=data.job_role_id,
            job_level_id=data.job_level_id,
            exit_month=data.exit_month,
            exit_count=data.exit_count,
            reason=data.reason,
        )
        scenario.exits.append(exit_)

        entry = next(
            (e for e in scenario.entries
             if e.job_role_id == data.job_role_id and e.job_level_id == data.job_level_id),
            None,
        )
        if entry is not None:
            entry.planned_exits += data.exit_count

        await self.db.flush()
        return scenario, exit_

    # ==================== BUDGET CHECK ====================

    async def budget_check(
        self,
        plan_id: uuid.UUID,
        scenario_id: Optional[uuid.UUID] = None,
        under_threshold: Optional[Decimal] = None,
    ) -> Tuple[WorkforcePlan, WorkforcePlanScenario, BudgetVarianceReport]:
        """Compare a scenario's planned spend with the department's allocation."""
        plan = await self.get_plan(plan_id)
        scenario = self.pick_scenario(plan, scenario_id)

        allocation = await self.db.scalar(
            select(BudgetAllocation).where(
                BudgetAllocation.cycle_id == plan.cycle_id,
                BudgetAllocation.department_id == plan.department_id,
            )
        )

        kwargs = {}
        if under_threshold is not None:
            kwargs["under_threshold"] = under_threshold
        report = calculate_budget_variance(scenario.entries, allocation, **kwargs)
        return plan, scenario, report
