"""
Workforce monitoring over approved plans.

Rolls up the baseline scenario of every APPROVED or LOCKED plan and checks
its planned hiring payroll against the department's budget allocation for
the same cycle. Only plan-side figures are reported; employee actuals are
not tracked by this service.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.planning import BudgetAllocation
from app.models.workforce import WorkforcePlan
from app.services.budget_variance import HUNDRED, PERCENT_PLACES, ZERO
from app.services.workforce_plan_service import WorkforcePlanService, scenario_totals
from app.services.workforce_state_machine import PlanStatus


logger = logging.getLogger(__name__)

MONITORED_STATUSES = [PlanStatus.APPROVED, PlanStatus.LOCKED]

# Overrun of the hiring budget, in percent
DEFAULT_ALERT_PERCENT = Decimal("5")
DEFAULT_HIGH_PERCENT = Decimal("15")


class AlertType(str, Enum):
    BUDGET_OVERRUN = "BUDGET_OVERRUN"


class AlertSeverity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


SEVERITY_ORDER = {AlertSeverity.HIGH: 0, AlertSeverity.MEDIUM: 1, AlertSeverity.LOW: 2}


@dataclass
class PlannedRollup:
    start_headcount: int = 0
    hires: int = 0
    exits: int = 0
    end_headcount: int = 0
    payroll_impact: Decimal = ZERO


@dataclass
class DepartmentMonitor:
    plan_id: uuid.UUID
    plan_status: str
    department_id: uuid.UUID
    department_name: str
    cycle_id: uuid.UUID
    cycle_name: str
    planned: PlannedRollup
    hiring_budget: Optional[Decimal] = None
    total_budget: Optional[Decimal] = None


@dataclass
class MonitoringSummary:
    overall: PlannedRollup
    plan_count: int
    by_department: List[DepartmentMonitor]


@dataclass
class BudgetOverrunDetails:
    planned_payroll: Decimal
    hiring_budget: Decimal
    overrun_amount: Decimal
    # None when the hiring budget is zero
    overrun_percent: Optional[Decimal]


@dataclass
class MonitoringAlert:
    id: str
    type: AlertType
    severity: AlertSeverity
    plan_id: uuid.UUID
    department_id: uuid.UUID
    department_name: str
    message: str
    details: BudgetOverrunDetails


def planned_rollup(plan: WorkforcePlan) -> PlannedRollup:
    """Headcount and payroll plan of record for one plan."""
    baseline = plan.baseline_scenario
    totals = scenario_totals(baseline.entries if baseline else [])
    return PlannedRollup(
        start_headcount=totals["current_headcount"],
        hires=totals["new_hires"],
        exits=totals["planned_exits"],
        end_headcount=totals["projected_headcount"],
        payroll_impact=totals["total_payroll_impact"],
    )


def combine_rollups(rollups: Iterable[PlannedRollup]) -> PlannedRollup:
    overall = PlannedRollup()
    for rollup in rollups:
        overall.start_headcount += rollup.start_headcount
        overall.hires += rollup.hires
        overall.exits += rollup.exits
        overall.end_headcount += rollup.end_headcount
        overall.payroll_impact += rollup.payroll_impact
    return overall


def budget_overrun_alert(
    department: DepartmentMonitor,
    alert_percent: Decimal = DEFAULT_ALERT_PERCENT,
    high_percent: Decimal = DEFAULT_HIGH_PERCENT,
) -> Optional[MonitoringAlert]:
    """
    Alert when planned payroll exceeds the hiring budget by more than alert_percent.

    Severity is HIGH above high_percent, MEDIUM otherwise. Departments without
    an allocation are not checked. Any planned payroll against a zero hiring
    budget is HIGH.
    """
    hiring_budget = department.hiring_budget
    planned_payroll = department.planned.payroll_impact
    if hiring_budget is None or planned_payroll <= hiring_budget:
        return None

    overrun = planned_payroll - hiring_budget
    if hiring_budget > ZERO:
        overrun_percent = overrun / hiring_budget * HUNDRED
        if overrun_percent <= alert_percent:
            return None
        severity = AlertSeverity.HIGH if overrun_percent > high_percent else AlertSeverity.MEDIUM
        reported_percent = overrun_percent.quantize(PERCENT_PLACES)
        message = (
            f"Planned payroll exceeds hiring budget by {overrun:,.2f} ({reported_percent}%)"
        )
    else:
        severity = AlertSeverity.HIGH
        reported_percent = None
        message = f"Planned payroll of {planned_payroll:,.2f} has no hiring budget"

    return MonitoringAlert(
        id=f"budget-{department.plan_id}",
        type=AlertType.BUDGET_OVERRUN,
        severity=severity,
        plan_id=department.plan_id,
        department_id=department.department_id,
        department_name=department.department_name,
        message=message,
        details=BudgetOverrunDetails(
            planned_payroll=planned_payroll,
            hiring_budget=hiring_budget,
            overrun_amount=overrun,
            overrun_percent=reported_percent,
        ),
    )


def count_by_severity(alerts: Iterable[MonitoringAlert]) -> Dict[str, int]:
    alerts = list(alerts)
    counts = {"total": len(alerts)}
    for severity in AlertSeverity:
        counts[severity.value.lower()] = sum(1 for a in alerts if a.severity == severity)
    return counts


class WorkforceMonitoringService:
    """Plan-of-record rollups and budget alerts for approved workforce plans."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _allocations(
        self, cycle_ids: Iterable[uuid.UUID]
    ) -> Dict[Tuple[uuid.UUID, uuid.UUID], BudgetAllocation]:
        cycle_ids = set(cycle_ids)
        if not cycle_ids:
            return {}
        result = await self.db.scalars(
            select(BudgetAllocation).where(BudgetAllocation.cycle_id.in_(cycle_ids))
        )
        return {(a.cycle_id, a.department_id): a for a in result.all()}

    async def get_departments(
        self,
        cycle_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> List[DepartmentMonitor]:
        """One row per monitored plan, ordered by department then cycle name."""
        plans, _ = await WorkforcePlanService(self.db).get_plans(
            cycle_id=cycle_id,
            department_id=department_id,
            statuses=MONITORED_STATUSES,
            limit=None,
        )
        allocations = await self._allocations(p.cycle_id for p in plans)

        rows = []
        for plan in plans:
            allocation = allocations.get((plan.cycle_id, plan.department_id))
            rows.append(DepartmentMonitor(
                plan_id=plan.id,
                plan_status=plan.status,
                department_id=plan.department_id,
                department_name=plan.department.name,
                cycle_id=plan.cycle_id,
                cycle_name=plan.cycle.name,
                planned=planned_rollup(plan),
                hiring_budget=Decimal(allocation.new_hiring_budget) if allocation else None,
                total_budget=Decimal(allocation.total_budget) if allocation else None,
            ))
        rows.sort(key=lambda r: (r.department_name, r.cycle_name))
        return rows

    async def get_summary(
        self,
        cycle_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> MonitoringSummary:
        departments = await self.get_departments(cycle_id, department_id)
        return MonitoringSummary(
            overall=combine_rollups(d.planned for d in departments),
            plan_count=len(departments),
            by_department=departments,
        )

    async def get_alerts(
        self,
        cycle_id: Optional[uuid.UUID] = None,
        severity: Optional[AlertSeverity] = None,
        alert_percent: Decimal = DEFAULT_ALERT_PERCENT,
        high_percent: Decimal = DEFAULT_HIGH_PERCENT,
    ) -> List[MonitoringAlert]:
        """Budget alerts, HIGH first, then by department name."""
        alerts = []
        for department in await self.get_departments(cycle_id):
            alert = budget_overrun_alert(department, alert_percent, high_percent)
            if alert is not None:
                alerts.append(alert)

        if alerts:
            logger.info(f"{len(alerts)} workforce budget alerts raised")

        if severity is not None:
            alerts = [a for a in alerts if a.severity == severity]
        alerts.sort(key=lambda a: (SEVERITY_ORDER[a.severity], a.department_name))
        return alerts
