"""
Budget-variance calculator for workforce plan scenarios.

Pure read-side computation: takes a scenario's entries and the department's
budget allocation and derives planned spend, variance and headcount
projection. Nothing is persisted; the report can be re-derived at any time.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from app.models.planning import BudgetAllocation
from app.models.workforce import WorkforcePlanEntry


ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.01")
DEFAULT_UNDER_THRESHOLD = Decimal("20")

# Annualised share of a year's salary paid to hires made in each quarter
QUARTER_WEIGHTS = (Decimal("1"), Decimal("0.75"), Decimal("0.5"), Decimal("0.25"))


class VarianceStatus(str, Enum):
    """Planned spend vs. allocated hiring budget."""
    UNDER = "UNDER"
    ON_TRACK = "ON_TRACK"
    OVER = "OVER"


@dataclass
class BudgetSummary:
    total_budget: Decimal
    salary_budget: Decimal
    hiring_budget: Decimal
    has_budget_allocation: bool


@dataclass
class PayrollSummary:
    current_payroll: Decimal
    new_hires_payroll: Decimal
    q1_payroll: Decimal
    q2_payroll: Decimal
    q3_payroll: Decimal
    q4_payroll: Decimal
    total_projected_payroll: Decimal


@dataclass
class HeadcountSummary:
    current: int
    new_hires: int
    exits: int
    projected_end: int
    net_change: int


@dataclass
class VarianceSummary:
    amount: Decimal
    percent: Decimal
    status: VarianceStatus


@dataclass
class BudgetVarianceReport:
    budget: BudgetSummary
    payroll: PayrollSummary
    headcount: HeadcountSummary
    variance: VarianceSummary


def classify_variance(
    variance: Decimal,
    variance_percent: Decimal,
    under_threshold: Decimal = DEFAULT_UNDER_THRESHOLD,
) -> VarianceStatus:
    """OVER when spend exceeds budget, UNDER when more than the threshold is left, else ON_TRACK."""
    if variance < ZERO:
        return VarianceStatus.OVER
    if variance_percent > under_threshold:
        return VarianceStatus.UNDER
    return VarianceStatus.ON_TRACK


def calculate_variance(
    available_budget: Decimal,
    planned_spend: Decimal,
    under_threshold: Decimal = DEFAULT_UNDER_THRESHOLD,
) -> VarianceSummary:
    """
    Compare planned spend to the available budget.

    variance_percent is reported as 0 when there is no budget, even if the
    plan spends money; the status still comes out OVER in that case.
    The status is classified on the exact percentage; the reported
    percentage is rounded to two places.
    """
    variance = available_budget - planned_spend
    if available_budget > ZERO:
        variance_percent = variance / available_budget * HUNDRED
    else:
        variance_percent = ZERO
    return VarianceSummary(
        amount=variance,
        percent=variance_percent.quantize(PERCENT_PLACES),
        status=classify_variance(variance, variance_percent, under_threshold),
    )


def calculate_budget_variance(
    entries: Iterable[WorkforcePlanEntry],
    allocation: Optional[BudgetAllocation],
    under_threshold: Decimal = DEFAULT_UNDER_THRESHOLD,
) -> BudgetVarianceReport:
    """Build the full budget check report for a scenario's entries."""
    entries = list(entries)

    current_payroll = ZERO
    new_hires_payroll = ZERO
    quarter_payroll = [ZERO, ZERO, ZERO, ZERO]

    for entry in entries:
        avg_comp = Decimal(entry.avg_compensation or 0)
        current_payroll += entry.current_headcount * avg_comp
        hires = (entry.q1_hires, entry.q2_hires, entry.q3_hires, entry.q4_hires)
        for quarter, (count, weight) in enumerate(zip(hires, QUARTER_WEIGHTS)):
            quarter_payroll[quarter] += count * avg_comp * weight
        new_hires_payroll += Decimal(entry.total_payroll_impact or 0)

    if allocation is not None:
        hiring_budget = Decimal(allocation.new_hiring_budget or 0)
        salary_budget = Decimal(allocation.salary_fixed or 0) + Decimal(allocation.salary_variable or 0)
        total_budget = Decimal(allocation.total_budget or 0)
    else:
        hiring_budget = salary_budget = total_budget = ZERO

    current = sum(e.current_headcount for e in entries)
    new_hires = sum(e.q1_hires + e.q2_hires + e.q3_hires + e.q4_hires for e in entries)
    exits = sum(e.planned_exits for e in entries)

    return BudgetVarianceReport(
        budget=BudgetSummary(
            total_budget=total_budget,
            salary_budget=salary_budget,
            hiring_budget=hiring_budget,
            has_budget_allocation=allocation is not None,
        ),
        payroll=PayrollSummary(
            current_payroll=current_payroll,
            new_hires_payroll=new_hires_payroll,
            q1_payroll=quarter_payroll[0],
            q2_payroll=quarter_payroll[1],
            q3_payroll=quarter_payroll[2],
            q4_payroll=quarter_payroll[3],
            total_projected_payroll=current_payroll + new_hires_payroll,
        ),
        headcount=HeadcountSummary(
            current=current,
            new_hires=new_hires,
            exits=exits,
            projected_end=current + new_hires - exits,
            net_change=new_hires - exits,
        ),
        variance=calculate_variance(hiring_budget, new_hires_payroll, under_threshold),
    )
