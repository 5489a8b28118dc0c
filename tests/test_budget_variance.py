from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.budget_variance import (
    VarianceStatus,
    calculate_budget_variance,
    calculate_variance,
    classify_variance,
)


def _entry(current=0, q1=0, q2=0, q3=0, q4=0, exits=0, avg="0"):
    avg = Decimal(avg)
    return SimpleNamespace(
        current_headcount=current,
        q1_hires=q1,
        q2_hires=q2,
        q3_hires=q3,
        q4_hires=q4,
        planned_exits=exits,
        avg_compensation=avg,
        total_payroll_impact=Decimal(q1 + q2 + q3 + q4) * avg,
    )


def _allocation(hiring="0", fixed="0", variable="0", total="0"):
    return SimpleNamespace(
        new_hiring_budget=Decimal(hiring),
        salary_fixed=Decimal(fixed),
        salary_variable=Decimal(variable),
        total_budget=Decimal(total),
    )


@pytest.mark.parametrize(
    "available, planned, expected",
    [
        ("400000", "300000", VarianceStatus.UNDER),     # 25% left
        ("375000", "300000", VarianceStatus.ON_TRACK),  # exactly 20% left
        ("300000", "300000", VarianceStatus.ON_TRACK),
        ("250000", "300000", VarianceStatus.OVER),
    ],
)
def test_variance_status(available, planned, expected):
    assert calculate_variance(Decimal(available), Decimal(planned)).status == expected


def test_variance_percent_is_relative_to_available_budget():
    variance = calculate_variance(Decimal("400000"), Decimal("300000"))
    assert variance.amount == Decimal("100000")
    assert variance.percent == Decimal("25")


def test_variance_percent_is_rounded_to_two_places():
    variance = calculate_variance(Decimal("300000"), Decimal("100000"))
    assert str(variance.percent) == "66.67"
    assert variance.status == VarianceStatus.UNDER


def test_status_uses_unrounded_percent():
    # 20.0001% left rounds to 20.00 but is still above the threshold
    variance = calculate_variance(Decimal("1000000"), Decimal("799999"))
    assert variance.percent == Decimal("20.00")
    assert variance.status == VarianceStatus.UNDER


def test_zero_budget_reports_zero_percent_but_over():
    variance = calculate_variance(Decimal("0"), Decimal("50000"))
    assert variance.percent == Decimal("0")
    assert variance.amount == Decimal("-50000")
    assert variance.status == VarianceStatus.OVER


def test_zero_budget_and_zero_spend_is_on_track():
    assert calculate_variance(Decimal("0"), Decimal("0")).status == VarianceStatus.ON_TRACK


def test_threshold_is_configurable():
    # 25% left is UNDER at 20, ON_TRACK at 30
    assert classify_variance(Decimal("1"), Decimal("25"), Decimal("20")) == VarianceStatus.UNDER
    assert classify_variance(Decimal("1"), Decimal("25"), Decimal("30")) == VarianceStatus.ON_TRACK


def test_report_for_a_scenario():
    entries = [
        _entry(current=10, q1=2, q3=1, exits=1, avg="100000"),
        _entry(current=4, q2=1, q4=2, avg="50000"),
    ]
    report = calculate_budget_variance(
        entries,
        _allocation(hiring="500000", fixed="800000", variable="200000", total="1600000"),
    )

    assert report.budget.has_budget_allocation is True
    assert report.budget.hiring_budget == Decimal("500000")
    assert report.budget.salary_budget == Decimal("1000000")
    assert report.budget.total_budget == Decimal("1600000")

    assert report.payroll.current_payroll == Decimal("1200000")
    assert report.payroll.new_hires_payroll == Decimal("450000")
    assert report.payroll.q1_payroll == Decimal("200000")
    assert report.payroll.q2_payroll == Decimal("37500")
    assert report.payroll.q3_payroll == Decimal("50000")
    assert report.payroll.q4_payroll == Decimal("25000")
    assert report.payroll.total_projected_payroll == Decimal("1650000")

    assert report.headcount.current == 14
    assert report.headcount.new_hires == 6
    assert report.headcount.exits == 1
    assert report.headcount.projected_end == 19
    assert report.headcount.net_change == 5

    # 50000 of 500000 left
    assert report.variance.amount == Decimal("50000")
    assert report.variance.percent == Decimal("10")
    assert report.variance.status == VarianceStatus.ON_TRACK


def test_quarter_weights_annualise_hire_cost():
    report = calculate_budget_variance([_entry(q1=1, q2=1, q3=1, q4=1, avg="100")], None)
    payroll = report.payroll
    assert (payroll.q1_payroll, payroll.q2_payroll, payroll.q3_payroll, payroll.q4_payroll) == (
        Decimal("100"), Decimal("75"), Decimal("50"), Decimal("25"),
    )
    # Variance uses full-year hire cost, not the weighted quarters
    assert payroll.new_hires_payroll == Decimal("400")


def test_missing_allocation_is_treated_as_zero_budget():
    report = calculate_budget_variance([_entry(q1=1, avg="1000")], None)
    assert report.budget.has_budget_allocation is False
    assert report.budget.hiring_budget == Decimal("0")
    assert report.variance.status == VarianceStatus.OVER
    assert report.variance.percent == Decimal("0")


def test_empty_scenario():
    report = calculate_budget_variance([], _allocation(hiring="1000"))
    assert report.headcount.projected_end == 0
    assert report.payroll.total_projected_payroll == Decimal("0")
    assert report.variance.status == VarianceStatus.UNDER
