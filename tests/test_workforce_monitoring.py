"""Rollups and budget alerts over approved workforce plans."""
from decimal import Decimal
import uuid

import pytest

from app.services.workforce_monitoring import (
    AlertSeverity,
    DepartmentMonitor,
    PlannedRollup,
    budget_overrun_alert,
    count_by_severity,
)
from tests.utils import auth_headers


API = "/api/v1/workforce-monitoring"


def money(value) -> Decimal:
    return Decimal(str(value))


def _department(payroll: str, hiring_budget=None, name: str = "Sales") -> DepartmentMonitor:
    return DepartmentMonitor(
        plan_id=uuid.uuid4(),
        plan_status="APPROVED",
        department_id=uuid.uuid4(),
        department_name=name,
        cycle_id=uuid.uuid4(),
        cycle_name="FY25",
        planned=PlannedRollup(payroll_impact=Decimal(payroll)),
        hiring_budget=Decimal(hiring_budget) if hiring_budget is not None else None,
    )


# ==================== Alert rules ====================

@pytest.mark.parametrize(
    "payroll, budget, expected",
    [
        ("100000", "100000", None),                  # on budget
        ("105000", "100000", None),                  # exactly 5% over
        ("105001", "100000", AlertSeverity.MEDIUM),
        ("115000", "100000", AlertSeverity.MEDIUM),  # exactly 15% over
        ("115001", "100000", AlertSeverity.HIGH),
        ("90000", "100000", None),
    ],
)
def test_budget_overrun_severity(payroll, budget, expected):
    alert = budget_overrun_alert(_department(payroll, budget))
    if expected is None:
        assert alert is None
    else:
        assert alert.severity == expected
        assert alert.type.value == "BUDGET_OVERRUN"


def test_overrun_details_are_rounded():
    alert = budget_overrun_alert(_department("100000", "90000"))
    assert alert.details.overrun_amount == Decimal("10000")
    assert str(alert.details.overrun_percent) == "11.11"
    assert "11.11%" in alert.message


def test_no_allocation_raises_no_alert():
    assert budget_overrun_alert(_department("500000", None)) is None


def test_zero_hiring_budget_is_high():
    alert = budget_overrun_alert(_department("50000", "0"))
    assert alert.severity == AlertSeverity.HIGH
    assert alert.details.overrun_percent is None


def test_count_by_severity():
    alerts = [
        budget_overrun_alert(_department("200000", "100000")),
        budget_overrun_alert(_department("110000", "100000")),
    ]
    assert count_by_severity(alerts) == {"total": 2, "high": 1, "medium": 1, "low": 0}


# ==================== API ====================

@pytest.fixture
async def monitored(factory, approval_setup):
    """
    Three approved or locked plans in the setup cycle next to the DRAFT setup plan:
    Sales 11% over its hiring budget, Support 33% over, Ops 4% over.
    """
    s = approval_setup
    cycle = s["cycle"]

    def entry(**values):
        return {"job_role": s["job_role"], "job_level": s["job_level"], **values}

    sales = await factory.department("Sales")
    support = await factory.department("Support")
    ops = await factory.department("Ops")

    await factory.plan(
        cycle, sales, status="APPROVED",
        entries=[entry(current_headcount=5, q2_hires=2, planned_exits=1, avg_compensation="50000")],
    )
    await factory.plan(
        cycle, support, status="LOCKED",
        entries=[entry(current_headcount=3, q1_hires=1, avg_compensation="80000")],
    )
    await factory.plan(
        cycle, ops, status="APPROVED",
        entries=[entry(current_headcount=4, q1_hires=2, avg_compensation="50000")],
    )
    await factory.budget_allocation(cycle, sales, Decimal("90000"))
    await factory.budget_allocation(cycle, support, Decimal("60000"))
    await factory.budget_allocation(cycle, ops, Decimal("96000"))

    return {**s, "sales": sales, "support": support, "ops": ops}


@pytest.fixture
def headers(approval_setup):
    return auth_headers(approval_setup["owner"])


async def test_summary_rolls_up_approved_and_locked_plans(client, monitored, headers):
    response = await client.get(f"{API}/summary", headers=headers)

    assert response.status_code == 200
    body = response.json()
    # The DRAFT Engineering plan is not monitored
    assert [d["department_name"] for d in body["by_department"]] == ["Ops", "Sales", "Support"]
    assert body["plan_count"] == 3

    sales = body["by_department"][1]
    assert sales["plan_status"] == "APPROVED"
    assert sales["planned"]["start_headcount"] == 5
    assert sales["planned"]["end_headcount"] == 6
    assert money(sales["planned"]["payroll_impact"]) == Decimal("100000")
    assert money(sales["hiring_budget"]) == Decimal("90000")

    overall = body["overall"]
    assert overall["start_headcount"] == 12
    assert overall["hires"] == 5
    assert overall["exits"] == 1
    assert overall["end_headcount"] == 16
    assert money(overall["payroll_impact"]) == Decimal("280000")


async def test_summary_filters(client, factory, monitored, headers):
    other_cycle = await factory.cycle()
    await factory.plan(other_cycle, monitored["sales"], status="APPROVED")

    response = await client.get(
        f"{API}/summary",
        params={"department_id": str(monitored["sales"].id)},
        headers=headers,
    )
    assert response.json()["plan_count"] == 2

    response = await client.get(
        f"{API}/summary",
        params={"cycle_id": str(other_cycle.id)},
        headers=headers,
    )
    body = response.json()
    assert body["plan_count"] == 1
    assert body["by_department"][0]["hiring_budget"] is None


async def test_alerts_sorted_by_severity(client, monitored, headers):
    response = await client.get(f"{API}/alerts", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert [(a["department_name"], a["severity"]) for a in body["alerts"]] == [
        ("Support", "HIGH"),
        ("Sales", "MEDIUM"),
    ]
    assert body["summary"] == {"total": 2, "high": 1, "medium": 1, "low": 0}

    support = body["alerts"][0]
    assert support["type"] == "BUDGET_OVERRUN"
    assert money(support["details"]["overrun_amount"]) == Decimal("20000")
    assert money(support["details"]["overrun_percent"]) == Decimal("33.33")


async def test_alerts_severity_filter(client, monitored, headers):
    response = await client.get(f"{API}/alerts", params={"severity": "HIGH"}, headers=headers)

    body = response.json()
    assert [a["department_name"] for a in body["alerts"]] == ["Support"]
    assert body["summary"]["total"] == 1


async def test_monitoring_requires_token(client, monitored):
    response = await client.get(f"{API}/alerts")
    assert response.status_code == 401
