"""Plans, entries, scenarios, exits and budget checks through the HTTP API."""
from decimal import Decimal
import uuid

import pytest

from tests.utils import auth_headers


API = "/api/v1"


def money(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def headers(approval_setup):
    return auth_headers(approval_setup["owner"])


async def _baseline_id(client, plan_id, headers):
    response = await client.get(f"{API}/workforce-plans/{plan_id}/entries", headers=headers)
    return response.json()["scenario_id"]


# ==================== Plans ====================

async def test_create_plan_starts_as_draft_with_baseline(client, factory, approval_setup, headers):
    s = approval_setup
    department = await factory.department("Marketing")

    response = await client.post(
        f"{API}/workforce-plans",
        json={"cycle_id": str(s["cycle"].id), "department_id": str(department.id), "notes": "FY25 draft"},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "DRAFT"
    assert body["notes"] == "FY25 draft"
    assert body["department_name"] == "Marketing"
    assert body["allowed_transitions"] == ["SUBMITTED"]
    assert [(sc["name"], sc["is_baseline"]) for sc in body["scenarios"]] == [("Baseline", True)]
    assert body["stats"]["scenario_count"] == 1


async def test_one_plan_per_cycle_and_department(client, approval_setup, headers):
    s = approval_setup
    response = await client.post(
        f"{API}/workforce-plans",
        json={"cycle_id": str(s["cycle"].id), "department_id": str(s["department"].id)},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["details"]["plan_id"] == str(s["plan"].id)


async def test_create_plan_unknown_cycle(client, approval_setup, headers):
    response = await client.post(
        f"{API}/workforce-plans",
        json={"cycle_id": str(uuid.uuid4()), "department_id": str(approval_setup["department"].id)},
        headers=headers,
    )
    assert response.status_code == 404


async def test_list_plans_filters_and_paginates(client, factory, approval_setup, headers):
    s = approval_setup
    for name in ("Sales", "Support"):
        await factory.plan(s["cycle"], await factory.department(name))
    await factory.plan(s["cycle"], await factory.department("Legal"), status="APPROVED")

    response = await client.get(f"{API}/workforce-plans", params={"size": 2}, headers=headers)
    body = response.json()
    assert body["total"] == 4
    assert body["pages"] == 2
    assert len(body["items"]) == 2

    response = await client.get(f"{API}/workforce-plans", params={"status": "APPROVED"}, headers=headers)
    assert [p["department_name"] for p in response.json()["items"]] == ["Legal"]

    response = await client.get(
        f"{API}/workforce-plans",
        params={"department_id": str(s["department"].id)},
        headers=headers,
    )
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["stats"]["total_headcount"] == 10
    assert items[0]["stats"]["total_hires"] == 3
    assert money(items[0]["stats"]["total_payroll_impact"]) == Decimal("300000")


async def test_plan_detail_includes_scenarios_and_entries(client, approval_setup, headers):
    response = await client.get(f"{API}/workforce-plans/{approval_setup['plan'].id}", headers=headers)

    assert response.status_code == 200
    baseline = response.json()["scenarios"][0]
    assert baseline["entry_count"] == 1
    assert baseline["totals"]["projected_headcount"] == 12
    entry = baseline["entries"][0]
    assert entry["job_role_name"] == "Software Engineer"
    assert entry["total_hires"] == 3


async def test_update_notes(client, approval_setup, headers):
    response = await client.put(
        f"{API}/workforce-plans/{approval_setup['plan'].id}",
        json={"notes": "Hiring freeze in Q2"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Hiring freeze in Q2"
    assert response.json()["status"] == "DRAFT"


@pytest.mark.parametrize("target", ["SUBMITTED", "APPROVED", "LOCKED"])
async def test_update_cannot_bypass_the_workflow(client, approval_setup, headers, target):
    response = await client.put(
        f"{API}/workforce-plans/{approval_setup['plan'].id}",
        json={"status": target},
        headers=headers,
    )
    assert response.status_code == 400


async def test_locked_plan_notes_are_frozen(client, factory, approval_setup, headers):
    s = approval_setup
    locked = await factory.plan(s["cycle"], await factory.department("Ops"), status="LOCKED")
    response = await client.put(f"{API}/workforce-plans/{locked.id}", json={"notes": "x"}, headers=headers)
    assert response.status_code == 400


async def test_delete_draft_plan(client, approval_setup, headers):
    plan_id = approval_setup["plan"].id

    response = await client.delete(f"{API}/workforce-plans/{plan_id}", headers=headers)
    assert response.status_code == 200

    response = await client.get(f"{API}/workforce-plans/{plan_id}", headers=headers)
    assert response.status_code == 404


async def test_submitted_plan_cannot_be_deleted(client, approval_setup, headers):
    plan_id = approval_setup["plan"].id
    await client.post(f"{API}/workforce-plans/{plan_id}/submit", headers=headers)

    response = await client.delete(f"{API}/workforce-plans/{plan_id}", headers=headers)
    assert response.status_code == 400


# ==================== Entries ====================

async def test_upsert_entries_computes_payroll_impact(client, factory, approval_setup, headers):
    s = approval_setup
    senior = await factory.job_level("L5", rank=5)
    plan_id = s["plan"].id

    response = await client.put(
        f"{API}/workforce-plans/{plan_id}/entries",
        json={"entries": [
            {
                "job_role_id": str(s["job_role"].id),
                "job_level_id": str(senior.id),
                "current_headcount": 2,
                "q2_hires": 1,
                "q4_hires": 1,
                "avg_compensation": "150000",
            },
        ]},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_editable"] is True
    assert len(body["entries"]) == 2  # existing entry is kept
    added = next(e for e in body["entries"] if e["job_level_id"] == str(senior.id))
    assert added["job_level_code"] == "L5"
    assert money(added["total_payroll_impact"]) == Decimal("300000")
    assert body["totals"]["current_headcount"] == 12
    assert body["totals"]["new_hires"] == 5
    assert money(body["totals"]["total_payroll_impact"]) == Decimal("600000")


async def test_upsert_updates_existing_entry_by_role_and_level(client, approval_setup, headers):
    s = approval_setup
    response = await client.put(
        f"{API}/workforce-plans/{s['plan'].id}/entries",
        json={"entries": [{
            "job_role_id": str(s["job_role"].id),
            "job_level_id": str(s["job_level"].id),
            "current_headcount": 10,
            "q1_hires": 4,
            "avg_compensation": "90000",
        }]},
        headers=headers,
    )

    body = response.json()
    assert len(body["entries"]) == 1
    entry = body["entries"][0]
    assert entry["q1_hires"] == 4
    assert entry["q3_hires"] == 0
    assert money(entry["total_payroll_impact"]) == Decimal("360000")


async def test_upsert_rejects_unknown_job_role(client, approval_setup, headers):
    s = approval_setup
    response = await client.put(
        f"{API}/workforce-plans/{s['plan'].id}/entries",
        json={"entries": [{"job_role_id": str(uuid.uuid4()), "job_level_id": str(s["job_level"].id)}]},
        headers=headers,
    )
    assert response.status_code == 404


async def test_negative_hires_are_a_validation_error(client, approval_setup, headers):
    s = approval_setup
    response = await client.put(
        f"{API}/workforce-plans/{s['plan'].id}/entries",
        json={"entries": [{
            "job_role_id": str(s["job_role"].id),
            "job_level_id": str(s["job_level"].id),
            "q1_hires": -1,
        }]},
        headers=headers,
    )
    assert response.status_code == 422


async def test_approved_plan_entries_are_read_only(client, factory, approval_setup, headers):
    s = approval_setup
    approved = await factory.plan(s["cycle"], await factory.department("Finance"), status="APPROVED")

    response = await client.get(f"{API}/workforce-plans/{approved.id}/entries", headers=headers)
    assert response.json()["is_editable"] is False

    response = await client.put(
        f"{API}/workforce-plans/{approved.id}/entries",
        json={"entries": [{"job_role_id": str(s["job_role"].id), "job_level_id": str(s["job_level"].id)}]},
        headers=headers,
    )
    assert response.status_code == 400


# ==================== Scenarios ====================

async def test_create_scenario_copying_baseline(client, approval_setup, headers):
    plan_id = approval_setup["plan"].id
    baseline_id = await _baseline_id(client, plan_id, headers)

    response = await client.post(
        f"{API}/workforce-plans/{plan_id}/scenarios",
        json={"name": "Aggressive", "copy_from_scenario_id": baseline_id},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_baseline"] is False
    assert body["entry_count"] == 1
    assert body["totals"]["new_hires"] == 3

    response = await client.get(f"{API}/workforce-plans/{plan_id}/scenarios", headers=headers)
    assert [sc["name"] for sc in response.json()] == ["Baseline", "Aggressive"]


async def test_switch_baseline_and_delete_old_one(client, approval_setup, headers):
    plan_id = approval_setup["plan"].id
    baseline_id = await _baseline_id(client, plan_id, headers)
    created = await client.post(f"{API}/workforce-plans/{plan_id}/scenarios", json={"name": "Lean"}, headers=headers)
    lean_id = created.json()["id"]

    # The baseline cannot be deleted or unflagged directly
    response = await client.delete(f"{API}/workforce-scenarios/{baseline_id}", headers=headers)
    assert response.status_code == 400
    response = await client.put(f"{API}/workforce-scenarios/{baseline_id}", json={"is_baseline": False}, headers=headers)
    assert response.status_code == 400

    response = await client.put(f"{API}/workforce-scenarios/{lean_id}", json={"is_baseline": True}, headers=headers)
    assert response.status_code == 200
    assert response.json()["is_baseline"] is True

    response = await client.get(f"{API}/workforce-scenarios/{baseline_id}", headers=headers)
    assert response.json()["is_baseline"] is False

    response = await client.delete(f"{API}/workforce-scenarios/{baseline_id}", headers=headers)
    assert response.status_code == 200

    response = await client.get(f"{API}/workforce-plans/{plan_id}/scenarios", headers=headers)
    assert [(sc["name"], sc["is_baseline"]) for sc in response.json()] == [("Lean", True)]


async def test_rename_scenario(client, approval_setup, headers):
    baseline_id = await _baseline_id(client, approval_setup["plan"].id, headers)
    response = await client.put(f"{API}/workforce-scenarios/{baseline_id}", json={"name": "Plan A"}, headers=headers)
    assert response.json()["name"] == "Plan A"
    assert response.json()["is_baseline"] is True


async def test_unknown_scenario(client, approval_setup, headers):
    response = await client.get(f"{API}/workforce-scenarios/{uuid.uuid4()}", headers=headers)
    assert response.status_code == 404

    response = await client.get(
        f"{API}/workforce-plans/{approval_setup['plan'].id}/entries",
        params={"scenario_id": str(uuid.uuid4())},
        headers=headers,
    )
    assert response.status_code == 404

    response = await client.get(
        f"{API}/workforce-plans/{approval_setup['plan'].id}/budget-check",
        params={"scenario_id": str(uuid.uuid4())},
        headers=headers,
    )
    assert response.status_code == 404


# ==================== Planned exits and cloning ====================

def _exit(s, month=3, reason="ATTRITION", count=1):
    return {
        "job_role_id": str(s["job_role"].id),
        "job_level_id": str(s["job_level"].id),
        "exit_month": month,
        "exit_count": count,
        "reason": reason,
    }


@pytest.mark.parametrize("month, reason", [(0, "ATTRITION"), (13, "ATTRITION"), (3, "FIRED")])
async def test_exit_validation(client, approval_setup, headers, month, reason):
    s = approval_setup
    scenario_id = await _baseline_id(client, s["plan"].id, headers)

    response = await client.post(
        f"{API}/workforce-scenarios/{scenario_id}/exits",
        json=_exit(s, month=month, reason=reason),
        headers=headers,
    )
    assert response.status_code == 400


async def test_exits_update_entry_and_summary(client, approval_setup, headers):
    s = approval_setup
    scenario_id = await _baseline_id(client, s["plan"].id, headers)

    response = await client.post(f"{API}/workforce-scenarios/{scenario_id}/exits", json=_exit(s, count=2), headers=headers)
    assert response.status_code == 201
    assert response.json()["exit_count"] == 2
    await client.post(f"{API}/workforce-scenarios/{scenario_id}/exits", json=_exit(s, reason="RETIREMENT"), headers=headers)
    await client.post(f"{API}/workforce-scenarios/{scenario_id}/exits", json=_exit(s, month=6), headers=headers)

    response = await client.get(f"{API}/workforce-scenarios/{scenario_id}/exits", headers=headers)
    body = response.json()
    assert len(body["items"]) == 3
    assert body["summary"]["total_exits"] == 4
    assert body["summary"]["by_month"] == {"3": 3, "6": 1}
    assert body["summary"]["by_reason"] == {"ATTRITION": 3, "RETIREMENT": 1}

    # Entry started with 1 planned exit
    entries = await client.get(f"{API}/workforce-plans/{s['plan'].id}/entries", headers=headers)
    assert entries.json()["entries"][0]["planned_exits"] == 5


async def test_clone_copies_entries_and_exits(client, approval_setup, headers):
    s = approval_setup
    scenario_id = await _baseline_id(client, s["plan"].id, headers)
    await client.post(f"{API}/workforce-scenarios/{scenario_id}/exits", json=_exit(s), headers=headers)

    response = await client.post(
        f"{API}/workforce-scenarios/{scenario_id}/clone",
        json={"name": "  Conservative  "},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Conservative"
    assert body["is_baseline"] is False
    assert body["entry_count"] == 1
    assert body["exit_count"] == 1
    assert body["id"] != scenario_id


@pytest.mark.parametrize("payload", [{}, {"name": "   "}])
async def test_clone_needs_a_name(client, approval_setup, headers, payload):
    scenario_id = await _baseline_id(client, approval_setup["plan"].id, headers)
    response = await client.post(f"{API}/workforce-scenarios/{scenario_id}/clone", json=payload, headers=headers)
    assert response.status_code == 400


# ==================== Budget check ====================

async def test_budget_check_under_budget(client, factory, approval_setup, headers):
    s = approval_setup
    await factory.budget_allocation(s["cycle"], s["department"], Decimal("400000"))

    response = await client.get(f"{API}/workforce-plans/{s['plan'].id}/budget-check", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["scenario_name"] == "Baseline"
    assert body["budget"]["has_budget_allocation"] is True
    assert money(body["budget"]["hiring_budget"]) == Decimal("400000")
    assert money(body["payroll"]["current_payroll"]) == Decimal("1000000")
    assert money(body["payroll"]["new_hires_payroll"]) == Decimal("300000")
    assert money(body["payroll"]["q1_payroll"]) == Decimal("200000")
    assert money(body["payroll"]["q3_payroll"]) == Decimal("50000")
    assert body["headcount"] == {
        "current": 10,
        "new_hires": 3,
        "exits": 1,
        "projected_end": 12,
        "net_change": 2,
    }
    assert money(body["variance"]["amount"]) == Decimal("100000")
    assert money(body["variance"]["percent"]) == Decimal("25")
    assert body["variance"]["status"] == "UNDER"


async def test_budget_check_on_track_at_threshold(client, factory, approval_setup, headers):
    s = approval_setup
    await factory.budget_allocation(s["cycle"], s["department"], Decimal("375000"))

    response = await client.get(f"{API}/workforce-plans/{s['plan'].id}/budget-check", headers=headers)

    assert money(response.json()["variance"]["percent"]) == Decimal("20")
    assert response.json()["variance"]["status"] == "ON_TRACK"


async def test_budget_check_without_allocation_is_over(client, approval_setup, headers):
    response = await client.get(f"{API}/workforce-plans/{approval_setup['plan'].id}/budget-check", headers=headers)

    body = response.json()
    assert body["budget"]["has_budget_allocation"] is False
    assert money(body["variance"]["percent"]) == Decimal("0")
    assert body["variance"]["status"] == "OVER"


async def test_budget_check_for_a_named_scenario(client, factory, approval_setup, headers):
    s = approval_setup
    await factory.budget_allocation(s["cycle"], s["department"], Decimal("250000"))
    created = await client.post(
        f"{API}/workforce-plans/{s['plan'].id}/scenarios",
        json={"name": "Empty"},
        headers=headers,
    )
    scenario_id = created.json()["id"]

    baseline = await client.get(f"{API}/workforce-plans/{s['plan'].id}/budget-check", headers=headers)
    assert baseline.json()["variance"]["status"] == "OVER"

    empty = await client.get(
        f"{API}/workforce-plans/{s['plan'].id}/budget-check",
        params={"scenario_id": scenario_id},
        headers=headers,
    )
    assert empty.json()["scenario_id"] == scenario_id
    assert empty.json()["variance"]["status"] == "UNDER"
    assert empty.json()["headcount"]["projected_end"] == 0


# ==================== Review queue ====================

async def test_review_queue_lists_plans_in_review(client, factory, approval_setup, headers):
    s = approval_setup
    await factory.plan(s["cycle"], await factory.department("Draft Dept"))
    await client.post(f"{API}/workforce-plans/{s['plan'].id}/submit", headers=headers)

    response = await client.get(f"{API}/workforce-review", headers=auth_headers(s["head"]))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    item = body["items"][0]
    assert item["id"] == str(s["plan"].id)
    assert item["current_approver_id"] == str(s["head"].id)
    assert item["approval_summary"] == {"pending": 1, "approved": 0, "rejected": 0}
    assert item["latest_approval"]["step"] == 1

    response = await client.get(f"{API}/workforce-review", params={"status": "APPROVED"}, headers=headers)
    assert response.json()["total"] == 0


# ==================== Planning cycles ====================

async def test_create_cycle_numbers_chain_levels(client, approval_setup, headers):
    finance = approval_setup["finance"]
    response = await client.post(
        f"{API}/cycles",
        json={
            "name": "FY26",
            "start_date": "2026-01-01",
            "end_date": "2026-12-31",
            "approval_chain": [
                {"name": "Department head", "assignees": [{"assignee_type": "ROLE", "role_type": "DEPARTMENT_HEAD"}]},
                {"name": "Finance", "assignees": [{"assignee_type": "USER", "user_id": str(finance.id)}]},
            ],
        },
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "DRAFT"
    assert [(lvl["level"], lvl["name"]) for lvl in body["approval_chain"]] == [(1, "Department head"), (2, "Finance")]
    assert body["approval_chain"][1]["assignees"][0]["user_id"] == str(finance.id)
    assert body["auto_approve_if_missing"] is False
    assert "skip_approver_emails" not in body


@pytest.mark.parametrize(
    "assignee, expected",
    [
        ({"assignee_type": "ROLE"}, 400),
        ({"assignee_type": "USER"}, 400),
        ({"assignee_type": "USER", "user_id": "00000000-0000-0000-0000-000000000001"}, 404),
    ],
)
async def test_create_cycle_validates_assignees(client, approval_setup, headers, assignee, expected):
    response = await client.post(
        f"{API}/cycles",
        json={
            "name": "Broken",
            "start_date": "2026-01-01",
            "end_date": "2026-12-31",
            "approval_chain": [{"assignees": [assignee]}],
        },
        headers=headers,
    )
    assert response.status_code == expected


async def test_cycle_dates_must_be_ordered(client, approval_setup, headers):
    response = await client.post(
        f"{API}/cycles",
        json={"name": "Backwards", "start_date": "2026-12-31", "end_date": "2026-01-01"},
        headers=headers,
    )
    assert response.status_code == 400


async def test_chain_can_only_change_while_cycle_is_draft(client, approval_setup, headers):
    created = await client.post(
        f"{API}/cycles",
        json={
            "name": "FY27",
            "start_date": "2027-01-01",
            "end_date": "2027-12-31",
            "approval_chain": [{"assignees": [{"assignee_type": "ROLE", "role_type": "DEPARTMENT_HEAD"}]}],
        },
        headers=headers,
    )
    cycle_id = created.json()["id"]
    new_chain = [
        {"assignees": [{"assignee_type": "ROLE", "role_type": "FINANCE_HEAD"}]},
        {"assignees": [{"assignee_type": "ROLE", "role_type": "HR_ADMIN"}]},
    ]

    response = await client.put(f"{API}/cycles/{cycle_id}", json={"approval_chain": new_chain}, headers=headers)
    assert response.status_code == 200
    chain = response.json()["approval_chain"]
    assert [(lvl["level"], lvl["assignees"][0]["role_type"]) for lvl in chain] == [(1, "FINANCE_HEAD"), (2, "HR_ADMIN")]

    response = await client.put(f"{API}/cycles/{cycle_id}", json={"status": "ACTIVE"}, headers=headers)
    assert response.json()["status"] == "ACTIVE"

    response = await client.put(f"{API}/cycles/{cycle_id}", json={"approval_chain": []}, headers=headers)
    assert response.status_code == 400


async def test_cycle_in_use_cannot_be_deleted(client, approval_setup, headers):
    cycle_id = approval_setup["cycle"].id
    response = await client.delete(f"{API}/cycles/{cycle_id}", headers=headers)
    assert response.status_code == 400
    assert response.json()["details"]["workforce_plans"] == 1


async def test_list_and_delete_unused_cycle(client, factory, approval_setup, headers):
    unused = await factory.cycle(status="CLOSED")

    response = await client.get(f"{API}/cycles", params={"status": "CLOSED"}, headers=headers)
    assert [c["id"] for c in response.json()["items"]] == [str(unused.id)]

    response = await client.delete(f"{API}/cycles/{unused.id}", headers=headers)
    assert response.status_code == 200
    response = await client.get(f"{API}/cycles/{unused.id}", headers=headers)
    assert response.status_code == 404


# ==================== Budget allocations ====================

async def test_budget_allocation_total_defaults_to_components(client, approval_setup, headers):
    s = approval_setup
    payload = {
        "cycle_id": str(s["cycle"].id),
        "department_id": str(s["department"].id),
        "salary_fixed": "500000",
        "salary_variable": "100000",
        "benefits": "50000",
        "new_hiring_budget": "400000",
    }

    response = await client.post(f"{API}/budget-allocations", json=payload, headers=headers)
    assert response.status_code == 201
    body = response.json()
    assert money(body["total_budget"]) == Decimal("1050000")
    assert body["department_name"] == "Engineering"

    response = await client.post(f"{API}/budget-allocations", json=payload, headers=headers)
    assert response.status_code == 400

    response = await client.get(
        f"{API}/budget-allocations",
        params={"cycle_id": str(s["cycle"].id)},
        headers=headers,
    )
    assert response.json()["total"] == 1

    check = await client.get(f"{API}/workforce-plans/{s['plan'].id}/budget-check", headers=headers)
    assert check.json()["variance"]["status"] == "UNDER"


async def test_health_reports_database(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == "connected"

    response = await client.get("/")
    assert response.json()["health"] == "/health"
