"""
Workforce Plan Review API Endpoints.

Provides:
- Review queue of plans in or through approval
- Approve / reject / request revision at the current approval step
"""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query

from app.api.deps import DB, CurrentUser, Page
from app.api.v1.endpoints.workforce_plans import (
    build_approval_response,
    build_plan_detail_response,
    build_plan_response,
)
from app.models.approval import ApprovalStatus
from app.models.workforce import WorkforcePlan, WorkforcePlanStatus
from app.schemas.approval import ApprovalSummary, ApproveRequest, RejectRequest, RevisionRequest
from app.schemas.workforce import ReviewQueueItem, ReviewQueueResponse, WorkforcePlanDetailResponse
from app.services.workforce_approval_service import WorkforceApprovalService
from app.services.workforce_plan_service import WorkforcePlanService
from app.services.workforce_state_machine import PlanStatus


router = APIRouter(prefix="/workforce-review", tags=["Workforce Review"])

REVIEW_STATUSES = [PlanStatus.SUBMITTED, PlanStatus.APPROVED, PlanStatus.REJECTED]


def _build_review_item(plan: WorkforcePlan) -> ReviewQueueItem:
    approvals = plan.approvals
    latest = max(approvals, key=lambda a: a.created_at) if approvals else None
    pending = [a for a in approvals if a.is_pending]
    current = min(pending, key=lambda a: a.step) if pending else None
    return build_plan_response(
        plan,
        ReviewQueueItem,
        latest_approval=build_approval_response(latest) if latest else None,
        current_approver_id=current.approver_id if current else None,
        approval_summary=ApprovalSummary(
            pending=len(pending),
            approved=sum(1 for a in approvals if a.status == ApprovalStatus.APPROVED.value),
            rejected=sum(1 for a in approvals if a.status == ApprovalStatus.REJECTED.value),
        ),
    )


@router.get("", response_model=ReviewQueueResponse)
async def list_review_queue(
    db: DB,
    current_user: CurrentUser,
    pagination: Page,
    plan_status: Optional[WorkforcePlanStatus] = Query(None, alias="status"),
    cycle_id: Optional[UUID] = None,
):
    """Plans awaiting or past review (SUBMITTED, APPROVED, REJECTED unless filtered)."""
    statuses: List[str] = [plan_status.value] if plan_status else REVIEW_STATUSES
    plans, total = await WorkforcePlanService(db).get_plans(
        cycle_id=cycle_id,
        statuses=statuses,
        skip=pagination.skip,
        limit=pagination.size,
    )
    items = [_build_review_item(p) for p in plans]
    return ReviewQueueResponse.build(items, total, pagination.page, pagination.size)


@router.post("/{plan_id}/approve", response_model=WorkforcePlanDetailResponse)
async def approve_workforce_plan(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
    decision_in: Optional[ApproveRequest] = None,
):
    """Approve the current step as its assigned approver."""
    comments = decision_in.comments if decision_in else None
    await WorkforceApprovalService(db).approve(plan_id, current_user.id, comments)
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    await db.commit()
    return build_plan_detail_response(plan)


@router.post("/{plan_id}/reject", response_model=WorkforcePlanDetailResponse)
async def reject_workforce_plan(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
    decision_in: Optional[RejectRequest] = None,
):
    """Reject the plan at the current step. Comments are required."""
    comments = decision_in.comments if decision_in else None
    await WorkforceApprovalService(db).reject(plan_id, current_user.id, comments)
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    await db.commit()
    return build_plan_detail_response(plan)


@router.post("/{plan_id}/revision", response_model=WorkforcePlanDetailResponse)
async def request_workforce_plan_revision(
    plan_id: UUID,
    db: DB,
    current_user: CurrentUser,
    decision_in: Optional[RevisionRequest] = None,
):
    """Send the plan back to DRAFT with requested changes. Comments are required."""
    comments = decision_in.comments if decision_in else None
    await WorkforceApprovalService(db).request_revision(plan_id, current_user.id, comments)
    plan = await WorkforcePlanService(db).get_plan(plan_id)
    await db.commit()
    return build_plan_detail_response(plan)
