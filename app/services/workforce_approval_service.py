"""
Workforce Plan Approval Service.

Drives a workforce plan through its cycle's approval chain:
- submit: open the first resolvable chain step, plan -> SUBMITTED
- approve: close the current step and open the next one, or plan -> APPROVED
- reject: close the current step, plan -> REJECTED
- request_revision: close the current step, plan -> DRAFT

Every operation works on the request's session and only flushes; the
caller's transaction decides commit or rollback. Plans and approvals are
versioned, so a decision racing another decision on the same rows fails
with ConcurrentUpdateError instead of silently overwriting it.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConcurrentUpdateError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnresolvedApproverError,
)
from app.models.approval import Approval, ApprovalStatus
from app.models.planning import ApprovalChainLevel, PlanningCycle
from app.models.workforce import WorkforcePlan, WorkforcePlanScenario
from app.services.approval_chain import (
    ApprovalChainResolver,
    ResolvedApprover,
    SqlUserDirectory,
    UserDirectory,
)
from app.services.workforce_state_machine import (
    PlanStatus,
    can_decide,
    can_submit,
    transition_plan,
)


logger = logging.getLogger(__name__)


class WorkforceApprovalService:
    """Submit / approve / reject / request-revision for workforce plans."""

    def __init__(self, db: AsyncSession, directory: Optional[UserDirectory] = None):
        self.db = db
        self.resolver = ApprovalChainResolver(directory or SqlUserDirectory(db))

    # ==================== Loading ====================

    async def get_plan(self, plan_id: UUID) -> WorkforcePlan:
        """Load a plan with everything the workflow reads."""
        result = await self.db.execute(
            select(WorkforcePlan)
            .options(
                selectinload(WorkforcePlan.cycle)
                .selectinload(PlanningCycle.approval_chain_levels)
                .selectinload(ApprovalChainLevel.assignees),
                selectinload(WorkforcePlan.department),
                selectinload(WorkforcePlan.scenarios).selectinload(WorkforcePlanScenario.entries),
                selectinload(WorkforcePlan.approvals),
            )
            .where(WorkforcePlan.id == plan_id)
        )
        plan = result.scalar_one_or_none()
        if not plan:
            raise NotFoundError("Workforce plan not found", details={"plan_id": str(plan_id)})
        return plan

    # ==================== Workflow ====================

    async def submit(self, plan_id: UUID, user_id: UUID) -> WorkforcePlan:
        """
        Submit a DRAFT or REJECTED plan into its cycle's approval chain.

        Raises:
            NotFoundError: plan does not exist
            InvalidStateError: wrong status or empty baseline scenario
            UnresolvedApproverError: chain cannot produce an approver
        """
        plan = await self.get_plan(plan_id)

        if not can_submit(plan.status):
            raise InvalidStateError(
                f"Only DRAFT or REJECTED workforce plans can be submitted (current status: {plan.status})",
                details={"status": plan.status},
            )

        baseline = plan.baseline_scenario
        if baseline is None or not baseline.entries:
            raise InvalidStateError("Cannot submit a workforce plan without entries in its baseline scenario")

        cycle = plan.cycle
        levels = cycle.approval_chain_levels
        if not levels and not cycle.auto_approve_if_missing:
            logger.warning(f"Planning cycle {cycle.id} has no approval chain; plan {plan.id} cannot be submitted")
            raise UnresolvedApproverError(
                "Planning cycle has no approval chain configured",
                details={"cycle_id": str(cycle.id)},
            )

        resolved = await self.resolver.resolve_from(
            levels, 1, plan.department, cycle.auto_approve_if_missing
        )

        # REJECTED plans reopen to DRAFT before going back into review
        if plan.status == PlanStatus.REJECTED:
            transition_plan(plan, PlanStatus.DRAFT, user_id)
        transition_plan(plan, PlanStatus.SUBMITTED, user_id)

        if resolved is None:
            # Every level was auto-approved
            transition_plan(plan, PlanStatus.APPROVED, user_id)
        else:
            self._open_step(plan, resolved)

        await self._flush(plan.id)
        return plan

    async def approve(
        self,
        plan_id: UUID,
        user_id: UUID,
        comments: Optional[str] = None,
    ) -> WorkforcePlan:
        """Approve the current step; advance the chain or finalize the plan."""
        plan = await self.get_plan(plan_id)
        approval = self._current_step_for(plan, user_id)

        self._decide(approval, ApprovalStatus.APPROVED, comments)

        cycle = plan.cycle
        resolved = await self.resolver.resolve_from(
            cycle.approval_chain_levels,
            approval.step + 1,
            plan.department,
            cycle.auto_approve_if_missing,
        )

        if resolved is None:
            transition_plan(plan, PlanStatus.APPROVED, user_id)
        else:
            self._open_step(plan, resolved)
            # Bump the plan version even though its status stays SUBMITTED
            plan.updated_at = datetime.now(timezone.utc)

        logger.info(f"Workforce plan {plan.id}: step {approval.step} approved by {user_id}")
        await self._flush(plan.id)
        return plan

    async def reject(self, plan_id: UUID, user_id: UUID, comments: Optional[str]) -> WorkforcePlan:
        """Reject the plan at the current step. Comments are mandatory."""
        plan = await self.get_plan(plan_id)
        self._require_comments(comments, "Comments are required when rejecting a workforce plan")
        approval = self._current_step_for(plan, user_id)

        self._decide(approval, ApprovalStatus.REJECTED, comments)
        transition_plan(plan, PlanStatus.REJECTED, user_id)

        await self._flush(plan.id)
        return plan

    async def request_revision(
        self,
        plan_id: UUID,
        user_id: UUID,
        comments: Optional[str],
    ) -> WorkforcePlan:
        """Send the plan back to DRAFT for changes. Comments are mandatory."""
        plan = await self.get_plan(plan_id)
        self._require_comments(comments, "Comments are required when requesting a revision")
        approval = self._current_step_for(plan, user_id)

        self._decide(approval, ApprovalStatus.REVISION_REQUESTED, comments)
        transition_plan(plan, PlanStatus.DRAFT, user_id)

        await self._flush(plan.id)
        return plan

    # ==================== Helpers ====================

    @staticmethod
    def _require_comments(comments: Optional[str], message: str) -> None:
        if not comments or not comments.strip():
            raise InvalidStateError(message)

    @staticmethod
    def _current_step_for(plan: WorkforcePlan, user_id: UUID) -> Approval:
        """The lowest-step PENDING approval, which user_id must own."""
        if not can_decide(plan.status):
            raise InvalidStateError(
                f"Workforce plan is not awaiting approval (current status: {plan.status})",
                details={"status": plan.status},
            )

        pending = [a for a in plan.approvals if a.is_pending]
        if not pending:
            raise InvalidStateError("No pending approval found for this workforce plan")

        current = min(pending, key=lambda a: a.step)
        if current.approver_id != user_id:
            logger.warning(
                f"User {user_id} tried to decide step {current.step} of workforce plan {plan.id} "
                f"assigned to {current.approver_id}"
            )
            raise ForbiddenError(
                "You are not the approver for the current approval step",
                details={"step": current.step},
            )
        return current

    @staticmethod
    def _decide(approval: Approval, status: ApprovalStatus, comments: Optional[str]) -> None:
        approval.status = status.value
        approval.comments = comments
        approval.decided_at = datetime.now(timezone.utc)

    @staticmethod
    def _open_step(plan: WorkforcePlan, resolved: ResolvedApprover) -> Approval:
        approval = Approval(
            workforce_plan_id=plan.id,
            step=resolved.step,
            approver_id=resolved.approver_id,
            approver_role=resolved.approver_role,
            status=ApprovalStatus.PENDING.value,
        )
        plan.approvals.append(approval)
        logger.info(
            f"Workforce plan {plan.id}: approval step {resolved.step} opened for {resolved.approver_id}"
        )
        return approval

    async def _flush(self, plan_id: UUID) -> None:
        try:
            await self.db.flush()
        except StaleDataError as e:
            logger.warning(f"Concurrent update detected on workforce plan {plan_id}: {e}")
            raise ConcurrentUpdateError(
                "Workforce plan was modified by another request. Reload and try again.",
                details={"plan_id": str(plan_id)},
            ) from e
