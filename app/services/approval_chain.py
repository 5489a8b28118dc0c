"""
Approval Chain Resolver.

Turns a planning cycle's ordered approval chain into concrete approvers.

Resolution per level:
1. A USER assignee wins: its user_id is the approver.
2. Otherwise a ROLE assignee is used. DEPARTMENT_HEAD resolves to the plan
   department's head_id; any other role (or a department without a head)
   is looked up in the user directory.
3. A level that resolves to nobody raises UnresolvedApproverError, unless
   the cycle allows auto-approval of such levels, in which case the level
   is skipped.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnresolvedApproverError
from app.models.organization import Department
from app.models.planning import ApprovalChainLevel, AssigneeType
from app.models.role import Role, RoleCode
from app.models.user import User, UserRole


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedApprover:
    """Approver resolved for a chain step."""
    step: int
    approver_id: UUID
    approver_role: Optional[str] = None


class UserDirectory(ABC):
    """Looks up users by role for ROLE-typed assignees."""

    @abstractmethod
    async def find_user_by_role(self, role_code: str) -> Optional[UUID]:
        """Return the id of the user that approves for role_code, or None."""


class SqlUserDirectory(UserDirectory):
    """
    Directory backed by the users/roles tables.

    When several active users hold the role, the earliest created user wins
    (ties broken by lowest id) so the pick is stable across databases.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_role(self, role_code: str) -> Optional[UUID]:
        result = await self.db.execute(
            select(User.id)
            .join(UserRole, UserRole.user_id == User.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                Role.code == role_code,
                Role.is_active == True,  # noqa: E712
                User.is_active == True,  # noqa: E712
            )
            .order_by(User.created_at, User.id)
            .limit(1)
        )
        return result.scalar_one_or_none()


def resolve_level(
    levels: Sequence[ApprovalChainLevel],
    step: int,
) -> Optional[ApprovalChainLevel]:
    """Get the chain level whose position equals step."""
    return next((level for level in levels if level.level == step), None)


class ApprovalChainResolver:
    """Resolves approvers for the levels of an approval chain."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def resolve_approver(
        self,
        level: ApprovalChainLevel,
        department: Optional[Department],
    ) -> Optional[ResolvedApprover]:
        """Resolve the approver for a single level, or None if nobody matches."""
        user_assignee = next(
            (a for a in level.assignees
             if a.assignee_type == AssigneeType.USER.value and a.user_id),
            None,
        )
        if user_assignee:
            return ResolvedApprover(step=level.level, approver_id=user_assignee.user_id)

        role_assignee = next(
            (a for a in level.assignees
             if a.assignee_type == AssigneeType.ROLE.value and a.role_type),
            None,
        )
        if not role_assignee:
            return None

        role_type = role_assignee.role_type
        if role_type == RoleCode.DEPARTMENT_HEAD.value and department and department.head_id:
            return ResolvedApprover(
                step=level.level,
                approver_id=department.head_id,
                approver_role=role_type,
            )

        approver_id = await self.directory.find_user_by_role(role_type)
        if approver_id is None:
            return None
        return ResolvedApprover(step=level.level, approver_id=approver_id, approver_role=role_type)

    async def resolve_from(
        self,
        levels: Sequence[ApprovalChainLevel],
        start_step: int,
        department: Optional[Department],
        auto_approve_if_missing: bool = False,
    ) -> Optional[ResolvedApprover]:
        """
        Resolve the next approver starting at start_step.

        Returns None when the chain has no level at start_step (or beyond,
        after skipping auto-approved levels), meaning the chain is complete.

        Raises:
            UnresolvedApproverError: a level exists but nobody can approve it
                and the cycle does not auto-approve missing approvers.
        """
        step = start_step
        while True:
            level = resolve_level(levels, step)
            if level is None:
                return None

            resolved = await self.resolve_approver(level, department)
            if resolved is not None:
                return resolved

            if not auto_approve_if_missing:
                logger.warning(f"No approver resolves for approval chain level {step} (cycle {level.cycle_id})")
                raise UnresolvedApproverError(
                    f"No approver could be resolved for approval level {step}",
                    details={"step": step, "chain_level_id": str(level.id)},
                )

            logger.info(f"Auto-approving approval chain level {step}: no approver resolves")
            step += 1
