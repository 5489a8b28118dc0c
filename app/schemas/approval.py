"""
Workforce Plan Approval Schemas.

Request bodies for review decisions and the approval history view.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema


# ============== Action Schemas ==============

class ApproveRequest(BaseModel):
    """Schema for approving the current step."""
    comments: Optional[str] = Field(None, max_length=2000, description="Optional approval comments")


class RejectRequest(BaseModel):
    """Schema for rejecting a plan. Blank comments are refused by the workflow."""
    comments: Optional[str] = Field(None, max_length=2000, description="Reason for rejection")


class RevisionRequest(BaseModel):
    """Schema for sending a plan back to its owner."""
    comments: Optional[str] = Field(None, max_length=2000, description="Requested changes")


# ============== Response Schemas ==============

class ApprovalResponse(BaseResponseSchema):
    """One step of a plan's sign-off history."""
    id: UUID
    step: int
    approver_id: UUID
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    status: str
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime


class ApprovalSummary(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0

