"""Pydantic schemas for workforce monitoring of approved plans."""
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel

from app.services.workforce_monitoring import AlertSeverity, AlertType


class PlannedRollupBlock(BaseModel):
    start_headcount: int
    hires: int
    exits: int
    end_headcount: int
    payroll_impact: Decimal


class DepartmentMonitorResponse(BaseModel):
    plan_id: UUID
    plan_status: str
    department_id: UUID
    department_name: str
    cycle_id: UUID
    cycle_name: str
    planned: PlannedRollupBlock
    hiring_budget: Optional[Decimal] = None
    total_budget: Optional[Decimal] = None


class MonitoringSummaryResponse(BaseModel):
    overall: PlannedRollupBlock
    plan_count: int
    by_department: List[DepartmentMonitorResponse]


class BudgetOverrunDetailsBlock(BaseModel):
    planned_payroll: Decimal
    hiring_budget: Decimal
    overrun_amount: Decimal
    overrun_percent: Optional[Decimal] = None


class AlertResponse(BaseModel):
    id: str
    type: AlertType
    severity: AlertSeverity
    plan_id: UUID
    department_id: UUID
    department_name: str
    message: str
    details: BudgetOverrunDetailsBlock


class AlertCounts(BaseModel):
    total: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]
    summary: AlertCounts
