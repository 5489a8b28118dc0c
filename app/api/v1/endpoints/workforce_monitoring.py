"""
Workforce Monitoring API Endpoints.

Provides:
- Plan-of-record rollup per department for APPROVED and LOCKED plans
- Budget overrun alerts against each department's hiring budget
"""
from dataclasses import asdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from app.api.deps import DB, CurrentUser
from app.config import settings
from app.schemas.monitoring import AlertCounts, AlertListResponse, MonitoringSummaryResponse
from app.services.workforce_monitoring import (
    AlertSeverity,
    WorkforceMonitoringService,
    count_by_severity,
)


router = APIRouter(prefix="/workforce-monitoring", tags=["Workforce Monitoring"])


@router.get("/summary", response_model=MonitoringSummaryResponse)
async def get_monitoring_summary(
    db: DB,
    current_user: CurrentUser,
    cycle_id: Optional[UUID] = None,
    department_id: Optional[UUID] = None,
):
    """Planned headcount and payroll of approved plans, overall and per department."""
    summary = await WorkforceMonitoringService(db).get_summary(cycle_id, department_id)
    return MonitoringSummaryResponse(**asdict(summary))


@router.get("/alerts", response_model=AlertListResponse)
async def list_monitoring_alerts(
    db: DB,
    current_user: CurrentUser,
    cycle_id: Optional[UUID] = None,
    severity: Optional[AlertSeverity] = Query(None),
):
    """Budget overrun alerts, HIGH severity first."""
    alerts = await WorkforceMonitoringService(db).get_alerts(
        cycle_id=cycle_id,
        severity=severity,
        alert_percent=Decimal(str(settings.BUDGET_OVERRUN_ALERT_PERCENT)),
        high_percent=Decimal(str(settings.BUDGET_OVERRUN_HIGH_PERCENT)),
    )
    return AlertListResponse(
        alerts=[asdict(a) for a in alerts],
        summary=AlertCounts(**count_by_severity(alerts)),
    )
