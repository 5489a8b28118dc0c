# Services module
from app.services.workforce_approval_service import WorkforceApprovalService
from app.services.workforce_plan_service import WorkforcePlanService
from app.services.planning_cycle_service import PlanningCycleService
from app.services.approval_chain import ApprovalChainResolver, SqlUserDirectory, UserDirectory
