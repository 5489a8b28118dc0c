from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Workforce planning
    workforce_plans,
    workforce_scenarios,
    workforce_review,
    workforce_monitoring,
    # Planning setup
    cycles,
    budget_allocations,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(workforce_plans.router)
api_router.include_router(workforce_scenarios.router)
api_router.include_router(workforce_review.router)
api_router.include_router(workforce_monitoring.router)
api_router.include_router(cycles.router)
api_router.include_router(budget_allocations.router)
