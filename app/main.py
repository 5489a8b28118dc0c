from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import WorkforcePlanningError
from app.database import init_db, async_session_factory


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables when AUTO_CREATE_TABLES is set (local and test setups)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if settings.AUTO_CREATE_TABLES:
        await init_db()

    yield

    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Workforce Plans", "description": "Department staffing plans, entries and budget checks"},
    {"name": "Workforce Scenarios", "description": "What-if scenarios and planned exits"},
    {"name": "Workforce Review", "description": "Review queue and approval decisions"},
    {"name": "Workforce Monitoring", "description": "Rollups and budget alerts for approved plans"},
    {"name": "Planning Cycles", "description": "Planning cycles and their approval chains"},
    {"name": "Budget Allocations", "description": "Department budget allocations per cycle"},
    {"name": "Health", "description": "Service health"},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Workforce planning backend: plan submission, multi-level approval and budget variance.",
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


def _error_body(request: Request, message, exc: Exception) -> dict:
    return {
        "error": message,
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }


@app.exception_handler(WorkforcePlanningError)
async def workforce_planning_exception_handler(request: Request, exc: WorkforcePlanningError):
    """Map domain errors to their HTTP status codes."""
    content = _error_body(request, exc.message, exc)
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Preserve HTTP status code and headers for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.detail, exc),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything unexpected is logged with its traceback and hidden from the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "Internal server error", exc),
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a round trip to the database; 503 when the database is unreachable."""
    database = "connected"
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = f"error: {e}"

    healthy = database == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {"database": database},
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
