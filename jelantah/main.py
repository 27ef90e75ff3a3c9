from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from jelantah.config import settings
from jelantah.api.v1.router import api_router
from jelantah.core.exceptions import JelantahError
from jelantah.database import init_db, async_session_factory
from jelantah.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables (migrations are the source of truth in production)
    - Start background scheduler

    Shutdown:
    - Stop background scheduler
    """
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    else:
        logger.info("Background scheduler disabled")

    yield

    shutdown_scheduler()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Pickups", "description": "Pickup requests and their lifecycle (accept, start, proof, complete, cancel)"},
    {"name": "Bills", "description": "Customer bills created at pickup completion and payment confirmation"},
    {"name": "Commissions", "description": "Courier and affiliate commissions and payouts"},
    {"name": "Settings", "description": "Pricing tiers and commission rates"},
    {"name": "Pricing", "description": "Price quotes for a volume at current settings"},
    {"name": "Messages", "description": "Message thread between the people working on a pickup"},
    {"name": "Notifications", "description": "In-app notifications for the current user"},
    {"name": "Dashboard", "description": "Per-role headline statistics for the current user"},
]

FULL_API_DESCRIPTION = """
## JelantahGO API

Used cooking oil pickup platform: customers request pickups, couriers
collect and weigh the oil, the platform bills the customer and pays
courier and referral commissions.

### Authentication

All endpoints require a JWT bearer token.
Include token in Authorization header: `Bearer <token>`

### Error Codes

| HTTP | code | Description |
|------|------|-------------|
| 400 | VALIDATION_ERROR | Missing or malformed input |
| 400 | INVALID_STATE | Action not allowed from the current status |
| 401 | UNAUTHENTICATED | Missing, invalid or expired token |
| 403 | FORBIDDEN | Role or ownership check failed |
| 404 | NOT_FOUND | Resource doesn't exist |
| 409 | CONFLICT | Someone else changed the resource first |
| 500 | INTERNAL_ERROR | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(JelantahError)
async def domain_exception_handler(request: Request, exc: JelantahError):
    """Render domain errors as {"detail", "code"[, "reason"]}."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body / query validation failures use the VALIDATION_ERROR shape."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Request validation failed",
            "code": "VALIDATION_ERROR",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything unexpected. The request session has already been rolled back."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"},
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        },
        "jobs": get_job_status(),
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status
