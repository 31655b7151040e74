import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lidgeld.core.config import settings
from lidgeld.api.v1 import fees, imports, members
from lidgeld.repositories import InMemoryFeeRepository, InMemoryMemberRepository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Startup:
    - Verify the configured timezone is available (period dates depend on it)
    - Log whether SEPA batches can be generated

    Shutdown:
    - Cleanup resources if needed
    """
    try:
        ZoneInfo(settings.TIMEZONE)
    except ZoneInfoNotFoundError as e:
        logger.critical(f"Timezone {settings.TIMEZONE} not available: {e}")
        raise RuntimeError(f"Application cannot start: unknown timezone {settings.TIMEZONE}") from e

    if not settings.sepa_creditor_configured:
        logger.warning("SEPA creditor IBAN/ID not configured; SEPA batches are disabled")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Application-scoped storage, replaced through dependency overrides in tests
app.state.fee_repository = InMemoryFeeRepository()
app.state.member_repository = InMemoryMemberRepository()

# CORS middleware - must be added FIRST to ensure headers on all responses including errors
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to ensure JSON responses with proper CORS headers.

    HTTPException is handled by FastAPI's default handler and does not reach
    this handler, preserving intended status codes.
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
        },
    )

# API v1 router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(members.router, prefix="/members", tags=["members"])
api_v1_router.include_router(fees.router, prefix="/fees", tags=["fees"])
api_v1_router.include_router(imports.router, prefix="/imports", tags=["bank-import"])

app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Reports:
    - Timezone data availability (Europe/Brussels calendar dates)
    - SEPA creditor configuration
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "timezone": {"status": "unknown", "message": None},
            "sepa": {"status": "unknown", "message": None},
        }
    }

    try:
        ZoneInfo(settings.TIMEZONE)
        health["components"]["timezone"]["status"] = "healthy"
        health["components"]["timezone"]["message"] = settings.TIMEZONE
    except ZoneInfoNotFoundError as e:
        health["components"]["timezone"]["status"] = "unhealthy"
        health["components"]["timezone"]["message"] = str(e)
        health["status"] = "unhealthy"

    # SEPA is optional: batches are refused until it is configured
    if settings.sepa_creditor_configured:
        health["components"]["sepa"]["status"] = "healthy"
        health["components"]["sepa"]["message"] = "Creditor configured"
    else:
        health["components"]["sepa"]["status"] = "disabled"
        health["components"]["sepa"]["message"] = "SEPA_CREDITOR_IBAN / SEPA_CREDITOR_ID not set"

    return health


@app.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "docs": "/docs",
    }
