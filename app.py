"""
PillWatch Backend
FastAPI application hosting the caregiver API and the reminder scheduler
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Configuration and database
from config import settings
from database import init_db, DatabaseHealthCheck

from actions.dedup_ledger import CompactionPolicy, DedupLedger
from actions.reminder_engine import ReminderEngine
from actions.reminder_scheduler import ReminderScheduler
from api import include_routers
from services.errors import PatientNotFoundError, PillWatchError, StoreError, ValidationError
from services.store import document_store
from tools.notification_service import NotificationService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    # Initialize database
    try:
        init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    ledger = DedupLedger(
        compact_threshold=settings.LEDGER_COMPACT_THRESHOLD,
        policy=CompactionPolicy(settings.LEDGER_COMPACTION_POLICY)
    )
    notifier = NotificationService(ledger=ledger)
    scheduler = ReminderScheduler(
        store=document_store,
        engine=ReminderEngine.from_settings(ledger),
        notifier=notifier,
    )
    app.state.notifier = notifier
    app.state.scheduler = scheduler

    if settings.SCHEDULER_ENABLED:
        await scheduler.start()
    else:
        logger.info("Reminder scheduler disabled; use POST /api/scheduler/tick to evaluate")

    yield

    # Shutdown
    await scheduler.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## PillWatch API

    Medication adherence reminders for caregivers.

    ### Features
    - **Reminder scheduler**: polls patient schedules and emails caregivers when a dose is due or missed
    - **Low stock alerts**: warns when a patient's pill supply is running out
    - **Dose logging**: patient-side dose events with pill count tracking
    - **Adherence and insights**: weekly/monthly adherence and explainable risk heuristics
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach modular API routers (prefix /api)
include_routers(app, prefix=settings.API_PREFIX)


# ==================== EXCEPTION HANDLERS ====================

def _error_response(status_code: int, message, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "status_code": status_code,
            "timestamp": datetime.utcnow().isoformat(),
            **extra
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()]
    return _error_response(400, "Invalid request", details=details)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(400, str(exc))


@app.exception_handler(PatientNotFoundError)
async def patient_not_found_handler(request: Request, exc: PatientNotFoundError):
    return _error_response(404, str(exc))


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error on {request.url.path}: {exc}")
    return _error_response(503, "Data store unavailable")


@app.exception_handler(PillWatchError)
async def pillwatch_error_handler(request: Request, exc: PillWatchError):
    return _error_response(400, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return _error_response(500, "An unexpected error occurred" if not settings.DEBUG else str(exc))


# ==================== HEALTH ====================

@app.get(f"{settings.API_PREFIX}/health", tags=["health"])
async def health_check(request: Request):
    """Liveness plus scheduler and database state"""
    scheduler = getattr(request.app.state, "scheduler", None)
    last = scheduler.last_report if scheduler else None
    return {
        "status": "ok",
        "message": f"{settings.APP_NAME} email server is running",
        "method": settings.EMAIL_PROVIDER,
        "scheduler": {
            "running": bool(scheduler and scheduler.running),
            "interval_seconds": settings.POLL_INTERVAL_SECONDS,
            "last_tick": last.to_dict() if last else None,
        },
        "database": "connected" if DatabaseHealthCheck.is_connected() else "unavailable",
    }


# ==================== MAIN ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
