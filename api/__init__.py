"""
API Module
FastAPI routers for the PillWatch application
"""

from api.email import router as email_router
from api.patients import router as patients_router
from api.scheduler import router as scheduler_router

from api.deps import (
    get_patient_service,
    get_adherence_service,
    get_notifier,
    get_scheduler,
)


__all__ = [
    # Routers
    "email_router",
    "patients_router",
    "scheduler_router",
    # Dependencies
    "get_patient_service",
    "get_adherence_service",
    "get_notifier",
    "get_scheduler",
]


def include_routers(app, prefix: str = "/api"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(email_router, prefix=prefix)
    app.include_router(patients_router, prefix=prefix)
    app.include_router(scheduler_router, prefix=prefix)
