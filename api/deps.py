"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from typing import Optional

from fastapi import Request

from actions.reminder_scheduler import ReminderScheduler
from services.adherence_service import AdherenceService, adherence_service
from services.patient_service import PatientService, patient_service
from tools.notification_service import NotificationService


def get_patient_service() -> PatientService:
    return patient_service


def get_adherence_service() -> AdherenceService:
    return adherence_service


def get_notifier(request: Request) -> NotificationService:
    """
    Notification service built at startup.

    Falls back to a ledger-less instance when the app runs without its
    lifespan (direct sends do not touch the ledger).
    """
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        notifier = NotificationService()
        request.app.state.notifier = notifier
    return notifier


def get_scheduler(request: Request) -> Optional[ReminderScheduler]:
    return getattr(request.app.state, "scheduler", None)
