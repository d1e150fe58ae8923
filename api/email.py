"""
Email API Router
On-demand caregiver emails, outside the reminder scheduler
"""

import logging
from typing import Any, Dict, Type

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as SchemaValidationError

from api.deps import get_notifier
from api.schemas.email import (
    REQUIRED_FIELDS,
    DoseStatusEmailRequest,
    EmailSendResponse,
    LowStockEmailRequest,
    ReminderEmailRequest,
)
from tools.notification_service import NotificationResult, NotificationService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email", tags=["email"])


def _missing_required(payload: Dict[str, Any], endpoint: str) -> bool:
    for key in REQUIRED_FIELDS[endpoint]:
        value = payload.get(key)
        # A count of zero is a valid value
        if value is None or (value == "" and key != "currentCount"):
            return True
    return False


def _parse(payload: Dict[str, Any], endpoint: str, schema: Type[BaseModel]):
    """Returns (request, None) or (None, error response)"""
    if _missing_required(payload, endpoint):
        return None, JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required fields"}
        )
    try:
        return schema.model_validate(payload), None
    except SchemaValidationError as e:
        return None, JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request",
                "details": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
            }
        )


def _respond(result: NotificationResult, failure_message: str):
    if not result.success:
        logger.error(f"{failure_message}: {result.error}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": failure_message, "details": result.error, "success": False}
        )
    return EmailSendResponse(data={"id": result.message_id})


@router.post("/reminder", response_model=EmailSendResponse)
async def send_reminder_email(
    payload: Dict[str, Any] = Body(...),
    notifier: NotificationService = Depends(get_notifier)
):
    """
    Send a medication reminder email to the caregiver

    - **caregiverEmail**, **patientId**, **doseType**: required
    """
    request, error = _parse(payload, "reminder", ReminderEmailRequest)
    if error:
        return error

    result = await notifier.send_reminder_email(
        caregiver_email=request.caregiver_email,
        patient_id=request.patient_id,
        dose_type=request.dose_type,
        scheduled_time=request.scheduled_time,
        morning_pill_count=request.morning_pill_count,
        evening_pill_count=request.evening_pill_count,
        missed_doses_today=request.missed_doses_today,
    )
    return _respond(result, "Failed to send reminder email")


@router.post("/dose-status", response_model=EmailSendResponse)
async def send_dose_status_email(
    payload: Dict[str, Any] = Body(...),
    notifier: NotificationService = Depends(get_notifier)
):
    """Tell the caregiver a dose was taken or missed"""
    request, error = _parse(payload, "dose-status", DoseStatusEmailRequest)
    if error:
        return error

    result = await notifier.send_dose_status_email(
        caregiver_email=request.caregiver_email,
        patient_id=request.patient_id,
        dose_type=request.dose_type,
        status=request.status,
        delay_seconds=request.delay_seconds,
        timestamp=request.timestamp,
        morning_pill_count=request.morning_pill_count,
        evening_pill_count=request.evening_pill_count,
    )
    return _respond(result, "Failed to send dose status email")


@router.post("/low-stock", response_model=EmailSendResponse)
async def send_low_stock_email(
    payload: Dict[str, Any] = Body(...),
    notifier: NotificationService = Depends(get_notifier)
):
    request, error = _parse(payload, "low-stock", LowStockEmailRequest)
    if error:
        return error

    result = await notifier.send_low_stock_email(
        caregiver_email=request.caregiver_email,
        patient_id=request.patient_id,
        dose_type=request.dose_type,
        current_count=request.current_count,
    )
    return _respond(result, "Failed to send low stock email")
