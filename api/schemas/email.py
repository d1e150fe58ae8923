"""
Email Schemas
Pydantic models for the caregiver email endpoints (camelCase wire format)
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import DoseStatus, DoseType


# ==================== REQUEST SCHEMAS ====================

class EmailRequestBase(BaseModel):
    """Fields every caregiver email needs"""
    caregiver_email: str = Field(..., alias="caregiverEmail", min_length=3, max_length=255)
    patient_id: str = Field(..., alias="patientId", min_length=1, max_length=50)
    dose_type: DoseType = Field(..., alias="doseType")

    model_config = ConfigDict(populate_by_name=True)


class ReminderEmailRequest(EmailRequestBase):
    scheduled_time: Optional[str] = Field(None, alias="scheduledTime")
    morning_pill_count: Optional[int] = Field(None, alias="morningPillCount", ge=0)
    evening_pill_count: Optional[int] = Field(None, alias="eveningPillCount", ge=0)
    missed_doses_today: int = Field(0, alias="missedDosesToday", ge=0)


class DoseStatusEmailRequest(EmailRequestBase):
    status: DoseStatus
    delay_seconds: int = Field(0, alias="delaySeconds", ge=0)
    timestamp: Optional[str] = None
    morning_pill_count: Optional[int] = Field(None, alias="morningPillCount", ge=0)
    evening_pill_count: Optional[int] = Field(None, alias="eveningPillCount", ge=0)


class LowStockEmailRequest(EmailRequestBase):
    current_count: int = Field(..., alias="currentCount", ge=0)


# Required keys per endpoint, checked before schema validation
REQUIRED_FIELDS = {
    "reminder": ("caregiverEmail", "patientId", "doseType"),
    "dose-status": ("caregiverEmail", "patientId", "doseType", "status"),
    "low-stock": ("caregiverEmail", "patientId", "doseType", "currentCount"),
}


# ==================== RESPONSE SCHEMAS ====================

class EmailSendResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any] = Field(default_factory=dict)
