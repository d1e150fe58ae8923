"""
Patient Schemas
Pydantic models for patient settings, dose logs and adherence
"""

from typing import Optional, List, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from config import scheduler_config
from models import DeviceStatus, DoseStatus, DoseType


# ==================== REQUEST SCHEMAS ====================

class PatientSettingsBase(BaseModel):
    """Caregiver-editable settings"""
    morning_dose_time: Optional[str] = Field(None, pattern=scheduler_config.DOSE_TIME_PATTERN)
    evening_dose_time: Optional[str] = Field(None, pattern=scheduler_config.DOSE_TIME_PATTERN)
    morning_pill_count: Optional[int] = Field(None, ge=0)
    evening_pill_count: Optional[int] = Field(None, ge=0)
    caregiver_email: Optional[str] = Field(None, max_length=255)
    caregiver_uid: Optional[str] = Field(None, max_length=128)
    timezone: Optional[str] = Field(None, max_length=64)

    @field_validator("morning_dose_time", "evening_dose_time", mode="before")
    @classmethod
    def empty_time_is_unset(cls, value):
        return None if value == "" else value


class PatientCreate(PatientSettingsBase):
    """Schema for creating patient settings"""
    patient_id: str = Field(..., min_length=2, max_length=20)
    account_uid: Optional[str] = Field(None, max_length=128)


class PatientUpdate(PatientSettingsBase):
    """Partial update; omitted fields are left alone"""


class DeviceStatusUpdate(BaseModel):
    status: DeviceStatus


class DoseLogCreate(BaseModel):
    dose_type: DoseType
    status: DoseStatus
    delay_seconds: int = Field(0, ge=0)
    timestamp: Optional[datetime] = None


# ==================== RESPONSE SCHEMAS ====================

class PatientResponse(BaseModel):
    patient_id: str
    morning_dose_time: Optional[str] = None
    evening_dose_time: Optional[str] = None
    morning_pill_count: int = 0
    evening_pill_count: int = 0
    caregiver_email: Optional[str] = None
    caregiver_uid: Optional[str] = None
    account_uid: Optional[str] = None
    device_status: DeviceStatus = DeviceStatus.OFFLINE
    last_sync: Optional[datetime] = None
    timezone: str


class PatientList(BaseModel):
    patients: List[PatientResponse]
    total: int


class DoseLogResponse(BaseModel):
    id: str
    patient_id: str
    dose_type: DoseType
    status: DoseStatus
    delay_seconds: int = 0
    timestamp: Optional[datetime] = None
    created_at: datetime


class DoseLogList(BaseModel):
    logs: List[DoseLogResponse]
    total: int


class AdherenceResponse(BaseModel):
    patient_id: str
    period: str
    taken: int
    missed: int
    total: int
    percentage: int


class InsightsResponse(BaseModel):
    patient_id: str
    behaviour: Dict[str, Any]
    miss_probability: Dict[str, Any]
    refill_days: Dict[str, Optional[int]]
    risk: Dict[str, str]
    cluster: Dict[str, str]


class AlertResponse(BaseModel):
    alert_type: str
    severity: str
    message: str
    created_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AlertList(BaseModel):
    patient_id: str
    alerts: List[AlertResponse]
    total: int
