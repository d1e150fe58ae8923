"""
Schedule Model
Plain data consumed by the reminder engine, adherence calculator and dispatcher
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from config import settings
from models import DeviceStatus, DoseStatus, DoseType


@dataclass(frozen=True)
class PatientSchedule:
    """A patient's dose times, inventory and caregiver contact"""
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
    timezone: str = field(default_factory=lambda: settings.DEFAULT_TIMEZONE)

    @property
    def is_configured(self) -> bool:
        return bool(self.morning_dose_time or self.evening_dose_time)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone or settings.DEFAULT_TIMEZONE)

    def dose_time(self, dose_type: DoseType) -> Optional[str]:
        if dose_type == DoseType.MORNING:
            return self.morning_dose_time
        return self.evening_dose_time

    def pill_count(self, dose_type: DoseType) -> int:
        if dose_type == DoseType.MORNING:
            return self.morning_pill_count
        return self.evening_pill_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "morning_dose_time": self.morning_dose_time,
            "evening_dose_time": self.evening_dose_time,
            "morning_pill_count": self.morning_pill_count,
            "evening_pill_count": self.evening_pill_count,
            "caregiver_email": self.caregiver_email,
            "caregiver_uid": self.caregiver_uid,
            "account_uid": self.account_uid,
            "device_status": self.device_status.value,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class DoseLogEntry:
    """One immutable dose event written by the patient side"""
    id: str
    patient_id: str
    dose_type: DoseType
    status: DoseStatus
    created_at: datetime
    timestamp: Optional[datetime] = None
    delay_seconds: int = 0

    @property
    def effective_time(self) -> datetime:
        return self.timestamp or self.created_at

    def local_date(self, zone: ZoneInfo) -> date:
        return to_local(self.effective_time, zone).date()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "dose_type": self.dose_type.value,
            "status": self.status.value,
            "delay_seconds": self.delay_seconds,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "created_at": self.created_at.isoformat(),
        }


def to_local(moment: datetime, zone: ZoneInfo) -> datetime:
    """Express `moment` in `zone`; naive values are already local wall-clock time"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(zone)


def parse_dose_time(value: str) -> Tuple[int, int]:
    """Split a validated "HH:MM" string into (hour, minute)"""
    hour, minute = value.split(":")
    return int(hour), int(minute)
