"""
Patient Service
Caregiver-facing writes: validation at the boundary, then the document store
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from actions.schedule_model import DoseLogEntry, PatientSchedule
from config import scheduler_config
from models import DeviceStatus, DoseStatus, DoseType
from services.errors import PatientNotFoundError, ValidationError
from services.store import DocumentStore, document_store


logger = logging.getLogger(__name__)

PATIENT_ID_RE = re.compile(scheduler_config.PATIENT_ID_PATTERN, re.IGNORECASE | re.ASCII)
DOSE_TIME_RE = re.compile(scheduler_config.DOSE_TIME_PATTERN, re.ASCII)


def validate_patient_id(value: str) -> str:
    """Letter prefix followed by digits, returned upper-cased (e.g. "u101" -> "U101")"""
    if not isinstance(value, str) or not PATIENT_ID_RE.fullmatch(value.strip()):
        raise ValidationError(
            f"Invalid patient id '{value}': expected letters followed by digits (e.g. U101)"
        )
    return value.strip().upper()


def validate_dose_time(value: Optional[str]) -> Optional[str]:
    """24-hour "HH:MM"; None and empty string mean "not configured" """
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not DOSE_TIME_RE.fullmatch(value):
        raise ValidationError(f"Invalid dose time '{value}': expected HH:MM (24-hour)")
    return value


def validate_pill_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"Invalid pill count '{value}': expected a non-negative integer")
    return value


def validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone '{value}'") from e
    return value


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(fields)
    for key in ("morning_dose_time", "evening_dose_time"):
        if key in cleaned:
            cleaned[key] = validate_dose_time(cleaned[key])
    # Counts and timezone cannot be cleared, only replaced
    for key in ("morning_pill_count", "evening_pill_count", "timezone"):
        if key in cleaned and cleaned[key] is None:
            del cleaned[key]
    for key in ("morning_pill_count", "evening_pill_count"):
        if key in cleaned:
            cleaned[key] = validate_pill_count(cleaned[key])
    if "timezone" in cleaned:
        cleaned["timezone"] = validate_timezone(cleaned["timezone"])
    return cleaned


class PatientService:
    """
    Service for patient settings and dose logging
    """

    def __init__(self, store: DocumentStore = document_store):
        self.store = store

    def create_patient(self, patient_id: str, **fields) -> tuple:
        """
        Create patient settings explicitly.

        Dose times stay unset unless the caregiver provides them. Returns
        (schedule, created); an existing patient is returned unchanged.
        """
        patient_id = validate_patient_id(patient_id)
        return self.store.create_patient(patient_id, **_clean_fields(fields))

    def get_patient(self, patient_id: str) -> PatientSchedule:
        schedule = self.store.get_patient(patient_id)
        if schedule is None:
            raise PatientNotFoundError(patient_id)
        return schedule

    def update_patient(self, patient_id: str, updates: Dict[str, Any]) -> PatientSchedule:
        """Apply caregiver edits; the patient must already exist"""
        schedule = self.get_patient(patient_id)
        updated = self.store.update_patient(schedule.patient_id, _clean_fields(updates))
        logger.info(f"Updated settings for patient {schedule.patient_id}: {sorted(updates)}")
        return updated

    def set_device_status(self, patient_id: str, status: DeviceStatus) -> PatientSchedule:
        schedule = self.get_patient(patient_id)
        return self.store.update_device_status(schedule.patient_id, DeviceStatus(status))

    def list_for_caregiver(
        self,
        caregiver_email: Optional[str] = None,
        caregiver_uid: Optional[str] = None
    ) -> List[PatientSchedule]:
        if caregiver_uid:
            return self.store.query_by_field("patients", "caregiver_uid", caregiver_uid)
        if caregiver_email:
            return self.store.query_by_field("patients", "caregiver_email", caregiver_email)
        raise ValidationError("caregiver_email or caregiver_uid is required")

    def log_dose(
        self,
        patient_id: str,
        dose_type: DoseType,
        status: DoseStatus,
        delay_seconds: int = 0,
        timestamp: Optional[datetime] = None
    ) -> DoseLogEntry:
        """
        Append a dose event. A taken dose also decrements that dose type's
        pill count (floored at zero).
        """
        if delay_seconds < 0:
            raise ValidationError("delay_seconds must be non-negative")

        schedule = self.get_patient(patient_id)
        entry = self.store.append_dose_log(
            patient_id=schedule.patient_id,
            dose_type=DoseType(dose_type),
            status=DoseStatus(status),
            delay_seconds=delay_seconds if status == DoseStatus.TAKEN else 0,
            timestamp=timestamp,
        )
        if entry.status == DoseStatus.TAKEN:
            remaining = self.store.decrement_pill_count(schedule.patient_id, entry.dose_type)
            logger.info(
                f"Patient {schedule.patient_id} took {entry.dose_type.value} dose; "
                f"{remaining} pills left"
            )
        return entry

    def get_dose_logs(self, patient_id: str, limit: Optional[int] = None) -> List[DoseLogEntry]:
        schedule = self.get_patient(patient_id)
        logs = self.store.get_dose_logs(schedule.patient_id)
        return logs[:limit] if limit else logs


# Singleton instance
patient_service = PatientService()
