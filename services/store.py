"""
Document Store
Patient settings and dose logs over SQLAlchemy, with change subscriptions
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from actions.schedule_model import DoseLogEntry, PatientSchedule
from config import settings
from database import SessionLocal
from models import DeviceStatus, DoseLog, DoseStatus, DoseType, PatientSettings
from services.errors import PatientNotFoundError, StoreError


logger = logging.getLogger(__name__)


PATIENT_FIELDS = (
    "morning_dose_time",
    "evening_dose_time",
    "morning_pill_count",
    "evening_pill_count",
    "caregiver_email",
    "caregiver_uid",
    "account_uid",
    "timezone",
)

# Fields kept when an update leaves them empty
PRESERVED_FIELDS = ("caregiver_email", "caregiver_uid")

COLLECTIONS = {
    "patients": PatientSettings,
    "dose_logs": DoseLog,
}


@dataclass(frozen=True)
class StoreChange:
    """Notification delivered to subscribers after a committed write"""
    collection: str
    patient_id: str
    kind: str  # "created", "updated" or "appended"


ChangeCallback = Callable[[StoreChange], None]


def _to_storage(moment: Optional[datetime], zone: tzinfo = timezone.utc) -> Optional[datetime]:
    """Naive UTC for the database; naive input is wall-clock time in `zone`"""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone)
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _from_storage(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    return moment.replace(tzinfo=timezone.utc)


class DocumentStore:
    """
    Store for patient settings and dose logs

    Reads raise StoreError on database failure so callers can decide whether
    to skip a patient or a whole tick. Writes notify subscribers after commit.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._subscribers: List[Tuple[Optional[str], ChangeCallback]] = []

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== CONVERSION ====================

    @staticmethod
    def _to_schedule(row: PatientSettings) -> PatientSchedule:
        return PatientSchedule(
            patient_id=row.patient_id,
            morning_dose_time=row.morning_dose_time,
            evening_dose_time=row.evening_dose_time,
            morning_pill_count=row.morning_pill_count or 0,
            evening_pill_count=row.evening_pill_count or 0,
            caregiver_email=row.caregiver_email,
            caregiver_uid=row.caregiver_uid,
            account_uid=row.account_uid,
            device_status=row.device_status or DeviceStatus.OFFLINE,
            last_sync=_from_storage(row.last_sync),
            timezone=row.timezone or settings.DEFAULT_TIMEZONE,
        )

    @staticmethod
    def _to_entry(row: DoseLog) -> DoseLogEntry:
        return DoseLogEntry(
            id=row.id,
            patient_id=row.patient_id,
            dose_type=row.dose_type,
            status=row.status,
            delay_seconds=row.delay_seconds or 0,
            timestamp=_from_storage(row.timestamp),
            created_at=_from_storage(row.created_at),
        )

    # ==================== READS ====================

    def get_all_patients(self) -> List[PatientSchedule]:
        with self._session() as session:
            rows = session.scalars(select(PatientSettings).order_by(PatientSettings.patient_id)).all()
            return [self._to_schedule(row) for row in rows]

    def get_patient(self, patient_id: str) -> Optional[PatientSchedule]:
        """Look up by patient id, falling back to the patient's account uid"""
        with self._session() as session:
            row = session.get(PatientSettings, patient_id.upper())
            if row is None:
                row = session.scalars(
                    select(PatientSettings).where(PatientSettings.account_uid == patient_id)
                ).first()
            return self._to_schedule(row) if row else None

    def query_by_field(self, collection: str, field: str, value: Any) -> List[Any]:
        """Equality query over one column of a collection"""
        model = COLLECTIONS.get(collection)
        if model is None:
            raise ValueError(f"Unknown collection: {collection}")
        column = getattr(model, field, None)
        if column is None or field not in model.__table__.columns:
            raise ValueError(f"Unknown field for {collection}: {field}")

        convert = self._to_schedule if model is PatientSettings else self._to_entry
        with self._session() as session:
            rows = session.scalars(select(model).where(column == value)).all()
            return [convert(row) for row in rows]

    def get_dose_logs(self, patient_id: str) -> List[DoseLogEntry]:
        """All dose logs for a patient, newest first"""
        entries = self.query_by_field("dose_logs", "patient_id", patient_id)
        entries.sort(key=lambda e: e.effective_time, reverse=True)
        return entries

    # ==================== WRITES ====================

    def create_patient(self, patient_id: str, **fields) -> Tuple[PatientSchedule, bool]:
        """Create settings for a patient; an existing record is returned unchanged"""
        with self._session() as session:
            existing = session.get(PatientSettings, patient_id)
            if existing is not None:
                return self._to_schedule(existing), False

            row = PatientSettings(
                patient_id=patient_id,
                device_status=DeviceStatus.OFFLINE,
                created_by="caregiver",
                **{k: v for k, v in fields.items() if k in PATIENT_FIELDS and v is not None}
            )
            session.add(row)
            session.flush()
            schedule = self._to_schedule(row)

        logger.info(f"Created settings for patient {patient_id}")
        self._notify(StoreChange("patients", patient_id, "created"))
        return schedule, True

    def update_patient(self, patient_id: str, updates: Dict[str, Any]) -> PatientSchedule:
        with self._session() as session:
            row = session.get(PatientSettings, patient_id)
            if row is None:
                raise PatientNotFoundError(patient_id)

            for key, value in updates.items():
                if key not in PATIENT_FIELDS:
                    continue
                if key in PRESERVED_FIELDS and not value:
                    continue
                setattr(row, key, value)
            row.last_updated = datetime.utcnow()
            session.flush()
            schedule = self._to_schedule(row)

        self._notify(StoreChange("patients", patient_id, "updated"))
        return schedule

    def update_device_status(self, patient_id: str, status: DeviceStatus) -> PatientSchedule:
        with self._session() as session:
            row = session.get(PatientSettings, patient_id)
            if row is None:
                raise PatientNotFoundError(patient_id)
            row.device_status = status
            row.last_sync = datetime.utcnow()
            session.flush()
            schedule = self._to_schedule(row)

        self._notify(StoreChange("patients", patient_id, "updated"))
        return schedule

    def decrement_pill_count(self, patient_id: str, dose_type: DoseType) -> int:
        """Take one pill from the dose type's inventory, never below zero"""
        attr = f"{dose_type.value}_pill_count"
        with self._session() as session:
            row = session.get(PatientSettings, patient_id)
            if row is None:
                raise PatientNotFoundError(patient_id)
            new_count = max(0, (getattr(row, attr) or 0) - 1)
            setattr(row, attr, new_count)
            row.last_updated = datetime.utcnow()

        self._notify(StoreChange("patients", patient_id, "updated"))
        return new_count

    def append_dose_log(
        self,
        patient_id: str,
        dose_type: DoseType,
        status: DoseStatus,
        delay_seconds: int = 0,
        timestamp: Optional[datetime] = None,
        created_at: Optional[datetime] = None
    ) -> DoseLogEntry:
        with self._session() as session:
            patient = session.get(PatientSettings, patient_id)
            if patient is None:
                raise PatientNotFoundError(patient_id)
            # Naive times from the patient device are local to the patient
            zone = ZoneInfo(patient.timezone or settings.DEFAULT_TIMEZONE)

            row = DoseLog(
                id=str(uuid.uuid4()),
                patient_id=patient_id,
                dose_type=dose_type,
                status=status,
                delay_seconds=delay_seconds,
                timestamp=_to_storage(timestamp, zone),
                created_at=_to_storage(created_at, zone) or datetime.utcnow(),
            )
            session.add(row)
            session.flush()
            entry = self._to_entry(row)

        self._notify(StoreChange("dose_logs", patient_id, "appended"))
        return entry

    # ==================== SUBSCRIPTIONS ====================

    def subscribe(
        self,
        patient_id: Optional[str],
        on_change: ChangeCallback
    ) -> Callable[[], None]:
        """
        Call `on_change` after every committed write for `patient_id`
        (or for any patient when None). Returns an unsubscribe function.
        """
        subscription = (patient_id, on_change)
        self._subscribers.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, change: StoreChange) -> None:
        for patient_id, callback in list(self._subscribers):
            if patient_id is not None and patient_id != change.patient_id:
                continue
            try:
                callback(change)
            except Exception:
                logger.exception(f"Store subscriber failed for {change}")


# Singleton instance
document_store = DocumentStore()
