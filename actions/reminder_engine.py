"""
Reminder Engine
Decides which reminder, missed-dose and low-stock notifications are due
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from actions.dedup_ledger import DedupLedger, EventClass, LedgerKey
from actions.schedule_model import DoseLogEntry, PatientSchedule, parse_dose_time, to_local
from config import settings
from models import DoseStatus, DoseType


logger = logging.getLogger(__name__)


class ReminderType(str, Enum):
    """Kinds of caregiver notification"""
    REMINDER = "reminder"
    MISSED_DOSE = "missed_dose"
    LOW_STOCK = "low_stock"
    DOSE_STATUS = "dose_status"


class LowStockPolicy(str, Enum):
    """When a low-stock alert may fire again on the same day"""
    LEVEL = "level"  # once per dose type per day while in the band
    EDGE = "edge"    # as LEVEL, and again after a fresh drop into the band


@dataclass
class NotificationEvent:
    """A notification-worthy condition that has newly become true"""
    reminder_type: ReminderType
    patient_id: str
    dose_type: DoseType
    ledger_class: EventClass
    ledger_key: LedgerKey
    occurred_at: datetime
    caregiver_email: Optional[str] = None
    scheduled_time: Optional[str] = None
    morning_pill_count: int = 0
    evening_pill_count: int = 0
    missed_today: int = 0
    pill_count: Optional[int] = None
    source: str = "timing"
    log_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reminder_type": self.reminder_type.value,
            "patient_id": self.patient_id,
            "dose_type": self.dose_type.value,
            "occurred_at": self.occurred_at.isoformat(),
            "caregiver_email": self.caregiver_email,
            "scheduled_time": self.scheduled_time,
            "morning_pill_count": self.morning_pill_count,
            "evening_pill_count": self.evening_pill_count,
            "missed_today": self.missed_today,
            "pill_count": self.pill_count,
            "source": self.source,
            "log_id": self.log_id,
            "metadata": self.metadata,
        }


class ReminderEngine:
    """
    Per-patient reminder state machine

    For each dose type, every evaluation checks three conditions against the
    clock in the patient's timezone:
    - reminder: at the scheduled minute or within the reminder window after it
    - missed dose: inside the missed window with nothing logged for the day
    - low stock: remaining pills inside (0, threshold]

    Each condition fires at most once per ledger key. A dose log entry for the
    same dose type and day suppresses reminder and missed-dose firing; fired
    keys are never removed when a dose is logged later.
    """

    def __init__(
        self,
        ledger: DedupLedger,
        reminder_window_minutes: int = 1,
        missed_window_start_minutes: int = 2,
        missed_window_end_minutes: int = 5,
        low_stock_threshold: int = 10,
        low_stock_policy: LowStockPolicy = LowStockPolicy.EDGE,
        legacy_missed_log_alerts: bool = False
    ):
        if missed_window_start_minutes > missed_window_end_minutes:
            raise ValueError("missed window start must not be after its end")
        if reminder_window_minutes >= missed_window_start_minutes:
            raise ValueError("reminder window must close before the missed window opens")

        self.ledger = ledger
        self.reminder_window_minutes = reminder_window_minutes
        self.missed_window = (missed_window_start_minutes, missed_window_end_minutes)
        self.low_stock_threshold = low_stock_threshold
        self.low_stock_policy = LowStockPolicy(low_stock_policy)
        self.legacy_missed_log_alerts = legacy_missed_log_alerts

        # Last pill count seen per (patient, dose type), for edge re-arming
        self._last_counts: Dict[Tuple[str, DoseType], int] = {}

    @classmethod
    def from_settings(cls, ledger: DedupLedger) -> "ReminderEngine":
        return cls(
            ledger=ledger,
            reminder_window_minutes=settings.REMINDER_WINDOW_MINUTES,
            missed_window_start_minutes=settings.MISSED_WINDOW_START_MINUTES,
            missed_window_end_minutes=settings.MISSED_WINDOW_END_MINUTES,
            low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
            low_stock_policy=LowStockPolicy(settings.LOW_STOCK_POLICY),
            legacy_missed_log_alerts=settings.LEGACY_MISSED_LOG_ALERTS,
        )

    def evaluate(
        self,
        schedule: PatientSchedule,
        dose_log: Iterable[DoseLogEntry],
        now: datetime
    ) -> List[NotificationEvent]:
        """
        Return the events that have newly become due for one patient.

        Every returned event has already been marked in the ledger; the
        dispatcher unmarks it if delivery hard-fails.
        """
        zone = schedule.zone
        local_now = to_local(now, zone)
        today = local_now.date().isoformat()

        todays_logs = [
            entry for entry in dose_log
            if entry.patient_id == schedule.patient_id
            and entry.local_date(zone) == local_now.date()
        ]
        missed_today = [e for e in todays_logs if e.status == DoseStatus.MISSED]

        events: List[NotificationEvent] = []

        if schedule.is_configured:
            for dose_type in DoseType:
                scheduled_time = schedule.dose_time(dose_type)
                if not scheduled_time:
                    continue
                events.extend(self._evaluate_dose_window(
                    schedule, dose_type, scheduled_time, local_now, today,
                    todays_logs, len(missed_today)
                ))
            events.extend(self._evaluate_missed_logs(schedule, missed_today, today, zone))
        else:
            logger.debug(f"Patient {schedule.patient_id} has no dose times set; skipping dose checks")

        for dose_type in DoseType:
            event = self._evaluate_low_stock(schedule, dose_type, local_now, today)
            if event:
                events.append(event)

        return events

    # ==================== DOSE WINDOWS ====================

    def _evaluate_dose_window(
        self,
        schedule: PatientSchedule,
        dose_type: DoseType,
        scheduled_time: str,
        local_now: datetime,
        today: str,
        todays_logs: List[DoseLogEntry],
        missed_count: int
    ) -> List[NotificationEvent]:
        sched_hour, sched_minute = parse_dose_time(scheduled_time)
        diff_minutes = (local_now.hour * 60 + local_now.minute) - (sched_hour * 60 + sched_minute)
        exact_match = local_now.hour == sched_hour and local_now.minute == sched_minute

        # Any entry for this dose type today resolves it, whatever its status
        if any(entry.dose_type == dose_type for entry in todays_logs):
            return []

        events = []

        if exact_match or 0 <= diff_minutes <= self.reminder_window_minutes:
            key = (schedule.patient_id, dose_type.value, today, scheduled_time)
            if self._claim(EventClass.REMINDER, key):
                logger.info(
                    f"Reminder due for patient {schedule.patient_id} "
                    f"({dose_type.value} dose at {scheduled_time})"
                )
                events.append(self._build_event(
                    ReminderType.REMINDER, schedule, dose_type, EventClass.REMINDER, key,
                    local_now, scheduled_time=scheduled_time, missed_today=missed_count
                ))

        start, end = self.missed_window
        if start <= diff_minutes <= end:
            key = (schedule.patient_id, dose_type.value, today)
            if self._claim(EventClass.MISSED, key):
                logger.info(
                    f"Missed dose inferred for patient {schedule.patient_id} "
                    f"({dose_type.value} dose at {scheduled_time}, {diff_minutes} min late)"
                )
                events.append(self._build_event(
                    ReminderType.MISSED_DOSE, schedule, dose_type, EventClass.MISSED, key,
                    local_now, scheduled_time=scheduled_time, missed_today=missed_count,
                    metadata={"minutes_late": diff_minutes}
                ))

        return events

    def _evaluate_missed_logs(
        self,
        schedule: PatientSchedule,
        missed_today: List[DoseLogEntry],
        today: str,
        zone
    ) -> List[NotificationEvent]:
        """Explicit status=missed entries written by the patient side"""
        events = []
        for entry in missed_today:
            if self.legacy_missed_log_alerts:
                key = (schedule.patient_id, "log", entry.id)
            else:
                key = (schedule.patient_id, entry.dose_type.value, today)

            if not self._claim(EventClass.MISSED, key):
                continue

            logger.info(
                f"Missed dose logged for patient {schedule.patient_id} "
                f"({entry.dose_type.value}, log {entry.id})"
            )
            events.append(self._build_event(
                ReminderType.MISSED_DOSE, schedule, entry.dose_type, EventClass.MISSED, key,
                to_local(entry.effective_time, zone),
                scheduled_time=schedule.dose_time(entry.dose_type),
                missed_today=len(missed_today),
                source="log",
                log_id=entry.id
            ))
        return events

    # ==================== LOW STOCK ====================

    def _evaluate_low_stock(
        self,
        schedule: PatientSchedule,
        dose_type: DoseType,
        local_now: datetime,
        today: str
    ) -> Optional[NotificationEvent]:
        count = schedule.pill_count(dose_type)
        observation = (schedule.patient_id, dose_type)
        previous = self._last_counts.get(observation)
        self._last_counts[observation] = count

        if not 0 < count <= self.low_stock_threshold:
            return None

        key = (schedule.patient_id, dose_type.value, today)

        if (
            self.low_stock_policy == LowStockPolicy.EDGE
            and previous is not None
            and previous > self.low_stock_threshold
            and self.ledger.has_fired(EventClass.LOW_STOCK, key)
        ):
            logger.info(
                f"Re-arming low-stock alert for patient {schedule.patient_id} "
                f"({dose_type.value}: {previous} -> {count})"
            )
            self.ledger.rearm(EventClass.LOW_STOCK, key)

        if not self._claim(EventClass.LOW_STOCK, key):
            return None

        logger.info(
            f"Low stock for patient {schedule.patient_id}: "
            f"{count} {dose_type.value} pills left"
        )
        return self._build_event(
            ReminderType.LOW_STOCK, schedule, dose_type, EventClass.LOW_STOCK, key,
            local_now, pill_count=count
        )

    # ==================== HELPERS ====================

    def _claim(self, event_class: EventClass, key: LedgerKey) -> bool:
        """Mark `key` as fired; False if it already was"""
        if self.ledger.has_fired(event_class, key):
            return False
        self.ledger.mark_fired(event_class, key)
        return True

    def _build_event(
        self,
        reminder_type: ReminderType,
        schedule: PatientSchedule,
        dose_type: DoseType,
        event_class: EventClass,
        key: LedgerKey,
        occurred_at: datetime,
        **extra
    ) -> NotificationEvent:
        return NotificationEvent(
            reminder_type=reminder_type,
            patient_id=schedule.patient_id,
            dose_type=dose_type,
            ledger_class=event_class,
            ledger_key=key,
            occurred_at=occurred_at,
            caregiver_email=schedule.caregiver_email,
            morning_pill_count=schedule.morning_pill_count,
            evening_pill_count=schedule.evening_pill_count,
            **extra
        )


__all__ = [
    "ReminderType",
    "LowStockPolicy",
    "NotificationEvent",
    "ReminderEngine",
]
