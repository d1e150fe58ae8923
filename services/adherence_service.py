"""
Adherence Service
Taken/missed counts and adherence percentage over a trailing window
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from actions.schedule_model import DoseLogEntry
from config import scheduler_config
from models import DoseStatus
from services.errors import PatientNotFoundError, ValidationError
from services.store import DocumentStore, document_store


logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class AdherenceSummary:
    """Adherence over one window"""
    taken: int
    missed: int
    total: int
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def calculate_adherence(
    log: Iterable[DoseLogEntry],
    window_start: datetime,
    now: Optional[datetime] = None
) -> AdherenceSummary:
    """
    Count taken and missed entries whose effective time falls in [window_start, now].

    Naive datetimes are treated as UTC. Empty input yields all zeros.
    """
    start = _as_utc(window_start)
    end = _as_utc(now or datetime.now(timezone.utc))

    taken = missed = 0
    for entry in log:
        moment = _as_utc(entry.effective_time)
        if not start <= moment <= end:
            continue
        if entry.status == DoseStatus.TAKEN:
            taken += 1
        elif entry.status == DoseStatus.MISSED:
            missed += 1

    total = taken + missed
    percentage = 0
    if total > 0:
        # Half-up rounding, matching what caregivers see on the dashboard
        percentage = int((Decimal(taken * 100) / Decimal(total)).quantize(Decimal(1), rounding=ROUND_HALF_UP))

    return AdherenceSummary(taken=taken, missed=missed, total=total, percentage=percentage)


def period_window_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of the trailing window for "week", "month" or "all" """
    if period not in scheduler_config.ADHERENCE_PERIODS:
        raise ValidationError(
            f"Unknown period '{period}'; expected one of {list(scheduler_config.ADHERENCE_PERIODS)}"
        )
    days = scheduler_config.ADHERENCE_PERIODS[period]
    if days is None:
        return EPOCH
    return _as_utc(now or datetime.now(timezone.utc)) - timedelta(days=days)


class AdherenceService:
    """
    Service for adherence summaries backed by the document store
    """

    def __init__(self, store: DocumentStore = document_store):
        self.store = store

    def get_adherence(
        self,
        patient_id: str,
        period: str = "week",
        now: Optional[datetime] = None
    ) -> AdherenceSummary:
        schedule = self.store.get_patient(patient_id)
        if schedule is None:
            raise PatientNotFoundError(patient_id)

        now = now or datetime.now(timezone.utc)
        logs = self.store.get_dose_logs(schedule.patient_id)
        summary = calculate_adherence(logs, period_window_start(period, now), now)
        logger.debug(f"Adherence for {patient_id} ({period}): {summary}")
        return summary


# Singleton instance
adherence_service = AdherenceService()
