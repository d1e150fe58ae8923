"""
Tests for Adherence Service
===========================
"""

from datetime import datetime, timedelta, timezone

import pytest

from actions.schedule_model import DoseLogEntry
from models import DoseStatus, DoseType
from services.adherence_service import calculate_adherence, period_window_start
from services.errors import PatientNotFoundError, ValidationError


NOW = datetime(2024, 7, 10, 12, tzinfo=timezone.utc)


def entry(status, moment, n=0):
    return DoseLogEntry(
        id=f"log-{n}",
        patient_id="U101",
        dose_type=DoseType.MORNING,
        status=status,
        created_at=moment,
        timestamp=moment,
    )


class TestCalculateAdherence:

    @pytest.mark.unit
    def test_three_of_four(self):
        log = [entry(DoseStatus.TAKEN, NOW - timedelta(days=1), n) for n in range(3)]
        log.append(entry(DoseStatus.MISSED, NOW - timedelta(days=2), 3))

        summary = calculate_adherence(log, NOW - timedelta(days=7), NOW)

        assert summary.taken == 3
        assert summary.missed == 1
        assert summary.total == 4
        assert summary.percentage == 75

    @pytest.mark.unit
    def test_rounds_half_up(self):
        log = [entry(DoseStatus.TAKEN, NOW - timedelta(hours=1))]
        log += [entry(DoseStatus.MISSED, NOW - timedelta(hours=1), n) for n in range(1, 8)]

        # 1/8 = 12.5%
        assert calculate_adherence(log, NOW - timedelta(days=7), NOW).percentage == 13

    @pytest.mark.unit
    def test_empty_log(self):
        summary = calculate_adherence([], NOW - timedelta(days=7), NOW)
        assert summary.to_dict() == {"taken": 0, "missed": 0, "total": 0, "percentage": 0}

    @pytest.mark.unit
    def test_entries_outside_window_ignored(self):
        log = [
            entry(DoseStatus.TAKEN, NOW - timedelta(days=8), 1),
            entry(DoseStatus.TAKEN, NOW + timedelta(minutes=1), 2),
            entry(DoseStatus.MISSED, NOW - timedelta(days=7), 3),
        ]

        summary = calculate_adherence(log, NOW - timedelta(days=7), NOW)

        assert (summary.taken, summary.missed) == (0, 1)

    @pytest.mark.unit
    def test_naive_times_are_utc(self):
        naive_now = NOW.replace(tzinfo=None)
        log = [entry(DoseStatus.TAKEN, naive_now - timedelta(hours=2))]

        assert calculate_adherence(log, NOW - timedelta(days=1), NOW).taken == 1


class TestPeriods:

    @pytest.mark.unit
    def test_window_starts(self):
        assert period_window_start("week", NOW) == NOW - timedelta(days=7)
        assert period_window_start("month", NOW) == NOW - timedelta(days=30)
        assert period_window_start("all", NOW).year == 1970

    @pytest.mark.unit
    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            period_window_start("fortnight", NOW)


class TestAdherenceService:

    @pytest.mark.database
    def test_from_store(self, adherence_svc, store, test_patient):
        store.append_dose_log("U101", DoseType.MORNING, DoseStatus.TAKEN, timestamp=NOW - timedelta(days=1))
        store.append_dose_log("U101", DoseType.EVENING, DoseStatus.MISSED, timestamp=NOW - timedelta(days=1))
        store.append_dose_log("U101", DoseType.MORNING, DoseStatus.TAKEN, timestamp=NOW - timedelta(days=20))

        week = adherence_svc.get_adherence("U101", "week", NOW)
        month = adherence_svc.get_adherence("U101", "month", NOW)

        assert (week.taken, week.missed, week.percentage) == (1, 1, 50)
        assert (month.taken, month.total, month.percentage) == (2, 3, 67)

    @pytest.mark.database
    def test_unknown_patient(self, adherence_svc):
        with pytest.raises(PatientNotFoundError):
            adherence_svc.get_adherence("U404", "week", NOW)
