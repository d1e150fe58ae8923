"""
Tests for Insights Engine
=========================
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from actions.insights_engine import (
    BehaviourStats,
    RiskLevel,
    assign_behaviour_cluster,
    build_behaviour_stats,
    build_insights,
    classify_risk_level,
    predict_miss_probability,
    predict_refill_days,
    sigmoid,
)
from actions.schedule_model import DoseLogEntry
from models import DoseStatus, DoseType


NOW = datetime(2024, 7, 10, 12, tzinfo=timezone.utc)


def entry(status, days_ago=1, delay_seconds=0, n=0):
    moment = NOW - timedelta(days=days_ago)
    return DoseLogEntry(
        id=f"log-{days_ago}-{n}",
        patient_id="U101",
        dose_type=DoseType.MORNING,
        status=status,
        created_at=moment,
        timestamp=moment,
        delay_seconds=delay_seconds,
    )


def period(missed, percentage):
    return SimpleNamespace(missed=missed, percentage=percentage)


class TestBehaviourStats:

    @pytest.mark.unit
    def test_counts_and_delay(self):
        log = [
            entry(DoseStatus.TAKEN, delay_seconds=600, n=1),
            entry(DoseStatus.TAKEN, delay_seconds=1200, n=2),
            entry(DoseStatus.TAKEN, n=3),
            entry(DoseStatus.MISSED, n=4),
        ]

        stats = build_behaviour_stats(log, NOW)

        assert stats.total_taken == 3
        assert stats.total_missed == 1
        assert stats.total_doses == 4
        assert stats.miss_rate == 0.25
        # Only positive delays are averaged
        assert stats.avg_delay_minutes == 15
        assert stats.recent_misses == 1

    @pytest.mark.unit
    def test_old_misses_are_not_recent(self):
        stats = build_behaviour_stats([entry(DoseStatus.MISSED, days_ago=10)], NOW)

        assert stats.total_missed == 1
        assert stats.recent_misses == 0

    @pytest.mark.unit
    def test_empty_log(self):
        stats = build_behaviour_stats([], NOW)

        assert stats.total_doses == 0
        assert stats.miss_rate == 0.0
        assert stats.avg_delay_minutes == 0.0


class TestMissProbability:

    @pytest.mark.unit
    def test_sigmoid_is_clipped(self):
        assert sigmoid(0) == 0.5
        assert sigmoid(100) == 1.0
        assert sigmoid(-100) == 0.0

    @pytest.mark.unit
    def test_clean_history_is_low(self):
        prediction = predict_miss_probability(BehaviourStats())

        assert prediction.probability == pytest.approx(sigmoid(-0.5))
        assert prediction.level == RiskLevel.LOW

    @pytest.mark.unit
    def test_poor_history_is_high(self):
        stats = BehaviourStats(total_missed=5, miss_rate=1.0, avg_delay_minutes=60, recent_misses=3)

        prediction = predict_miss_probability(stats, period(5, 0))

        assert prediction.probability > 0.99
        assert prediction.level == RiskLevel.HIGH


class TestRefillDays:

    @pytest.mark.unit
    def test_scaled_by_miss_rate(self):
        stats = BehaviourStats(total_taken=3, total_missed=1, miss_rate=0.25)
        assert predict_refill_days(30, stats) == 20

    @pytest.mark.unit
    def test_no_stock_or_history(self):
        assert predict_refill_days(0, BehaviourStats(total_taken=2)) is None
        assert predict_refill_days(30, BehaviourStats()) is None

    @pytest.mark.unit
    def test_clamped_to_range(self):
        never_taken = BehaviourStats(total_missed=4, miss_rate=1.0)
        assert predict_refill_days(30, never_taken) == 60

        always_taken = BehaviourStats(total_taken=4)
        assert predict_refill_days(1, always_taken) == 1


class TestRiskAndCluster:

    @pytest.mark.unit
    @pytest.mark.parametrize("missed,percentage,delay,expected", [
        (0, 100, 0, RiskLevel.LOW),
        (2, 90, 0, RiskLevel.MEDIUM),
        (0, 100, 12, RiskLevel.MEDIUM),
        (0, 75, 0, RiskLevel.MEDIUM),
        (4, 90, 0, RiskLevel.HIGH),
        (3, 90, 25, RiskLevel.HIGH),
        (0, 59, 0, RiskLevel.HIGH),
    ])
    def test_risk_levels(self, missed, percentage, delay, expected):
        stats = BehaviourStats(avg_delay_minutes=delay)

        risk = classify_risk_level(stats, period(missed, percentage))

        assert risk.level == expected
        assert risk.message

    @pytest.mark.unit
    @pytest.mark.parametrize("missed,percentage,delay,label", [
        (0, 100, 0, "Regular"),
        (2, 80, 10, "Irregular"),
        (5, 55, 25, "High-risk"),
    ])
    def test_nearest_cluster(self, missed, percentage, delay, label):
        stats = BehaviourStats(avg_delay_minutes=delay)

        cluster = assign_behaviour_cluster(stats, period(missed, percentage))

        assert cluster.label == label
        assert cluster.description


class TestBuildInsights:

    @pytest.mark.unit
    def test_report_shape(self, morning_schedule):
        log = [entry(DoseStatus.TAKEN, n=1), entry(DoseStatus.TAKEN, n=2)]

        insights = build_insights(morning_schedule, log, period(0, 100), NOW)

        assert insights["patient_id"] == "U101"
        assert insights["behaviour"]["total_taken"] == 2
        assert insights["risk"]["level"] == "Low"
        assert insights["cluster"]["label"] == "Regular"
        assert insights["refill_days"] == {"morning": 15, "evening": 15}
        assert 0 <= insights["miss_probability"]["probability"] <= 1
