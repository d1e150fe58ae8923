"""
Actions Module
Engines for reminders, deduplication and insights
"""

from .dedup_ledger import (
    EventClass,
    CompactionPolicy,
    DedupLedger,
)

from .schedule_model import (
    PatientSchedule,
    DoseLogEntry,
    parse_dose_time,
)

from .reminder_engine import (
    ReminderType,
    LowStockPolicy,
    NotificationEvent,
    ReminderEngine,
)

from .insights_engine import (
    RiskLevel,
    BehaviourStats,
    build_behaviour_stats,
    predict_miss_probability,
    predict_refill_days,
    classify_risk_level,
    assign_behaviour_cluster,
    build_insights,
)

from .alert_engine import (
    AlertSeverity,
    AlertType,
    Alert,
    build_alerts,
)


__all__ = [
    # Dedup Ledger
    "EventClass",
    "CompactionPolicy",
    "DedupLedger",

    # Schedule Model
    "PatientSchedule",
    "DoseLogEntry",
    "parse_dose_time",

    # Reminder Engine
    "ReminderType",
    "LowStockPolicy",
    "NotificationEvent",
    "ReminderEngine",

    # Insights Engine
    "RiskLevel",
    "BehaviourStats",
    "build_behaviour_stats",
    "predict_miss_probability",
    "predict_refill_days",
    "classify_risk_level",
    "assign_behaviour_cluster",
    "build_insights",

    # Alert Engine
    "AlertSeverity",
    "AlertType",
    "Alert",
    "build_alerts",
]
