"""
Alert Engine
Current dashboard alerts for a patient: low stock, offline device, recent misses
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from actions.schedule_model import DoseLogEntry, PatientSchedule
from config import settings
from models import DeviceStatus, DoseStatus, DoseType


logger = logging.getLogger(__name__)


class AlertSeverity(str, Enum):
    """Alert severity levels"""
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    """Types of alerts"""
    LOW_STOCK = "low_stock"
    OFFLINE = "offline"
    MISSED_DOSE = "missed_dose"


@dataclass
class Alert:
    """Alert data structure"""
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }


RECENT_MISSED_HOURS = 24


def _aware(moment: datetime, zone: ZoneInfo) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment


def build_alerts(
    schedule: PatientSchedule,
    log: Iterable[DoseLogEntry],
    now: Optional[datetime] = None,
    low_stock_threshold: Optional[int] = None
) -> List[Alert]:
    """
    Alerts that currently hold for a patient.

    Nothing here depends on dose times, so unconfigured patients still get
    stock, connectivity and missed-dose alerts. An empty stock counts as low.
    Naive times are read in the patient's timezone.
    """
    zone = schedule.zone
    now = _aware(now or datetime.now(timezone.utc), zone)
    threshold = low_stock_threshold if low_stock_threshold is not None else settings.LOW_STOCK_THRESHOLD
    alerts: List[Alert] = []

    for dose_type in DoseType:
        count = schedule.pill_count(dose_type)
        if count <= threshold:
            alerts.append(Alert(
                alert_type=AlertType.LOW_STOCK,
                severity=AlertSeverity.HIGH,
                message=f"Low {dose_type.value} pill stock: {count} pills remaining",
                created_at=now,
                metadata={"dose_type": dose_type.value, "pill_count": count},
            ))

    if schedule.device_status == DeviceStatus.OFFLINE:
        alerts.append(Alert(
            alert_type=AlertType.OFFLINE,
            severity=AlertSeverity.MEDIUM,
            message="Device is offline. Check connection.",
            created_at=now,
            metadata={"last_sync": schedule.last_sync.isoformat() if schedule.last_sync else None},
        ))

    cutoff = now - timedelta(hours=RECENT_MISSED_HOURS)
    recent_missed = 0
    for entry in log:
        if entry.status != DoseStatus.MISSED:
            continue
        if cutoff < _aware(entry.effective_time, zone) <= now:
            recent_missed += 1

    if recent_missed:
        alerts.append(Alert(
            alert_type=AlertType.MISSED_DOSE,
            severity=AlertSeverity.HIGH,
            message=f"{recent_missed} missed dose(s) in the last {RECENT_MISSED_HOURS} hours",
            created_at=now,
            metadata={"count": recent_missed},
        ))

    logger.debug(f"{len(alerts)} alerts for patient {schedule.patient_id}")
    return alerts


__all__ = ["AlertSeverity", "AlertType", "Alert", "build_alerts"]
