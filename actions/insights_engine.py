"""
Insights Engine
Explainable behaviour heuristics for the caregiver dashboard
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from actions.schedule_model import DoseLogEntry, PatientSchedule
from models import DoseStatus, DoseType


logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class PeriodAdherence(Protocol):
    """Anything carrying a period's missed count and percentage"""
    missed: int
    percentage: int


@dataclass
class BehaviourStats:
    """Aggregate dose behaviour across the whole log"""
    total_taken: int = 0
    total_missed: int = 0
    miss_rate: float = 0.0
    avg_delay_minutes: float = 0.0
    recent_misses: int = 0

    @property
    def total_doses(self) -> int:
        return self.total_taken + self.total_missed

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MissPrediction:
    probability: float
    level: RiskLevel


@dataclass
class RiskAssessment:
    level: RiskLevel
    message: str


@dataclass
class BehaviourCluster:
    label: str
    description: str


# Thresholds
MISS_PROBABILITY_LEVELS = {"high": 0.7, "medium": 0.4}
RECENT_WINDOW_DAYS = 7
PLANNED_DOSES_PER_DAY = 2
MIN_DAILY_USE = 0.25
REFILL_DAYS_RANGE = (1, 60)

# Logistic weights: bias, miss rate, delay, adherence gap, recent misses
MISS_MODEL_WEIGHTS = {
    "bias": -0.5,
    "miss_rate": 2.5,
    "delay": 0.8,
    "adherence_gap": 1.5,
    "recent_misses": 1.2,
}

# Centroids over (adherence %, average delay minutes, missed count)
CLUSTER_CENTROIDS: List[Tuple[str, Tuple[float, float, float]]] = [
    ("Regular", (95, 3, 0)),
    ("Irregular", (80, 10, 2)),
    ("High-risk", (55, 25, 5)),
]
CLUSTER_SCALE = (50, 30, 5)
CLUSTER_DESCRIPTIONS = {
    "Regular": "Consistent, regular medication behaviour.",
    "Irregular": "Irregular behaviour - mixed taken and missed doses.",
    "High-risk": "High-risk behaviour - frequent misses and long delays.",
}

RISK_MESSAGES = {
    RiskLevel.HIGH: "High non-adherence risk - frequent misses and long delays.",
    RiskLevel.MEDIUM: "Moderate risk - some missed doses or consistent delays.",
    RiskLevel.LOW: "Low risk - good adherence with minimal delays.",
}


def sigmoid(z: float) -> float:
    if z < -50:
        return 0.0
    if z > 50:
        return 1.0
    return 1 / (1 + math.exp(-z))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def build_behaviour_stats(
    log: Iterable[DoseLogEntry],
    now: Optional[datetime] = None
) -> BehaviourStats:
    """
    Summarise a dose log.

    Average delay only counts entries with a positive delay; recent misses
    are missed entries from the last seven days.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)

    stats = BehaviourStats()
    delay_sum = 0.0
    delay_count = 0

    for entry in log:
        if entry.status == DoseStatus.TAKEN:
            stats.total_taken += 1
        elif entry.status == DoseStatus.MISSED:
            stats.total_missed += 1
            if _as_utc(entry.effective_time) >= recent_cutoff:
                stats.recent_misses += 1

        if entry.delay_seconds and entry.delay_seconds > 0:
            delay_sum += entry.delay_seconds / 60
            delay_count += 1

    if stats.total_doses:
        stats.miss_rate = stats.total_missed / stats.total_doses
    if delay_count:
        stats.avg_delay_minutes = delay_sum / delay_count
    return stats


def _period_values(stats: BehaviourStats, period: Optional[PeriodAdherence]) -> Tuple[int, int]:
    """(missed, percentage) for the period, falling back to whole-log values"""
    if period is None:
        return stats.total_missed, 100
    return period.missed, period.percentage


def predict_miss_probability(
    stats: BehaviourStats,
    period: Optional[PeriodAdherence] = None
) -> MissPrediction:
    """Logistic score for the chance of missing the next dose"""
    _, adherence_pct = _period_values(stats, period)
    w = MISS_MODEL_WEIGHTS

    z = (
        w["bias"]
        + w["miss_rate"] * stats.miss_rate
        + w["delay"] * min(stats.avg_delay_minutes / 30, 2)
        + w["adherence_gap"] * (1 - adherence_pct / 100)
        + w["recent_misses"] * (1 if stats.recent_misses >= 3 else 0)
    )
    probability = sigmoid(z)

    if probability >= MISS_PROBABILITY_LEVELS["high"]:
        level = RiskLevel.HIGH
    elif probability >= MISS_PROBABILITY_LEVELS["medium"]:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    return MissPrediction(probability=probability, level=level)


def predict_refill_days(current_count: int, stats: BehaviourStats) -> Optional[int]:
    """
    Days until the pill supply runs out, assuming two planned doses a day
    scaled by the miss rate. None when there is no stock or no history.
    """
    if not current_count or current_count <= 0 or stats.total_doses == 0:
        return None

    daily_use = max(PLANNED_DOSES_PER_DAY * (1 - stats.miss_rate), MIN_DAILY_USE)
    low, high = REFILL_DAYS_RANGE
    return max(low, min(high, _round_half_up(current_count / daily_use)))


def classify_risk_level(
    stats: BehaviourStats,
    period: Optional[PeriodAdherence] = None
) -> RiskAssessment:
    missed, adherence_pct = _period_values(stats, period)
    delay = stats.avg_delay_minutes

    if missed >= 4 or (missed >= 3 and delay > 20) or adherence_pct < 60:
        level = RiskLevel.HIGH
    elif missed >= 2 or delay > 10 or adherence_pct < 80:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    return RiskAssessment(level=level, message=RISK_MESSAGES[level])


def assign_behaviour_cluster(
    stats: BehaviourStats,
    period: Optional[PeriodAdherence] = None
) -> BehaviourCluster:
    """Nearest fixed centroid over (adherence %, avg delay, missed count)"""
    missed, adherence_pct = _period_values(stats, period)
    features = (adherence_pct, stats.avg_delay_minutes, missed)

    def distance(centroid: Tuple[float, float, float]) -> float:
        return math.sqrt(sum(
            ((a - b) / scale) ** 2
            for a, b, scale in zip(features, centroid, CLUSTER_SCALE)
        ))

    # First centroid wins ties
    label = min(CLUSTER_CENTROIDS, key=lambda item: distance(item[1]))[0]
    return BehaviourCluster(label=label, description=CLUSTER_DESCRIPTIONS[label])


def build_insights(
    schedule: PatientSchedule,
    log: Iterable[DoseLogEntry],
    period: Optional[PeriodAdherence] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """All dashboard heuristics for one patient"""
    stats = build_behaviour_stats(log, now)
    miss = predict_miss_probability(stats, period)
    risk = classify_risk_level(stats, period)
    cluster = assign_behaviour_cluster(stats, period)

    logger.debug(f"Insights for {schedule.patient_id}: risk={risk.level.value}, cluster={cluster.label}")

    return {
        "patient_id": schedule.patient_id,
        "behaviour": stats.to_dict(),
        "miss_probability": {"probability": miss.probability, "level": miss.level.value},
        "refill_days": {
            dose_type.value: predict_refill_days(schedule.pill_count(dose_type), stats)
            for dose_type in DoseType
        },
        "risk": {"level": risk.level.value, "message": risk.message},
        "cluster": asdict(cluster),
    }
