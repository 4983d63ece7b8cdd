"""Risk trend analysis over a trailing window of risk records."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from app.services.vitals_risk import RiskScoreRecord

logger = logging.getLogger(__name__)

DETERIORATION_THRESHOLD = 10

TRACKED_VITALS = ("heart_rate", "respiratory_rate", "oxygen_saturation", "temperature")


class DeteriorationPattern(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DETERIORATING = "deteriorating"


@dataclass(frozen=True)
class TrendAnalysis:
    """Change between the earliest and latest record in a window."""

    deltas: dict[str, float]
    pattern: DeteriorationPattern
    record_count: int
    window_start: datetime
    window_end: datetime


def classify_pattern(risk_score_delta: float) -> DeteriorationPattern:
    if risk_score_delta > DETERIORATION_THRESHOLD:
        return DeteriorationPattern.DETERIORATING
    if risk_score_delta < -DETERIORATION_THRESHOLD:
        return DeteriorationPattern.IMPROVING
    return DeteriorationPattern.STABLE


def _vital_delta(first: RiskScoreRecord, last: RiskScoreRecord, name: str) -> float:
    if first.vitals is None or last.vitals is None:
        return 0
    start = getattr(first.vitals, name)
    end = getattr(last.vitals, name)
    if start is None or end is None:
        return 0
    return round(end - start, 2)


def analyze_trend(window: Sequence[RiskScoreRecord]) -> TrendAnalysis | None:
    """Classify the trajectory of a window of risk records.

    Args:
        window: Risk records for one patient; sorted by timestamp here.

    Returns:
        TrendAnalysis, or None when the window is empty.
    """
    if not window:
        return None

    ordered = sorted(window, key=lambda r: r.timestamp)
    first, last = ordered[0], ordered[-1]

    deltas: dict[str, float] = {name: _vital_delta(first, last, name) for name in TRACKED_VITALS}
    deltas["risk_score"] = last.score - first.score

    pattern = classify_pattern(deltas["risk_score"])
    if pattern == DeteriorationPattern.DETERIORATING:
        logger.warning(f"Deteriorating trend: risk score {first.score} -> {last.score}")

    return TrendAnalysis(
        deltas=deltas,
        pattern=pattern,
        record_count=len(ordered),
        window_start=first.timestamp,
        window_end=last.timestamp,
    )


def select_window(
    records: Iterable[RiskScoreRecord],
    hours: float,
    now: datetime | None = None,
) -> list[RiskScoreRecord]:
    """Keep records from the trailing `hours`, ordered oldest first."""
    current = now or datetime.now(UTC)
    cutoff = current - timedelta(hours=hours)
    return sorted((r for r in records if cutoff <= r.timestamp <= current), key=lambda r: r.timestamp)
