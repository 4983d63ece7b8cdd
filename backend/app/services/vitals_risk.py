"""Vital-Sign Deterioration Risk Scoring.

Converts a set of vital signs into an age-adjusted 0-100 risk score using
the patient's reference range as the zero point:

- Heart rate / respiratory rate: >20% beyond a bound +25, outside range +10
- SpO2: <90% +35, <94% +20
- Blood pressure: deviation from the upper bounds >30% +20, >15% +10
- Temperature: <35 or >40 C +20, outside 36.5-38.5 C +10

Missing vitals contribute nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from app.services.patient_state import VitalSigns
from app.services.reference_ranges import ReferenceRange, get_reference_range

logger = logging.getLogger(__name__)

MAX_SCORE = 100


class RiskLevel(str, Enum):
    """Deterioration risk levels."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass
class RiskAssessment:
    """Score, level and contributing factors for one set of vitals."""

    score: int
    level: RiskLevel
    factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RiskScoreRecord:
    """Immutable record of one vitals submission."""

    score: int
    level: RiskLevel
    factors: tuple[str, ...]
    recommendations: tuple[str, ...]
    timestamp: datetime
    vitals: VitalSigns | None = None


def classify_risk_level(score: int) -> RiskLevel:
    """Map a score to a risk level (>=70 CRITICAL, >=50 HIGH, >=25 MEDIUM)."""
    if score >= 70:
        return RiskLevel.CRITICAL
    if score >= 50:
        return RiskLevel.HIGH
    if score >= 25:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _rate_points(value: float, low: float, high: float) -> tuple[int, str | None]:
    if value < low * 0.8 or value > high * 1.2:
        return 25, "abnormal"
    if value < low or value > high:
        return 10, "borderline"
    return 0, None


def score(vitals: VitalSigns, reference_range: ReferenceRange) -> RiskAssessment:
    """Score vital signs against an age-matched reference range.

    Args:
        vitals: Current vital signs; any field may be missing.
        reference_range: Reference band for the patient's age.

    Returns:
        RiskAssessment with score clamped to [0, 100].
    """
    total = 0
    factors: list[str] = []

    if vitals.heart_rate is not None:
        points, qualifier = _rate_points(
            vitals.heart_rate, reference_range.heart_rate_min, reference_range.heart_rate_max
        )
        if qualifier:
            total += points
            factors.append(f"HR {vitals.heart_rate:g} bpm ({qualifier})")

    if vitals.respiratory_rate is not None:
        points, qualifier = _rate_points(
            vitals.respiratory_rate,
            reference_range.respiratory_rate_min,
            reference_range.respiratory_rate_max,
        )
        if qualifier:
            total += points
            factors.append(f"RR {vitals.respiratory_rate:g} ({qualifier})")

    if vitals.oxygen_saturation is not None:
        if vitals.oxygen_saturation < 90:
            total += 35
            factors.append(f"SpO2 {vitals.oxygen_saturation:g}% (critical)")
        elif vitals.oxygen_saturation < 94:
            total += 20
            factors.append(f"SpO2 {vitals.oxygen_saturation:g}% (low)")

    # Blood pressure needs both readings
    if vitals.systolic_bp is not None and vitals.diastolic_bp is not None:
        systolic_dev = abs(vitals.systolic_bp - reference_range.systolic_bp_max) / reference_range.systolic_bp_max
        diastolic_dev = abs(vitals.diastolic_bp - reference_range.diastolic_bp_max) / reference_range.diastolic_bp_max
        bp = f"BP {vitals.systolic_bp:g}/{vitals.diastolic_bp:g}"

        if systolic_dev > 0.3 or diastolic_dev > 0.3:
            total += 20
            factors.append(f"{bp} (abnormal)")
        elif systolic_dev > 0.15 or diastolic_dev > 0.15:
            total += 10
            factors.append(f"{bp} (borderline)")

    if vitals.temperature is not None:
        if vitals.temperature < 35 or vitals.temperature > 40:
            total += 20
            factors.append(f"Temp {vitals.temperature:g}°C (critical)")
        elif vitals.temperature < 36.5 or vitals.temperature > 38.5:
            total += 10
            factors.append(f"Temp {vitals.temperature:g}°C (abnormal)")

    clamped = max(0, min(MAX_SCORE, total))
    return RiskAssessment(score=clamped, level=classify_risk_level(clamped), factors=factors)


def build_recommendations(assessment: RiskAssessment) -> list[str]:
    """Monitoring recommendations stored alongside a risk record."""
    return [
        f"Monitor patient closely - {assessment.level.value} risk",
        *(f"Alert: {factor}" for factor in assessment.factors),
    ]


def build_risk_record(
    vitals: VitalSigns,
    reference_range: ReferenceRange,
    timestamp: datetime | None = None,
) -> RiskScoreRecord:
    """Score vitals and package the result as an immutable record."""
    assessment = score(vitals, reference_range)

    if assessment.level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
        logger.warning(f"{assessment.level.value} deterioration risk (score {assessment.score}): {assessment.factors}")

    return RiskScoreRecord(
        score=assessment.score,
        level=assessment.level,
        factors=tuple(assessment.factors),
        recommendations=tuple(build_recommendations(assessment)),
        timestamp=timestamp or datetime.now(UTC),
        vitals=vitals,
    )


def assess_patient(vitals: VitalSigns, age: float, timestamp: datetime | None = None) -> RiskScoreRecord:
    """Look up the age band and build a risk record.

    Raises:
        ReferenceRangeNotFoundError: If no band covers the age.
    """
    return build_risk_record(vitals, get_reference_range(age), timestamp)
