"""Tests for vital-sign deterioration risk scoring."""

from datetime import UTC, datetime

import pytest

from app.core.errors import ReferenceRangeNotFoundError
from app.services.patient_state import VitalSigns
from app.services.reference_ranges import get_reference_range
from app.services.vitals_risk import (
    RiskLevel,
    assess_patient,
    build_risk_record,
    classify_risk_level,
    score,
)

SCHOOL_AGE = get_reference_range(8)  # HR 70-110, RR 18-25, SBP max 135, DBP max 85

NORMAL = VitalSigns(
    heart_rate=90,
    respiratory_rate=20,
    systolic_bp=120,
    diastolic_bp=80,
    oxygen_saturation=98,
    temperature=37.0,
)


class TestRiskLevels:
    """Test exact level boundaries."""

    @pytest.mark.parametrize(
        "value, level",
        [
            (100, RiskLevel.CRITICAL),
            (70, RiskLevel.CRITICAL),
            (69, RiskLevel.HIGH),
            (50, RiskLevel.HIGH),
            (49, RiskLevel.MEDIUM),
            (25, RiskLevel.MEDIUM),
            (24, RiskLevel.LOW),
            (0, RiskLevel.LOW),
        ],
    )
    def test_boundaries(self, value, level):
        """Test level thresholds."""
        assert classify_risk_level(value) == level


class TestScore:
    """Test score composition."""

    def test_normal_vitals_low(self):
        """Test a fully normal set is LOW with no factors."""
        assessment = score(NORMAL, SCHOOL_AGE)
        assert assessment.score == 0
        assert assessment.level == RiskLevel.LOW
        assert assessment.factors == []

    def test_missing_vitals_contribute_nothing(self):
        """Test an empty vital set scores zero."""
        assert score(VitalSigns(), SCHOOL_AGE).score == 0

    def test_heart_rate_abnormal(self):
        """Test HR beyond 20% of the bound scores 25."""
        assessment = score(VitalSigns(heart_rate=190), SCHOOL_AGE)
        assert assessment.score == 25
        assert assessment.factors == ["HR 190 bpm (abnormal)"]

    def test_heart_rate_borderline(self):
        """Test HR just outside the range scores 10."""
        assessment = score(VitalSigns(heart_rate=115), SCHOOL_AGE)
        assert assessment.score == 10
        assert assessment.factors == ["HR 115 bpm (borderline)"]

    def test_respiratory_rate_low_abnormal(self):
        """Test RR below 80% of the minimum scores 25."""
        assessment = score(VitalSigns(respiratory_rate=12), SCHOOL_AGE)
        assert assessment.score == 25
        assert assessment.factors == ["RR 12 (abnormal)"]

    def test_spo2_critical(self):
        """Test SpO2 75 alone contributes at least 35."""
        assessment = score(VitalSigns(oxygen_saturation=75), SCHOOL_AGE)
        assert assessment.score >= 35
        assert "SpO2 75% (critical)" in assessment.factors

    def test_spo2_low(self):
        """Test SpO2 between 90 and 94 scores 20."""
        assert score(VitalSigns(oxygen_saturation=92), SCHOOL_AGE).score == 20

    def test_blood_pressure_needs_both_values(self):
        """Test BP is skipped without a diastolic reading."""
        assert score(VitalSigns(systolic_bp=200), SCHOOL_AGE).score == 0

    def test_blood_pressure_abnormal(self):
        """Test BP more than 30% from the upper bound scores 20."""
        assessment = score(VitalSigns(systolic_bp=180, diastolic_bp=120), SCHOOL_AGE)
        assert assessment.score == 20
        assert assessment.factors == ["BP 180/120 (abnormal)"]

    def test_blood_pressure_borderline(self):
        """Test BP between 15% and 30% from the upper bound scores 10."""
        assessment = score(VitalSigns(systolic_bp=160, diastolic_bp=85), SCHOOL_AGE)
        assert assessment.score == 10

    def test_temperature_critical(self):
        """Test temperature above 40 scores 20."""
        assessment = score(VitalSigns(temperature=41.0), SCHOOL_AGE)
        assert assessment.score == 20
        assert assessment.factors == ["Temp 41°C (critical)"]

    def test_temperature_abnormal(self):
        """Test mild fever scores 10."""
        assert score(VitalSigns(temperature=38.9), SCHOOL_AGE).score == 10

    def test_score_clamped_to_100(self):
        """Test the sum never exceeds 100."""
        vitals = VitalSigns(
            heart_rate=200,
            respiratory_rate=50,
            systolic_bp=200,
            diastolic_bp=140,
            oxygen_saturation=70,
            temperature=41.5,
        )
        assessment = score(vitals, SCHOOL_AGE)
        assert assessment.score == 100
        assert assessment.level == RiskLevel.CRITICAL
        assert len(assessment.factors) == 5

    def test_score_always_in_range(self):
        """Test the score stays in [0, 100] across the reference table."""
        for age in (0.5, 2, 4, 8, 15):
            band = get_reference_range(age)
            for vitals in (NORMAL, VitalSigns(heart_rate=300, oxygen_saturation=50, temperature=30)):
                assert 0 <= score(vitals, band).score <= 100


class TestRiskRecords:
    """Test risk record construction."""

    def test_recommendations(self):
        """Test the monitoring and alert recommendations."""
        record = build_risk_record(VitalSigns(oxygen_saturation=75, heart_rate=190), SCHOOL_AGE)
        assert record.recommendations[0] == "Monitor patient closely - HIGH risk"
        assert "Alert: SpO2 75% (critical)" in record.recommendations
        assert len(record.recommendations) == 1 + len(record.factors)

    def test_timestamp_default_and_explicit(self):
        """Test records carry a UTC timestamp."""
        explicit = datetime(2024, 1, 1, tzinfo=UTC)
        assert build_risk_record(NORMAL, SCHOOL_AGE, explicit).timestamp == explicit
        assert build_risk_record(NORMAL, SCHOOL_AGE).timestamp.tzinfo is not None

    def test_assess_patient_uses_age_band(self):
        """Test the same heart rate scores differently by age."""
        infant = assess_patient(VitalSigns(heart_rate=150), age=0.5)
        adolescent = assess_patient(VitalSigns(heart_rate=150), age=15)
        assert infant.score == 0
        assert adolescent.score == 25

    def test_assess_patient_adult_age(self):
        """Test adult ages raise ReferenceRangeNotFoundError."""
        with pytest.raises(ReferenceRangeNotFoundError):
            assess_patient(NORMAL, age=30)
