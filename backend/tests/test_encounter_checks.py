"""Tests for encounter-level safety checks.

Fluid bolus counting, epinephrine dose timing and defibrillation energy.
"""

from datetime import UTC, datetime, timedelta

import pytest

from app.core.errors import InputValidationError
from app.services.dose_calculator import calculate_defibrillation_energy
from app.services.encounter_checks import (
    check_defibrillation_energy,
    check_epinephrine_interval,
    check_fluid_bolus_count,
)
from app.services.patient_state import PatientState, Severity

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def minutes_ago(minutes: float) -> datetime:
    return NOW - timedelta(minutes=minutes)


class TestFluidBolusCount:
    """Test fluid bolus counting."""

    @pytest.mark.parametrize(
        "count, severity",
        [
            (0, Severity.SAFE),
            (1, Severity.SAFE),
            (2, Severity.WARNING),
            (3, Severity.HARD_BLOCK),
            (4, Severity.HARD_BLOCK),
        ],
    )
    def test_monotonic_severity(self, count, severity):
        """Test severity increases with the bolus count."""
        assert check_fluid_bolus_count(count).severity == severity

    def test_third_bolus_message(self):
        """Test the stop message for the third bolus."""
        result = check_fluid_bolus_count(3)
        assert result.message == "STOP: 3 fluid boluses given without improvement"
        assert result.allowed is False

    def test_second_bolus_message(self):
        """Test the caution message for the second bolus."""
        result = check_fluid_bolus_count(2)
        assert result.message == "CAUTION: 2 fluid boluses given"
        assert result.override is not None

    def test_patient_context_in_rationale(self):
        """Test the cumulative volume appears when a patient is given."""
        result = check_fluid_bolus_count(3, PatientState(age=4, weight=16))
        assert "60 mL/kg, 960 mL" in result.rationale

    def test_cumulative_volume_scales_with_weight(self):
        """Test the cumulative volume uses the patient weight and bolus count."""
        result = check_fluid_bolus_count(4, PatientState(age=8, weight=25.5))
        assert "80 mL/kg, 2040 mL" in result.rationale

    def test_no_volume_without_patient(self):
        """Test no volume is given without a patient."""
        assert "mL" not in check_fluid_bolus_count(3).rationale

    def test_negative_count_rejected(self):
        """Test negative counts are invalid input."""
        with pytest.raises(InputValidationError):
            check_fluid_bolus_count(-1)


class TestEpinephrineInterval:
    """Test epinephrine dose timing."""

    def test_under_three_minutes_blocks(self):
        """Test a repeat dose within 3 minutes is blocked."""
        result = check_epinephrine_interval(minutes_ago(2), now=NOW)
        assert result.severity == Severity.HARD_BLOCK
        assert result.message == "STOP: Only 2 minutes since last epinephrine dose"

    @pytest.mark.parametrize("elapsed", [3, 4, 5])
    def test_three_to_five_minutes_safe(self, elapsed):
        """Test the 3-5 minute window is inclusive on both ends."""
        assert check_epinephrine_interval(minutes_ago(elapsed), now=NOW).severity == Severity.SAFE

    def test_over_five_minutes_caution(self):
        """Test a long gap gives a caution."""
        result = check_epinephrine_interval(minutes_ago(8), now=NOW)
        assert result.severity == Severity.CAUTION
        assert "8 minutes" in result.message

    def test_epoch_milliseconds(self):
        """Test epoch milliseconds are accepted."""
        now_ms = NOW.timestamp() * 1000
        last_ms = now_ms - 4 * 60 * 1000
        assert check_epinephrine_interval(last_ms, now=now_ms).severity == Severity.SAFE

    def test_naive_datetimes_treated_as_utc(self):
        """Test naive datetimes are treated as UTC."""
        naive_now = NOW.replace(tzinfo=None)
        result = check_epinephrine_interval(naive_now - timedelta(minutes=1), now=NOW)
        assert result.severity == Severity.HARD_BLOCK

    @pytest.mark.parametrize("ahead", [timedelta(seconds=2), timedelta(seconds=30), timedelta(minutes=2)])
    def test_future_dose_blocks(self, ahead):
        """Test a last dose ahead of now counts as 0 minutes and blocks."""
        result = check_epinephrine_interval(NOW + ahead, now=NOW)
        assert result.severity == Severity.HARD_BLOCK
        assert result.message == "STOP: Only 0 minutes since last epinephrine dose"
        assert result.override is None

    def test_defaults_to_current_time(self):
        """Test now defaults to the current time."""
        result = check_epinephrine_interval(datetime.now(UTC) - timedelta(minutes=10))
        assert result.severity == Severity.CAUTION


class TestDefibrillationEnergy:
    """Test defibrillation energy checks."""

    def test_above_absolute_maximum(self):
        """Test energy above the absolute ceiling is blocked."""
        result = check_defibrillation_energy(250, 20)
        assert result.severity == Severity.HARD_BLOCK
        assert "exceeds maximum" in result.message

    def test_above_per_kg_maximum(self):
        """Test 5 J/kg is blocked."""
        result = check_defibrillation_energy(100, 20)
        assert result.severity == Severity.HARD_BLOCK
        assert "exceeds" in result.message

    def test_low_energy_warning(self):
        """Test 0.5 J/kg gives a warning."""
        result = check_defibrillation_energy(10, 20)
        assert result.severity == Severity.WARNING
        assert "low" in result.message

    def test_standard_energy_safe(self):
        """Test 2 J/kg is safe."""
        assert check_defibrillation_energy(40, 20).severity == Severity.SAFE

    def test_four_joules_per_kg_safe(self):
        """Test exactly 4 J/kg is allowed."""
        assert check_defibrillation_energy(80, 20).severity == Severity.SAFE

    @pytest.mark.parametrize("weight", [3, 10, 25, 50, 80, 120])
    @pytest.mark.parametrize("initial", [True, False])
    def test_calculated_energy_always_passes(self, weight, initial):
        """Test calculator output is never blocked by the check."""
        energy = calculate_defibrillation_energy(weight, is_initial_shock=initial)
        result = check_defibrillation_energy(energy.energy, weight)
        assert result.severity != Severity.HARD_BLOCK

    @pytest.mark.parametrize("energy, weight", [(0, 20), (40, 0), (-5, 20)])
    def test_invalid_input(self, energy, weight):
        """Test non-positive energy or weight is invalid input."""
        with pytest.raises(InputValidationError):
            check_defibrillation_energy(energy, weight)
