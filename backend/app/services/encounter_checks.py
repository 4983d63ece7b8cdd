"""Encounter-level safety checks.

Pure classifiers for values the caller tracks per resuscitation encounter:
number of fluid boluses given, time of the last epinephrine dose, and the
defibrillation energy about to be delivered. Nothing here keeps state.
"""

import logging
from datetime import UTC, datetime

from app.core.errors import InputValidationError
from app.services.patient_state import PatientState, SafetyCheckResult, caution, hard_block, safe, warning
from app.services.safety_catalog import DEFIBRILLATION_LIMITS

logger = logging.getLogger(__name__)

MAX_FLUID_BOLUSES = 3
FLUID_BOLUS_ML_PER_KG = 20
EPINEPHRINE_MIN_INTERVAL_MINUTES = 3.0
EPINEPHRINE_MAX_INTERVAL_MINUTES = 5.0


def check_fluid_bolus_count(bolus_number: int, patient: PatientState | None = None) -> SafetyCheckResult:
    """Classify the number of fluid boluses given so far in the encounter.

    Args:
        bolus_number: Boluses given, including the one being considered.
        patient: Patient context; its weight gives the cumulative volume in
            the hard-block rationale.

    Raises:
        InputValidationError: If bolus_number is negative.
    """
    if bolus_number < 0:
        raise InputValidationError(f"Bolus count must be >= 0, got {bolus_number}")

    if bolus_number >= MAX_FLUID_BOLUSES:
        total = ""
        if patient is not None:
            per_kg = FLUID_BOLUS_ML_PER_KG * bolus_number
            total = f" ({per_kg:g} mL/kg, {per_kg * patient.weight:g} mL)"
        logger.warning(f"Fluid bolus limit reached: {bolus_number} boluses")
        return hard_block(
            f"STOP: {MAX_FLUID_BOLUSES} fluid boluses given without improvement",
            f"Persistent shock after repeated boluses{total} suggests cardiogenic shock or "
            "fluid overload. Consider inotropes and escalate care.",
        )

    if bolus_number == 2:
        return warning(
            "CAUTION: 2 fluid boluses given",
            "Reassess for signs of fluid overload (crackles, hepatomegaly, JVD). "
            "Consider inotropes if no improvement.",
            confirmation_text="I have reassessed for fluid overload and shock is still present",
        )

    return safe(
        "Fluid bolus appropriate",
        "First fluid bolus is standard treatment for shock",
    )


def _as_datetime(value: datetime | int | float) -> datetime:
    """Accept a timezone-aware datetime or epoch milliseconds."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def check_epinephrine_interval(
    last_dose_at: datetime | int | float,
    now: datetime | int | float | None = None,
) -> SafetyCheckResult:
    """Classify the time since the last epinephrine dose.

    A last dose in the future counts as 0 minutes elapsed.

    Args:
        last_dose_at: Time of the last dose (datetime, or epoch milliseconds).
        now: Reference time; defaults to the current UTC time.
    """
    current = _as_datetime(now) if now is not None else datetime.now(UTC)
    elapsed_minutes = (current - _as_datetime(last_dose_at)).total_seconds() / 60

    if elapsed_minutes < 0:
        logger.warning(f"Last epinephrine dose {-elapsed_minutes:.2f} min in the future; treating as 0")
        elapsed_minutes = 0.0

    if elapsed_minutes < EPINEPHRINE_MIN_INTERVAL_MINUTES:
        logger.warning(f"Epinephrine repeat blocked: {elapsed_minutes:.1f} min since last dose")
        return hard_block(
            f"STOP: Only {round(elapsed_minutes)} minutes since last epinephrine dose",
            "Epinephrine should be given every 3-5 minutes. Wait at least 3 minutes.",
        )

    if elapsed_minutes > EPINEPHRINE_MAX_INTERVAL_MINUTES:
        return caution(
            f"{round(elapsed_minutes)} minutes since last epinephrine dose",
            "Consider giving epinephrine now if still in cardiac arrest",
            confirmation_text="I have confirmed the patient's current rhythm",
        )

    return safe(
        "Appropriate timing for epinephrine",
        "Dose interval is within 3-5 minute guideline",
    )


def check_defibrillation_energy(energy_joules: float, weight_kg: float) -> SafetyCheckResult:
    """Classify a selected defibrillation energy for a child's weight.

    Raises:
        InputValidationError: If energy or weight is not positive.
    """
    if weight_kg <= 0:
        raise InputValidationError(f"Weight must be > 0 kg, got {weight_kg}")
    if energy_joules <= 0:
        raise InputValidationError(f"Energy must be > 0 J, got {energy_joules}")

    limits = DEFIBRILLATION_LIMITS
    j_per_kg = energy_joules / weight_kg
    recommended = weight_kg * limits.initial_j_per_kg

    if energy_joules > limits.absolute_max_joules:
        logger.warning(f"Defibrillation energy {energy_joules} J above absolute maximum")
        return hard_block(
            f"STOP: Energy ({energy_joules:g} J) exceeds maximum ({limits.absolute_max_joules:g} J)",
            "Reduce energy to prevent myocardial damage",
        )

    if j_per_kg > limits.max_j_per_kg:
        max_energy = weight_kg * limits.max_j_per_kg
        logger.warning(f"Defibrillation energy {j_per_kg:.1f} J/kg above maximum")
        return hard_block(
            f"STOP: Energy ({energy_joules:g} J) exceeds {max_energy:g} J for {weight_kg:g} kg child",
            f"Maximum safe energy is {limits.max_j_per_kg:g} J/kg. Reduce energy.",
        )

    if j_per_kg < limits.min_j_per_kg:
        return warning(
            f"Energy ({energy_joules:g} J) is low for {weight_kg:g} kg child",
            f"Recommended energy is {recommended:g} J ({limits.initial_j_per_kg:g} J/kg). Consider increasing.",
            confirmation_text="I understand this energy may be suboptimal",
        )

    return safe(
        "Defibrillation energy appropriate",
        f"Energy ({j_per_kg:.1f} J/kg) is within safe range for {weight_kg:g} kg child",
    )
