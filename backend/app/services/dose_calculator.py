"""Dose and Energy Calculator.

Weight-based drug dosing and defibrillation energy targets, with ceiling
clamps. The system shows the exact dose and volume to draw up so the
provider does no arithmetic at the bedside.
"""

import logging
from dataclasses import dataclass, replace

from app.core.errors import InputValidationError
from app.services.safety_catalog import DEFIBRILLATION_LIMITS, DoseFormula, get_rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoseResult:
    """Calculated dose for one patient weight."""

    dose: float
    unit: str
    volume_ml: float
    route: str
    clamped: bool  # max dose ceiling applied
    floored: bool = False  # min dose floor applied
    max_dose: str = ""
    drug_id: str | None = None
    drug_name: str | None = None
    variant: str | None = None
    concentration: str = ""
    reconstitution: tuple[str, ...] = ()
    monitoring: tuple[str, ...] = ()
    contraindications: tuple[str, ...] = ()
    reassessment_timer: str = ""


@dataclass(frozen=True)
class EnergyResult:
    """Defibrillation energy target."""

    energy: float
    j_per_kg: float
    clamped: bool


def _validate_weight(weight_kg: float) -> None:
    if weight_kg is None or weight_kg <= 0:
        raise InputValidationError(f"Weight must be > 0 kg, got {weight_kg}")


def calculate_dose(formula: DoseFormula, weight_kg: float) -> DoseResult:
    """Calculate a weight-based dose: min(dose_per_kg * weight, max_dose).

    Args:
        formula: Dosing formula from the catalog.
        weight_kg: Patient weight in kilograms.

    Returns:
        DoseResult; clamped is True iff the max dose ceiling was applied.

    Raises:
        InputValidationError: If weight is not positive.
    """
    _validate_weight(weight_kg)

    if formula.weight_bands:
        raw = next(dose for upper, dose in formula.weight_bands if weight_kg < upper)
    else:
        raw = formula.dose_per_kg * weight_kg

    dose = min(raw, formula.max_dose)
    clamped = raw > formula.max_dose

    floored = False
    if formula.min_dose is not None and dose < formula.min_dose:
        dose = formula.min_dose
        floored = True

    volume = dose / formula.concentration if formula.concentration else dose

    return DoseResult(
        dose=round(dose, 4),
        unit=formula.unit,
        volume_ml=round(volume, formula.volume_precision),
        route=formula.route,
        clamped=clamped,
        floored=floored,
        max_dose=formula.max_dose_text,
    )


def calculate_drug_dose(drug_id: str, weight_kg: float, variant: str | None = None) -> DoseResult:
    """Calculate the dose for a catalog drug.

    Args:
        drug_id: Catalog protocol id.
        weight_kg: Patient weight in kilograms.
        variant: Dosing variant (e.g. "second" for adenosine, "rectal" for
            diazepam). Defaults to the drug's standard variant.

    Raises:
        UnknownDrugError: If the drug id is not in the catalog.
        InputValidationError: If the variant is unknown or weight is not positive.
    """
    rule = get_rule(drug_id)
    chosen = variant or rule.default_variant

    formula = rule.dosing.get(chosen)
    if formula is None:
        available = ", ".join(rule.dosing)
        raise InputValidationError(f"Unknown dosing variant '{chosen}' for {drug_id}. Available: {available}")

    result = calculate_dose(formula, weight_kg)
    if result.clamped:
        logger.info(f"{drug_id} dose clamped to {formula.max_dose} {formula.unit} for {weight_kg} kg")

    result = replace(result, drug_id=rule.drug_id, drug_name=rule.drug_name, variant=chosen)

    guidance = rule.guidance
    if guidance is None:
        return result
    return replace(
        result,
        concentration=guidance.concentration,
        reconstitution=guidance.reconstitution,
        monitoring=guidance.monitoring,
        contraindications=guidance.contraindications,
        reassessment_timer=guidance.reassessment,
    )


def calculate_defibrillation_energy(weight_kg: float, is_initial_shock: bool = True) -> EnergyResult:
    """Calculate the defibrillation energy target.

    2 J/kg for the first shock, 4 J/kg for subsequent shocks, clamped to the
    absolute ceiling shared with check_defibrillation_energy.

    Raises:
        InputValidationError: If weight is not positive.
    """
    _validate_weight(weight_kg)

    limits = DEFIBRILLATION_LIMITS
    j_per_kg = limits.initial_j_per_kg if is_initial_shock else limits.subsequent_j_per_kg
    raw = j_per_kg * weight_kg
    energy = min(raw, limits.absolute_max_joules)

    return EnergyResult(
        energy=energy,
        j_per_kg=j_per_kg,
        clamped=raw > limits.absolute_max_joules,
    )
