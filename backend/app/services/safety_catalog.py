"""Drug Safety Catalog.

Static table of pediatric emergency drug protocols, keyed by protocol id
(e.g. "PR-DC-AMIO-CA-v1.0"). Each entry carries everything the guardrail
evaluator and the dose calculator need:

- Allergy triggers (and whether the drug stays allowed despite a match)
- Contraindications (condition- or vital-sign-based, hard-block or warning)
- Drug interactions
- Age cautions
- Weight limit above which adult maximum doses apply
- Weight-based dosing formula
- Dosing guidance (concentration, monitoring, reassessment timer)

The catalog is built once at import and never mutated.

Note: This is a clinical decision support tool and should not replace
clinical judgment.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from app.core.errors import ConfigurationError, UnknownDrugError
from app.services.patient_state import PatientState, Severity
from app.services.reference_ranges import is_neonate

logger = logging.getLogger(__name__)

HYPOTHERMIA_TEMP_C = 35.0
RESPIRATORY_DEPRESSION_RATE = 10


@dataclass(frozen=True)
class Contraindication:
    """A patient state in which the drug must not (or should not) be given."""

    name: str
    severity: Severity  # HARD_BLOCK or WARNING
    message: str
    rationale: str
    matches: Callable[[PatientState], bool]
    confirmation_text: str = ""


@dataclass(frozen=True)
class Interaction:
    """Current medications that interact with the drug."""

    medications: tuple[str, ...]
    message: str


@dataclass(frozen=True)
class AgeCaution:
    """An age band with limited safety data for the drug."""

    label: str
    applies: Callable[[float], bool]
    message: str
    rationale: str


@dataclass(frozen=True)
class DoseWeightLimit:
    """Weight above which the patient is outside the typical pediatric range."""

    max_weight_kg: float
    adult_max_dose: float
    unit: str


@dataclass(frozen=True)
class DoseFormula:
    """Weight-based dosing: dose = dose_per_kg * weight, clamped to [min_dose, max_dose].

    If weight_bands is set, the dose is taken from the first band whose upper
    weight bound (exclusive) exceeds the patient weight instead.
    """

    dose_per_kg: float
    max_dose: float
    unit: str
    route: str
    concentration: float | None = None  # unit per mL; None means dose is a volume
    min_dose: float | None = None
    volume_precision: int = 1
    weight_bands: tuple[tuple[float, float], ...] = ()
    max_dose_label: str = ""

    @property
    def max_dose_text(self) -> str:
        return self.max_dose_label or f"{self.max_dose:g} {self.unit}"


@dataclass(frozen=True)
class DosingGuidance:
    """Bedside information returned with every calculated dose."""

    concentration: str
    reassessment: str
    monitoring: tuple[str, ...] = ()
    contraindications: tuple[str, ...] = ()
    reconstitution: tuple[str, ...] = ()


@dataclass(frozen=True)
class DrugSafetyRule:
    """Catalog entry for one drug protocol."""

    drug_id: str
    drug_name: str
    indication: str
    allergy_triggers: frozenset[str] = frozenset()
    allergy_exception: bool = False
    contraindications: tuple[Contraindication, ...] = ()
    interactions: tuple[Interaction, ...] = ()
    age_cautions: tuple[AgeCaution, ...] = ()
    weight_limit: DoseWeightLimit | None = None
    dosing: Mapping[str, DoseFormula] = field(default_factory=dict)
    default_variant: str = "standard"
    guidance: DosingGuidance | None = None


@dataclass(frozen=True)
class DefibrillationLimits:
    """Canonical defibrillation energy table shared by the check and the calculator."""

    initial_j_per_kg: float = 2.0
    subsequent_j_per_kg: float = 4.0
    min_j_per_kg: float = 1.0
    max_j_per_kg: float = 4.0
    absolute_max_joules: float = 200.0  # single ceiling for initial and subsequent shocks


DEFIBRILLATION_LIMITS = DefibrillationLimits()


# ============================================================================
# Predicate helpers
# ============================================================================


def has_condition(*terms: str) -> Callable[[PatientState], bool]:
    """Match if any patient condition equals one of the terms (case-folded, trimmed).

    Conditions are whole diagnoses, not substrings: "No history of heart
    failure" does not match "heart failure".
    """
    wanted = frozenset(t.strip().casefold() for t in terms)

    def _matches(patient: PatientState) -> bool:
        return any(cond.strip().casefold() in wanted for cond in patient.conditions)

    return _matches


def _is_hypothermic(patient: PatientState) -> bool:
    vitals = patient.vital_signs
    return vitals is not None and vitals.temperature is not None and vitals.temperature < HYPOTHERMIA_TEMP_C


def _has_respiratory_depression(patient: PatientState) -> bool:
    vitals = patient.vital_signs
    return (
        vitals is not None
        and vitals.respiratory_rate is not None
        and vitals.respiratory_rate < RESPIRATORY_DEPRESSION_RATE
    )


NEONATE_CAUTION = AgeCaution(
    label="neonate",
    applies=is_neonate,
    message="CAUTION: Neonate (<1 month old)",
    rationale="Limited safety data in neonates. Use with caution and consider specialist consultation.",
)

EPINEPHRINE_ALLERGENS = frozenset({"epinephrine", "adrenaline", "sulfites"})


# ============================================================================
# Drug Safety Catalog
# ============================================================================

DRUG_SAFETY_RULES: tuple[DrugSafetyRule, ...] = (
    DrugSafetyRule(
        drug_id="PR-DC-EPI-CA-v1.0",
        drug_name="Epinephrine (Adrenaline)",
        indication="Cardiac Arrest",
        allergy_triggers=EPINEPHRINE_ALLERGENS,
        weight_limit=DoseWeightLimit(max_weight_kg=100, adult_max_dose=1, unit="mg"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=0.01, max_dose=1, unit="mg", route="IV/IO", concentration=0.1
            ),
        },
        guidance=DosingGuidance(
            concentration="0.1 mg/mL (1:10,000)",
            reassessment="Every 3-5 minutes",
            reconstitution=(
                "Draw 1 mL of 1:1000 epinephrine (1 mg)",
                "Add to 9 mL normal saline",
                "Final concentration: 0.1 mg/mL (1:10,000)",
                'Label syringe: "EPINEPHRINE 0.1 mg/mL, IV/IO ONLY"',
            ),
            monitoring=(
                "Continuous cardiac rhythm monitoring",
                "Pulse check every 2 minutes",
                "ETCO2 if available (target >10 mmHg during CPR)",
            ),
            contraindications=("No absolute contraindications in cardiac arrest",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-EPI-ANA-v1.0",
        drug_name="Epinephrine (Adrenaline)",
        indication="Anaphylaxis",
        allergy_triggers=EPINEPHRINE_ALLERGENS,
        allergy_exception=True,
        weight_limit=DoseWeightLimit(max_weight_kg=50, adult_max_dose=0.5, unit="mg"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=0.01,
                max_dose=0.5,
                unit="mg",
                route="IM (anterolateral thigh)",
                concentration=1,
                volume_precision=2,
            ),
        },
        guidance=DosingGuidance(
            concentration="1 mg/mL (1:1000)",
            reassessment="Every 5 minutes",
            monitoring=(
                "Heart rate and blood pressure every 5 minutes",
                "Respiratory rate and oxygen saturation",
                "Skin color and perfusion",
            ),
            contraindications=("No absolute contraindications in anaphylaxis",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-AMIO-CA-v1.0",
        drug_name="Amiodarone",
        indication="Cardiac Arrest (VF/pVT)",
        allergy_triggers=frozenset({"amiodarone", "iodine"}),
        interactions=(
            Interaction(
                medications=("procainamide", "sotalol", "quinidine"),
                message="Amiodarone + other antiarrhythmics increases risk of torsades de pointes",
            ),
        ),
        age_cautions=(NEONATE_CAUTION,),
        weight_limit=DoseWeightLimit(max_weight_kg=60, adult_max_dose=300, unit="mg"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=5, max_dose=300, unit="mg", route="IV/IO rapid bolus", concentration=50
            ),
        },
        guidance=DosingGuidance(
            concentration="50 mg/mL",
            reassessment="After 2nd defibrillation",
            monitoring=(
                "Continuous cardiac rhythm monitoring",
                "Blood pressure if ROSC achieved",
                "Watch for hypotension",
            ),
            contraindications=("Known hypersensitivity to amiodarone or iodine",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-ADEN-SVT-v1.0",
        drug_name="Adenosine",
        indication="Supraventricular Tachycardia (SVT)",
        allergy_triggers=frozenset({"adenosine"}),
        contraindications=(
            Contraindication(
                name="AV block",
                severity=Severity.HARD_BLOCK,
                message="CONTRAINDICATION: Patient has AV block",
                rationale="Adenosine causes transient AV block and can worsen existing conduction abnormalities",
                matches=has_condition(
                    "2nd-degree av block",
                    "3rd-degree av block",
                    "second-degree av block",
                    "third-degree av block",
                    "2nd degree av block",
                    "3rd degree av block",
                    "mobitz type ii",
                    "complete heart block",
                ),
            ),
            Contraindication(
                name="Sick sinus syndrome",
                severity=Severity.HARD_BLOCK,
                message="CONTRAINDICATION: Patient has sick sinus syndrome",
                rationale="Adenosine can cause prolonged asystole in sick sinus syndrome",
                matches=has_condition("sick sinus syndrome", "sinus node dysfunction"),
            ),
        ),
        interactions=(
            Interaction(
                medications=("theophylline", "caffeine"),
                message="Methylxanthines antagonize adenosine. May need higher dose.",
            ),
        ),
        age_cautions=(NEONATE_CAUTION,),
        weight_limit=DoseWeightLimit(max_weight_kg=60, adult_max_dose=12, unit="mg"),
        dosing={
            "first": DoseFormula(
                dose_per_kg=0.1,
                max_dose=6,
                unit="mg",
                route="IV rapid push followed by 5-10 mL NS flush",
                concentration=3,
            ),
            "second": DoseFormula(
                dose_per_kg=0.2,
                max_dose=12,
                unit="mg",
                route="IV rapid push followed by 5-10 mL NS flush",
                concentration=3,
            ),
        },
        default_variant="first",
        guidance=DosingGuidance(
            concentration="3 mg/mL",
            reassessment="1-2 minutes after administration",
            monitoring=(
                "Continuous cardiac rhythm monitoring",
                "Have defibrillator ready",
                "Monitor for transient asystole (normal)",
            ),
            contraindications=(
                "Second- or third-degree AV block",
                "Sick sinus syndrome",
                "Known hypersensitivity",
            ),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-ATRO-BRADY-v1.0",
        drug_name="Atropine",
        indication="Bradycardia with poor perfusion",
        allergy_triggers=frozenset({"atropine"}),
        contraindications=(
            Contraindication(
                name="Hypothermia",
                severity=Severity.WARNING,
                message="CAUTION: Patient is hypothermic",
                rationale="Atropine is less effective in hypothermic bradycardia. Rewarm patient first.",
                matches=_is_hypothermic,
                confirmation_text="I understand atropine may be ineffective in hypothermia",
            ),
        ),
        interactions=(
            Interaction(
                medications=("anticholinergic",),
                message="Multiple anticholinergics increase risk of tachycardia and delirium",
            ),
        ),
        weight_limit=DoseWeightLimit(max_weight_kg=25, adult_max_dose=0.5, unit="mg"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=0.02,
                max_dose=0.5,
                min_dose=0.1,
                unit="mg",
                route="IV/IO rapid push",
                concentration=0.1,
                max_dose_label="0.5 mg (single dose)",
            ),
        },
        guidance=DosingGuidance(
            concentration="0.1 mg/mL",
            reassessment="3-5 minutes",
            monitoring=(
                "Continuous cardiac rhythm monitoring",
                "Heart rate response",
                "Perfusion assessment",
            ),
            contraindications=("Hypothermic bradycardia (relative)",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-NS-BOLUS-v1.0",
        drug_name="Normal Saline (0.9% NaCl)",
        indication="Shock resuscitation",
        contraindications=(
            Contraindication(
                name="Fluid overload",
                severity=Severity.HARD_BLOCK,
                message="CONTRAINDICATION: Signs of fluid overload",
                rationale="Fluid bolus can worsen heart failure and pulmonary edema. Consider inotropes instead.",
                matches=has_condition(
                    "heart failure",
                    "congestive heart failure",
                    "cardiac failure",
                    "fluid overload",
                    "pulmonary edema",
                    "pulmonary oedema",
                ),
            ),
        ),
        weight_limit=DoseWeightLimit(max_weight_kg=50, adult_max_dose=1000, unit="mL"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=20,
                max_dose=1000,
                unit="mL",
                route="IV/IO rapid infusion",
                volume_precision=0,
                max_dose_label="1000 mL per bolus",
            ),
        },
        guidance=DosingGuidance(
            concentration="Isotonic crystalloid",
            reassessment="After each bolus (5-10 minutes)",
            monitoring=(
                "Heart rate and blood pressure",
                "Perfusion (capillary refill, skin temperature)",
                "Respiratory rate and work of breathing",
                "Lung sounds (watch for fluid overload)",
            ),
            contraindications=("Signs of heart failure or fluid overload",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-D10-HYPO-v1.0",
        drug_name="Dextrose 10%",
        indication="Hypoglycemia",
        weight_limit=DoseWeightLimit(max_weight_kg=50, adult_max_dose=100, unit="mL"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=2,
                max_dose=100,
                unit="mL",
                route="IV/IO slow push over 2-3 minutes",
                volume_precision=0,
            ),
        },
        guidance=DosingGuidance(
            concentration="10% (0.1 g/mL)",
            reassessment="15 minutes (recheck glucose)",
            reconstitution=(
                "If only D50% available: Dilute 1:5 with sterile water",
                "If only D5% available: Give 4 mL/kg",
            ),
            monitoring=(
                "Blood glucose before and 15 minutes after",
                "Continuous monitoring if altered consciousness",
                "Watch IV site for extravasation",
            ),
            contraindications=("None in emergency hypoglycemia",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-SALB-BRONCH-v1.0",
        drug_name="Salbutamol (Albuterol)",
        indication="Bronchospasm (asthma, bronchiolitis)",
        allergy_triggers=frozenset({"salbutamol", "albuterol"}),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=0,
                max_dose=5,
                unit="mg",
                route="Nebulized with oxygen",
                concentration=1,
                weight_bands=((20, 2.5), (float("inf"), 5)),
                max_dose_label="5 mg per dose",
            ),
        },
        guidance=DosingGuidance(
            concentration="1 mg/mL (0.5% solution)",
            reassessment="Every 20 minutes for first hour",
            monitoring=(
                "Respiratory rate and work of breathing",
                "Oxygen saturation",
                "Heart rate (watch for tachycardia)",
                "Lung sounds",
            ),
            contraindications=("None in emergency bronchospasm",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-HYDRO-ANA-v1.0",
        drug_name="Hydrocortisone",
        indication="Anaphylaxis / Status Asthmaticus",
        allergy_triggers=frozenset({"hydrocortisone", "corticosteroid"}),
        weight_limit=DoseWeightLimit(max_weight_kg=25, adult_max_dose=100, unit="mg"),
        dosing={
            "standard": DoseFormula(
                dose_per_kg=4, max_dose=100, unit="mg", route="IV/IO slow push", concentration=50
            ),
        },
        guidance=DosingGuidance(
            concentration="50 mg/mL (after reconstitution)",
            reassessment="30-60 minutes",
            reconstitution=(
                "Add 2 mL sterile water to 100 mg vial",
                "Final concentration: 50 mg/mL",
            ),
            monitoring=(
                "Blood pressure",
                "Blood glucose (steroids can raise glucose)",
            ),
            contraindications=("None in emergency situations",),
        ),
    ),
    DrugSafetyRule(
        drug_id="PR-DC-DIAZ-SEIZ-v1.0",
        drug_name="Diazepam",
        indication="Seizures",
        allergy_triggers=frozenset({"diazepam", "benzodiazepine"}),
        contraindications=(
            Contraindication(
                name="Respiratory depression",
                severity=Severity.WARNING,
                message="CAUTION: Patient has respiratory depression",
                rationale="Diazepam can worsen respiratory depression. Have bag-valve-mask ready.",
                matches=_has_respiratory_depression,
                confirmation_text="I am prepared to support ventilation if needed",
            ),
        ),
        age_cautions=(NEONATE_CAUTION,),
        weight_limit=DoseWeightLimit(max_weight_kg=33, adult_max_dose=10, unit="mg"),
        dosing={
            "iv": DoseFormula(
                dose_per_kg=0.3,
                max_dose=10,
                unit="mg",
                route="IV/IO slow push (over 2-3 min)",
                concentration=5,
            ),
            "rectal": DoseFormula(
                dose_per_kg=0.5, max_dose=20, unit="mg", route="Rectal", concentration=5
            ),
        },
        default_variant="iv",
        guidance=DosingGuidance(
            concentration="5 mg/mL",
            reassessment="5 minutes",
            monitoring=(
                "Respiratory rate and effort",
                "Oxygen saturation",
                "Seizure activity",
                "Level of consciousness",
            ),
            contraindications=(
                "Respiratory depression (relative)",
                "Known hypersensitivity",
            ),
        ),
    ),
)

_RULES_BY_ID: Mapping[str, DrugSafetyRule] = MappingProxyType({r.drug_id: r for r in DRUG_SAFETY_RULES})


def get_rule(drug_id: str) -> DrugSafetyRule:
    """Look up a catalog entry by protocol id.

    Raises:
        UnknownDrugError: If the id is not in the catalog.
    """
    rule = _RULES_BY_ID.get(drug_id)
    if rule is None:
        logger.error(f"Unknown drug protocol requested: {drug_id}")
        raise UnknownDrugError(drug_id)
    return rule


def all_rules() -> tuple[DrugSafetyRule, ...]:
    return DRUG_SAFETY_RULES


def validate_catalog(rules: tuple[DrugSafetyRule, ...] = DRUG_SAFETY_RULES) -> None:
    """Check catalog consistency; called once at startup.

    Raises:
        ConfigurationError: On duplicate ids, contraindications with an
            unsupported severity, or malformed dosing formulas.
    """
    seen: set[str] = set()
    for rule in rules:
        if rule.drug_id in seen:
            raise ConfigurationError(f"Duplicate drug protocol id: {rule.drug_id}")
        seen.add(rule.drug_id)

        for ci in rule.contraindications:
            if ci.severity not in (Severity.HARD_BLOCK, Severity.WARNING):
                raise ConfigurationError(
                    f"{rule.drug_id}: contraindication '{ci.name}' must be hard-block or warning"
                )

        if not rule.dosing:
            raise ConfigurationError(f"{rule.drug_id}: no dosing formula")
        if rule.guidance is None:
            raise ConfigurationError(f"{rule.drug_id}: no dosing guidance")
        if rule.default_variant not in rule.dosing:
            raise ConfigurationError(f"{rule.drug_id}: default variant '{rule.default_variant}' missing")

        for variant, formula in rule.dosing.items():
            if formula.max_dose <= 0 or formula.dose_per_kg < 0:
                raise ConfigurationError(f"{rule.drug_id}/{variant}: invalid dose bounds")
            if formula.min_dose is not None and formula.min_dose > formula.max_dose:
                raise ConfigurationError(f"{rule.drug_id}/{variant}: min dose exceeds max dose")
            if formula.concentration is not None and formula.concentration <= 0:
                raise ConfigurationError(f"{rule.drug_id}/{variant}: concentration must be positive")

    limits = DEFIBRILLATION_LIMITS
    if limits.initial_j_per_kg > limits.max_j_per_kg or limits.subsequent_j_per_kg > limits.max_j_per_kg:
        raise ConfigurationError("Defibrillation dosing exceeds the maximum J/kg")

    logger.info(f"Drug safety catalog validated: {len(rules)} protocols")
