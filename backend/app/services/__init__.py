"""Services for the Pediatric Safety Engine.

Services implement the clinical decision logic:
- SafetyGuardrailEvaluator: drug checks against the safety catalog
- Encounter checks: fluid boluses, epinephrine timing, defibrillation energy
- Dose calculator: weight-based doses and defibrillation energy
- Vitals risk scoring against age-banded reference ranges
- Trend analysis over a window of risk records

ClinicalStore (database persistence) is imported from its own module.
"""

from app.services.dose_calculator import (
    DoseResult,
    EnergyResult,
    calculate_defibrillation_energy,
    calculate_dose,
    calculate_drug_dose,
)
from app.services.encounter_checks import (
    check_defibrillation_energy,
    check_epinephrine_interval,
    check_fluid_bolus_count,
)
from app.services.patient_state import (
    OverridePolicy,
    PatientState,
    SafetyCheckResult,
    Severity,
    VitalSigns,
)
from app.services.reference_ranges import ReferenceRange, get_reference_range, validate_reference_ranges
from app.services.safety_catalog import DrugSafetyRule, get_rule, validate_catalog
from app.services.safety_guardrails import (
    SafetyGuardrailEvaluator,
    evaluate,
    get_safety_evaluator,
    reset_safety_evaluator,
)
from app.services.trend_analysis import DeteriorationPattern, TrendAnalysis, analyze_trend
from app.services.vitals_risk import (
    RiskAssessment,
    RiskLevel,
    RiskScoreRecord,
    assess_patient,
    classify_risk_level,
    score,
)

__all__ = [
    # Patient state and results
    "PatientState",
    "VitalSigns",
    "Severity",
    "SafetyCheckResult",
    "OverridePolicy",
    # Safety guardrails
    "DrugSafetyRule",
    "get_rule",
    "validate_catalog",
    "SafetyGuardrailEvaluator",
    "evaluate",
    "get_safety_evaluator",
    "reset_safety_evaluator",
    # Encounter checks
    "check_fluid_bolus_count",
    "check_epinephrine_interval",
    "check_defibrillation_energy",
    # Dose calculator
    "DoseResult",
    "EnergyResult",
    "calculate_dose",
    "calculate_drug_dose",
    "calculate_defibrillation_energy",
    # Vitals risk
    "ReferenceRange",
    "get_reference_range",
    "validate_reference_ranges",
    "RiskAssessment",
    "RiskLevel",
    "RiskScoreRecord",
    "score",
    "classify_risk_level",
    "assess_patient",
    # Trends
    "DeteriorationPattern",
    "TrendAnalysis",
    "analyze_trend",
]
