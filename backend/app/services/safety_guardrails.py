"""Safety Guardrail Evaluator.

Decides whether a drug from the safety catalog may be given to a specific
patient. The checks run as a fixed, ordered chain:

1. Allergies
2. Contraindications
3. Drug interactions
4. Age appropriateness
5. Weight limits

The first hard-block ends the evaluation. Otherwise the most severe
warning/caution is returned (earlier checks win ties), and "safe" only
when nothing matched.
"""

import logging
from collections.abc import Callable
from threading import Lock
from typing import Any

from app.services.patient_state import (
    PatientState,
    SafetyCheckResult,
    Severity,
    caution,
    hard_block,
    safe,
    warning,
)
from app.services.safety_catalog import DrugSafetyRule, all_rules, get_rule

logger = logging.getLogger(__name__)

SafetyStep = Callable[[DrugSafetyRule, PatientState], SafetyCheckResult | None]


def _first_match(entries: frozenset[str], terms) -> str | None:
    """Return the first patient entry containing any catalog term (case-insensitive)."""
    for entry in sorted(entries):
        lowered = entry.lower()
        if any(term.lower() in lowered for term in terms):
            return entry
    return None


# ============================================================================
# Chain steps
# ============================================================================


def check_allergies(rule: DrugSafetyRule, patient: PatientState) -> SafetyCheckResult | None:
    """Match patient allergies against the drug's allergy triggers."""
    if not patient.allergies or not rule.allergy_triggers:
        return None

    matched = _first_match(patient.allergies, rule.allergy_triggers)
    if matched is None:
        return None

    if rule.allergy_exception:
        return warning(
            f"ALLERGY NOTED: Patient has documented allergy to {matched}",
            f"{rule.drug_name} is life-saving in {rule.indication.lower()}. "
            "Benefits outweigh risks even with known allergy.",
            confirmation_text="I understand this is a life-saving intervention",
        )

    return hard_block(
        f"ALLERGY ALERT: Patient allergic to {matched}",
        "Documented allergy is an absolute contraindication. Seek alternative therapy.",
    )


def check_contraindications(rule: DrugSafetyRule, patient: PatientState) -> SafetyCheckResult | None:
    """Return the most severe matching contraindication, hard-blocks first."""
    found: SafetyCheckResult | None = None

    for ci in rule.contraindications:
        if not ci.matches(patient):
            continue
        if ci.severity == Severity.HARD_BLOCK:
            return hard_block(ci.message, ci.rationale)
        if found is None:
            found = warning(ci.message, ci.rationale, confirmation_text=ci.confirmation_text)

    return found


def check_interactions(rule: DrugSafetyRule, patient: PatientState) -> SafetyCheckResult | None:
    """Match current medications against known interactions."""
    if not patient.current_medications:
        return None

    for interaction in rule.interactions:
        matched = _first_match(patient.current_medications, interaction.medications)
        if matched is not None:
            return warning(
                f"INTERACTION: {matched} detected",
                interaction.message,
                confirmation_text="I understand the interaction risk and will monitor closely",
            )
    return None


def check_age(rule: DrugSafetyRule, patient: PatientState) -> SafetyCheckResult | None:
    """Flag age bands with limited safety data for this drug."""
    for age_caution in rule.age_cautions:
        if age_caution.applies(patient.age):
            return warning(
                age_caution.message,
                age_caution.rationale,
                confirmation_text=f"I understand this drug has limited {age_caution.label} safety data",
            )
    return None


def check_weight_limit(rule: DrugSafetyRule, patient: PatientState) -> SafetyCheckResult | None:
    """Flag patients heavier than the typical pediatric range for this drug."""
    limit = rule.weight_limit
    if limit is None or patient.weight <= limit.max_weight_kg:
        return None

    return caution(
        f"Weight ({patient.weight:g} kg) exceeds typical pediatric range",
        f"Use adult max dose of {limit.adult_max_dose:g} {limit.unit}",
        confirmation_text="I have confirmed the adult maximum dose",
    )


SAFETY_CHAIN: tuple[SafetyStep, ...] = (
    check_allergies,
    check_contraindications,
    check_interactions,
    check_age,
    check_weight_limit,
)


# ============================================================================
# Evaluator Service
# ============================================================================


class SafetyGuardrailEvaluator:
    """Runs the safety chain for a drug and patient.

    Usage:
        evaluator = SafetyGuardrailEvaluator()
        result = evaluator.evaluate("PR-DC-AMIO-CA-v1.0", patient)
        if not result.allowed:
            ...
    """

    def __init__(self, chain: tuple[SafetyStep, ...] = SAFETY_CHAIN) -> None:
        self._chain = chain

    def evaluate(self, drug_id: str, patient: PatientState) -> SafetyCheckResult:
        """Evaluate a drug for a patient and return the decisive finding.

        Raises:
            UnknownDrugError: If the drug id is not in the catalog.
        """
        rule = get_rule(drug_id)
        best: SafetyCheckResult | None = None

        for step in self._chain:
            finding = step(rule, patient)
            if finding is None:
                continue
            if finding.severity == Severity.HARD_BLOCK:
                logger.warning(f"Hard block for {drug_id}: {finding.message}")
                return finding
            if best is None or finding.severity.rank > best.severity.rank:
                best = finding

        if best is not None:
            logger.info(f"{best.severity.value} for {drug_id}: {best.message}")
            return best

        return safe(
            "No contraindications detected",
            "Drug is safe to administer based on current patient state",
        )

    def evaluate_all(self, drug_id: str, patient: PatientState) -> list[SafetyCheckResult]:
        """Return every finding from the chain, in chain order.

        Unlike evaluate(), this does not stop at the first hard-block.
        """
        rule = get_rule(drug_id)
        findings = []
        for step in self._chain:
            finding = step(rule, patient)
            if finding is not None:
                findings.append(finding)
        return findings

    def list_drugs(self) -> list[dict[str, str]]:
        """Catalog summary for drug pickers."""
        return [
            {"drug_id": r.drug_id, "drug_name": r.drug_name, "indication": r.indication}
            for r in all_rules()
        ]

    def get_stats(self) -> dict[str, Any]:
        rules = all_rules()
        return {
            "total_protocols": len(rules),
            "with_contraindications": sum(1 for r in rules if r.contraindications),
            "with_interactions": sum(1 for r in rules if r.interactions),
            "chain_length": len(self._chain),
        }


# Singleton instance and lock
_safety_evaluator: SafetyGuardrailEvaluator | None = None
_safety_evaluator_lock = Lock()


def get_safety_evaluator() -> SafetyGuardrailEvaluator:
    """Get the singleton SafetyGuardrailEvaluator instance."""
    global _safety_evaluator

    if _safety_evaluator is None:
        with _safety_evaluator_lock:
            if _safety_evaluator is None:
                logger.info("Creating singleton SafetyGuardrailEvaluator instance")
                _safety_evaluator = SafetyGuardrailEvaluator()

    return _safety_evaluator


def reset_safety_evaluator() -> None:
    """Reset the singleton instance (for testing)."""
    global _safety_evaluator
    with _safety_evaluator_lock:
        _safety_evaluator = None


def evaluate(drug_id: str, patient: PatientState) -> SafetyCheckResult:
    """Evaluate a drug for a patient using the shared evaluator."""
    return get_safety_evaluator().evaluate(drug_id, patient)
