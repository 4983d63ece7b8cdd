"""Safety API endpoints.

Drug evaluation against the guardrail chain, encounter-level checks,
dose and energy calculators, and clinician overrides.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.audit import log_override, log_safety_block
from app.core.database import get_db
from app.core.errors import InputValidationError, PatientNotFoundError, UnknownDrugError
from app.schemas.safety import (
    DefibrillationCheckRequest,
    DefibrillationEnergyRequest,
    DefibrillationEnergyResponse,
    DoseRequest,
    DoseResponse,
    DrugEvaluationRequest,
    DrugEvaluationResponse,
    DrugSummary,
    EpinephrineIntervalRequest,
    FluidBolusRequest,
    OverrideRequest,
    OverrideResponse,
    SafetyCheckResponse,
)
from app.services.clinical_store import ClinicalStore
from app.services.dose_calculator import calculate_defibrillation_energy, calculate_drug_dose
from app.services.encounter_checks import (
    check_defibrillation_energy,
    check_epinephrine_interval,
    check_fluid_bolus_count,
)
from app.services.patient_state import PatientState, SafetyCheckResult, Severity
from app.services.safety_catalog import get_rule
from app.services.safety_guardrails import get_safety_evaluator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/safety", tags=["Safety"])

DbSession = Annotated[Session, Depends(get_db)]


def _unprocessable(e: InputValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


def _unknown_drug(e: UnknownDrugError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _resolve_patient(request: DrugEvaluationRequest | OverrideRequest, db: Session) -> PatientState:
    """Use the inline patient state if given, otherwise load the stored one."""
    if request.patient is not None:
        try:
            return request.patient.to_domain()
        except InputValidationError as e:
            raise _unprocessable(e) from e

    if request.patient_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Either patient or patient_id is required",
        )

    try:
        return ClinicalStore(db).get_patient_state(request.patient_id)
    except PatientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


# ==============================================================================
# Drug Evaluation
# ==============================================================================


@router.post(
    "/evaluate",
    response_model=DrugEvaluationResponse,
    summary="Evaluate a drug for a patient",
    description="Run the allergy, contraindication, interaction, age and weight checks for one drug.",
)
def evaluate_drug(request: DrugEvaluationRequest, db: DbSession) -> DrugEvaluationResponse:
    """Evaluate a drug against the safety chain.

    The decisive result follows the chain rules: the first hard-block
    wins, otherwise the most severe finding, otherwise safe. `findings`
    lists every non-safe finding for display.
    """
    patient = _resolve_patient(request, db)
    evaluator = get_safety_evaluator()

    try:
        result = evaluator.evaluate(request.drug_id, patient)
        findings = evaluator.evaluate_all(request.drug_id, patient)
    except UnknownDrugError as e:
        raise _unknown_drug(e) from e

    logger.info(f"Evaluated {request.drug_id}: {result.severity.value}")

    return DrugEvaluationResponse(
        drug_id=request.drug_id,
        result=SafetyCheckResponse.from_result(result),
        findings=[SafetyCheckResponse.from_result(f) for f in findings],
    )


@router.get(
    "/drugs",
    response_model=list[DrugSummary],
    summary="List drug protocols",
)
def list_drugs() -> list[DrugSummary]:
    """List every protocol in the drug safety catalog."""
    return [DrugSummary(**d) for d in get_safety_evaluator().list_drugs()]


# ==============================================================================
# Encounter Checks
# ==============================================================================


@router.post("/fluid-bolus", response_model=SafetyCheckResponse, summary="Check fluid bolus count")
def fluid_bolus(request: FluidBolusRequest) -> SafetyCheckResponse:
    try:
        patient = request.patient.to_domain() if request.patient else None
        result = check_fluid_bolus_count(request.bolus_number, patient)
    except InputValidationError as e:
        raise _unprocessable(e) from e
    return SafetyCheckResponse.from_result(result)


@router.post(
    "/epinephrine-interval",
    response_model=SafetyCheckResponse,
    summary="Check time since last epinephrine dose",
)
def epinephrine_interval(request: EpinephrineIntervalRequest) -> SafetyCheckResponse:
    try:
        result = check_epinephrine_interval(request.last_dose_at, request.now)
    except InputValidationError as e:
        raise _unprocessable(e) from e
    return SafetyCheckResponse.from_result(result)


@router.post("/defibrillation", response_model=SafetyCheckResponse, summary="Check defibrillation energy")
def defibrillation(request: DefibrillationCheckRequest) -> SafetyCheckResponse:
    try:
        result = check_defibrillation_energy(request.energy_joules, request.weight_kg)
    except InputValidationError as e:
        raise _unprocessable(e) from e
    return SafetyCheckResponse.from_result(result)


# ==============================================================================
# Calculators
# ==============================================================================


@router.post(
    "/dose",
    response_model=DoseResponse,
    summary="Calculate a weight-based dose",
    description="Dose, volume to draw up and route for a catalog drug, with the max-dose ceiling applied.",
)
def dose(request: DoseRequest) -> DoseResponse:
    try:
        result = calculate_drug_dose(request.drug_id, request.weight_kg, request.variant)
    except UnknownDrugError as e:
        raise _unknown_drug(e) from e
    except InputValidationError as e:
        raise _unprocessable(e) from e

    return DoseResponse(
        drug_id=result.drug_id,
        drug_name=result.drug_name,
        variant=result.variant,
        dose=result.dose,
        unit=result.unit,
        volume_ml=result.volume_ml,
        route=result.route,
        clamped=result.clamped,
        floored=result.floored,
        concentration=result.concentration,
        max_dose=result.max_dose,
        reconstitution=list(result.reconstitution),
        monitoring=list(result.monitoring),
        contraindications=list(result.contraindications),
        reassessment_timer=result.reassessment_timer,
    )


@router.post(
    "/defibrillation/energy",
    response_model=DefibrillationEnergyResponse,
    summary="Calculate defibrillation energy",
)
def defibrillation_energy(request: DefibrillationEnergyRequest) -> DefibrillationEnergyResponse:
    try:
        result = calculate_defibrillation_energy(request.weight_kg, request.is_initial_shock)
    except InputValidationError as e:
        raise _unprocessable(e) from e
    return DefibrillationEnergyResponse(energy=result.energy, j_per_kg=result.j_per_kg, clamped=result.clamped)


# ==============================================================================
# Overrides
# ==============================================================================

ENCOUNTER_PREFIX = "encounter:"


def _missing(field: str, check: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"{field} is required to override {ENCOUNTER_PREFIX}{check}",
    )


def _recheck_encounter(check: str, request: OverrideRequest, db: Session) -> SafetyCheckResult:
    """Re-run an encounter check from the inputs in the override request."""
    has_patient = request.patient is not None or request.patient_id is not None

    if check == "fluid-bolus":
        if request.bolus_number is None:
            raise _missing("bolus_number", check)
        patient = _resolve_patient(request, db) if has_patient else None
        return check_fluid_bolus_count(request.bolus_number, patient)

    if check == "epinephrine-interval":
        if request.last_dose_at is None:
            raise _missing("last_dose_at", check)
        return check_epinephrine_interval(request.last_dose_at, request.now)

    if check == "defibrillation":
        if request.energy_joules is None:
            raise _missing("energy_joules", check)
        weight = request.weight_kg
        if weight is None and has_patient:
            weight = _resolve_patient(request, db).weight
        if weight is None:
            raise _missing("weight_kg", check)
        return check_defibrillation_energy(request.energy_joules, weight)

    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"Unknown encounter check: {check}",
    )


def _recompute_finding(request: OverrideRequest, db: Session) -> SafetyCheckResult:
    """Derive the finding being overridden on the server."""
    try:
        if request.drug_id.startswith(ENCOUNTER_PREFIX):
            return _recheck_encounter(request.drug_id.removeprefix(ENCOUNTER_PREFIX), request, db)

        get_rule(request.drug_id)
        return get_safety_evaluator().evaluate(request.drug_id, _resolve_patient(request, db))
    except UnknownDrugError as e:
        raise _unknown_drug(e) from e
    except InputValidationError as e:
        raise _unprocessable(e) from e


@router.post(
    "/overrides",
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a clinician override",
    description="Proceed past a warning or caution. Hard-blocks cannot be overridden.",
)
def record_override(request: OverrideRequest, db: DbSession) -> OverrideResponse:
    """Record an override in the audit log.

    The finding is recomputed from the patient or the encounter check
    inputs; the severity and message in the audit record are the server's.

    Raises:
        HTTPException: 409 for a hard-block, 422 for a missing justification,
            missing check inputs or a safe finding, 404 for an unknown drug
            or patient.
    """
    result = _recompute_finding(request, db)

    if result.severity == Severity.HARD_BLOCK:
        log_safety_block(request.drug_id, result.message, request.patient_id, request.user_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Hard-block findings cannot be overridden: {result.message}",
        )

    if result.severity == Severity.SAFE:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Safe findings do not need an override",
        )

    justification = request.justification.strip()
    if not justification:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Override requires a justification",
        )

    event = log_override(
        drug_id=request.drug_id,
        severity=result.severity.value,
        message=result.message,
        justification=justification,
        patient_id=request.patient_id,
        user_id=request.user_id,
    )
    return OverrideResponse(
        recorded=True,
        timestamp=event.timestamp,
        severity=result.severity.value,
        message=result.message,
    )
