"""Pydantic schemas for the Pediatric Safety Engine."""

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
    OverrideInfo,
    OverrideRequest,
    OverrideResponse,
    PatientStateInput,
    SafetyCheckResponse,
    VitalSignsInput,
)
from app.schemas.vitals import (
    PatientCreate,
    PatientResponse,
    RiskHistoryItem,
    RiskScoreResponse,
    TrendResponse,
    VitalsSubmission,
)

__all__ = [
    # Safety
    "DefibrillationCheckRequest",
    "DefibrillationEnergyRequest",
    "DefibrillationEnergyResponse",
    "DoseRequest",
    "DoseResponse",
    "DrugEvaluationRequest",
    "DrugEvaluationResponse",
    "DrugSummary",
    "EpinephrineIntervalRequest",
    "FluidBolusRequest",
    "OverrideInfo",
    "OverrideRequest",
    "OverrideResponse",
    "PatientStateInput",
    "SafetyCheckResponse",
    "VitalSignsInput",
    # Patients and vitals
    "PatientCreate",
    "PatientResponse",
    "RiskHistoryItem",
    "RiskScoreResponse",
    "TrendResponse",
    "VitalsSubmission",
]
