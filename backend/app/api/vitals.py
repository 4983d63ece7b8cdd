"""Vital signs, risk history and trend endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.audit import AuditAction, log_data_access
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import InputValidationError, PatientNotFoundError, ReferenceRangeNotFoundError
from app.schemas.vitals import RiskHistoryItem, RiskScoreResponse, TrendResponse, VitalsSubmission
from app.services.clinical_store import ClinicalStore
from app.services.reference_ranges import get_reference_range
from app.services.trend_analysis import analyze_trend
from app.services.vitals_risk import build_risk_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Vitals"])

DbSession = Annotated[Session, Depends(get_db)]


def _not_found(e: PatientNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{patient_id}/vitals",
    response_model=RiskScoreResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit vital signs",
    description="Score a set of vitals against the patient's age band and append it to the risk history.",
)
def submit_vitals(patient_id: str, submission: VitalsSubmission, db: DbSession) -> RiskScoreResponse:
    """Score and persist one vitals submission.

    Raises:
        HTTPException: 404 if the patient does not exist, 422 for invalid
            vitals, 500 if no reference range covers the age.
    """
    store = ClinicalStore(db)

    try:
        vitals = submission.to_domain()
        patient = store.get_patient_state(patient_id, vital_signs=vitals)
    except PatientNotFoundError as e:
        raise _not_found(e) from e
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    age = submission.age if submission.age is not None else patient.age

    try:
        reference_range = get_reference_range(age)
    except ReferenceRangeNotFoundError as e:
        logger.error(f"Cannot score vitals for patient {patient_id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    record = build_risk_record(vitals, reference_range, submission.recorded_at)
    store.append_risk_record(patient_id, record, window_hours=settings.trend_window_hours)
    log_data_access("vital_signs", patient_id=patient_id, action=AuditAction.CREATE)

    return RiskScoreResponse(
        patient_id=patient_id,
        score=record.score,
        level=record.level.value,
        factors=list(record.factors),
        recommendations=list(record.recommendations),
        timestamp=record.timestamp,
        age_group=reference_range.label,
    )


@router.get(
    "/{patient_id}/risk-history",
    response_model=list[RiskHistoryItem],
    summary="Get risk score history",
)
def get_risk_history(
    patient_id: str,
    db: DbSession,
    limit: int = Query(default=settings.risk_history_limit, ge=1, le=500),
) -> list[RiskHistoryItem]:
    """Most recent risk scores, newest first."""
    store = ClinicalStore(db)
    try:
        store.get_patient_state(patient_id)
    except PatientNotFoundError as e:
        raise _not_found(e) from e

    rows = store.get_risk_history(patient_id, limit=limit)
    log_data_access("risk_score", patient_id=patient_id)

    return [
        RiskHistoryItem(
            risk_score=row.risk_score,
            risk_level=row.risk_level.value,
            risk_factors=row.risk_factors or [],
            recommendations=row.recommendations or [],
            deterioration_pattern=row.deterioration_pattern.value,
            calculated_at=row.calculated_at,
        )
        for row in rows
    ]


@router.get(
    "/{patient_id}/trend",
    response_model=TrendResponse,
    summary="Get deterioration trend",
    description="Compare the earliest and latest risk records in the trailing window.",
)
def get_trend(
    patient_id: str,
    db: DbSession,
    hours: float = Query(default=settings.trend_window_hours, gt=0, le=24 * 30),
) -> TrendResponse:
    """Trend over the trailing window.

    Raises:
        HTTPException: 404 if the patient does not exist or has no records
            in the window.
    """
    store = ClinicalStore(db)
    try:
        store.get_patient_state(patient_id)
    except PatientNotFoundError as e:
        raise _not_found(e) from e

    trend = analyze_trend(store.get_risk_window(patient_id, hours))
    if trend is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No risk records for patient {patient_id} in the last {hours:g} hours",
        )

    return TrendResponse(
        patient_id=patient_id,
        deltas=trend.deltas,
        pattern=trend.pattern.value,
        record_count=trend.record_count,
        window_start=trend.window_start,
        window_end=trend.window_end,
        timespan=f"{hours:g} hours",
    )
