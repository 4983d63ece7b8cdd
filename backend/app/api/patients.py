"""Patient API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.audit import AuditAction, log_data_access
from app.core.database import get_db
from app.core.errors import InputValidationError, PatientNotFoundError
from app.schemas.vitals import PatientCreate, PatientResponse
from app.services.clinical_store import ClinicalStore
from app.services.patient_state import PatientState
from app.services.reference_ranges import PEDIATRIC_MAX_AGE_YEARS, age_group

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])

DbSession = Annotated[Session, Depends(get_db)]


def _to_response(patient_id: str, state: PatientState) -> PatientResponse:
    return PatientResponse(
        patient_id=patient_id,
        age=state.age,
        weight=state.weight,
        age_group=age_group(state.age),
        allergies=sorted(state.allergies),
        current_medications=sorted(state.current_medications),
        conditions=sorted(state.conditions),
    )


@router.post(
    "",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient",
    description="Create or replace the stored snapshot used for safety evaluations.",
)
def create_patient(request: PatientCreate, db: DbSession) -> PatientResponse:
    """Store a patient snapshot.

    Raises:
        HTTPException: 422 if the age is outside the pediatric range or the
            snapshot is invalid.
    """
    if request.age >= PEDIATRIC_MAX_AGE_YEARS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Age must be below {PEDIATRIC_MAX_AGE_YEARS:g} years",
        )

    try:
        state = request.to_domain()
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    ClinicalStore(db).save_patient(request.patient_id, state)
    log_data_access("patient", patient_id=request.patient_id, action=AuditAction.CREATE)

    return _to_response(request.patient_id, state)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    summary="Get a patient",
)
def get_patient(patient_id: str, db: DbSession) -> PatientResponse:
    """Get a stored patient snapshot.

    Raises:
        HTTPException: 404 if the patient does not exist.
    """
    try:
        state = ClinicalStore(db).get_patient_state(patient_id)
    except PatientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    log_data_access("patient", patient_id=patient_id)
    return _to_response(patient_id, state)
