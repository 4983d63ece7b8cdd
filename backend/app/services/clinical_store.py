"""Database-backed storage for patients and risk score history.

Implements the storage contract used by the safety engine's callers:
read one PatientState by patient id, append one risk record per vitals
submission, and read the records of a trailing time window in order.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import PatientNotFoundError
from app.models.clinical import Patient, RiskScoreHistory, VitalSignsRecord
from app.services.patient_state import PatientState, VitalSigns
from app.services.trend_analysis import DeteriorationPattern, analyze_trend
from app.services.vitals_risk import RiskScoreRecord

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ClinicalStore:
    """Patient and risk history persistence.

    Usage:
        store = ClinicalStore(session)
        patient = store.get_patient_state("P001")
        store.append_risk_record("P001", record)
    """

    def __init__(self, session: Session) -> None:
        """Initialize the store.

        Args:
            session: SQLAlchemy database session.
        """
        self._session = session

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def _get_patient_row(self, patient_id: str) -> Patient:
        stmt = select(Patient).where(Patient.patient_id == patient_id)
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise PatientNotFoundError(patient_id)
        return row

    def save_patient(self, patient_id: str, state: PatientState) -> Patient:
        """Create or replace the stored snapshot for a patient."""
        stmt = select(Patient).where(Patient.patient_id == patient_id)
        row = self._session.execute(stmt).scalar_one_or_none()

        if row is None:
            row = Patient(patient_id=patient_id)
            self._session.add(row)
            logger.info(f"Created patient {patient_id}")

        row.age_years = state.age
        row.weight_kg = state.weight
        row.allergies = sorted(state.allergies)
        row.current_medications = sorted(state.current_medications)
        row.conditions = sorted(state.conditions)
        self._session.flush()
        return row

    def get_patient_state(self, patient_id: str, vital_signs: VitalSigns | None = None) -> PatientState:
        """Load a patient's snapshot.

        Args:
            patient_id: External patient identifier.
            vital_signs: Current vitals to attach; defaults to the latest stored set.

        Raises:
            PatientNotFoundError: If the patient does not exist.
        """
        row = self._get_patient_row(patient_id)
        if vital_signs is None:
            vital_signs = self.get_latest_vitals(patient_id)

        return PatientState(
            age=row.age_years,
            weight=row.weight_kg,
            allergies=row.allergies or [],
            current_medications=row.current_medications or [],
            conditions=row.conditions or [],
            vital_signs=vital_signs,
        )

    # ------------------------------------------------------------------
    # Vital signs and risk history
    # ------------------------------------------------------------------

    def get_latest_vitals(self, patient_id: str) -> VitalSigns | None:
        stmt = (
            select(VitalSignsRecord)
            .where(VitalSignsRecord.patient_id == patient_id)
            .order_by(VitalSignsRecord.recorded_at.desc())
            .limit(1)
        )
        row = self._session.execute(stmt).scalars().first()
        return self._to_vitals(row) if row is not None else None

    def append_risk_record(
        self,
        patient_id: str,
        record: RiskScoreRecord,
        window_hours: float = 24,
    ) -> RiskScoreHistory:
        """Append one vitals row and one risk row for a submission.

        The stored deterioration pattern is the trend over the trailing
        window ending at this record.

        Raises:
            PatientNotFoundError: If the patient does not exist.
        """
        self._get_patient_row(patient_id)

        vitals = record.vitals or VitalSigns()
        vitals_row = VitalSignsRecord(
            patient_id=patient_id,
            recorded_at=record.timestamp,
            **vitals.to_dict(),
        )
        self._session.add(vitals_row)
        self._session.flush()

        window = self.get_risk_window(patient_id, window_hours, now=record.timestamp)
        trend = analyze_trend([*window, record])
        pattern = trend.pattern if trend is not None else DeteriorationPattern.STABLE

        risk_row = RiskScoreHistory(
            patient_id=patient_id,
            vital_signs_id=vitals_row.id,
            calculated_at=record.timestamp,
            risk_score=record.score,
            risk_level=record.level,
            risk_factors=list(record.factors),
            recommendations=list(record.recommendations),
            deterioration_pattern=pattern,
        )
        self._session.add(risk_row)
        self._session.flush()

        logger.info(
            f"Stored risk score {record.score} ({record.level.value}, {pattern.value}) for patient {patient_id}"
        )
        return risk_row

    def get_risk_window(
        self,
        patient_id: str,
        hours: float,
        now: datetime | None = None,
    ) -> list[RiskScoreRecord]:
        """Risk records from the trailing `hours`, oldest first."""
        current = now or datetime.now(UTC)
        cutoff = current - timedelta(hours=hours)

        stmt = (
            select(RiskScoreHistory, VitalSignsRecord)
            .join(VitalSignsRecord, RiskScoreHistory.vital_signs_id == VitalSignsRecord.id)
            .where(RiskScoreHistory.patient_id == patient_id)
            .where(RiskScoreHistory.calculated_at >= cutoff)
            .where(RiskScoreHistory.calculated_at <= current)
            .order_by(RiskScoreHistory.calculated_at.asc())
        )
        return [self._to_record(risk, vitals) for risk, vitals in self._session.execute(stmt).all()]

    def get_risk_history(self, patient_id: str, limit: int = 20) -> list[RiskScoreHistory]:
        """Most recent risk rows, newest first."""
        stmt = (
            select(RiskScoreHistory)
            .where(RiskScoreHistory.patient_id == patient_id)
            .order_by(RiskScoreHistory.calculated_at.desc())
            .limit(limit)
        )
        return list(self._session.execute(stmt).scalars().all())

    @staticmethod
    def _to_vitals(row: VitalSignsRecord) -> VitalSigns:
        return VitalSigns(
            heart_rate=row.heart_rate,
            respiratory_rate=row.respiratory_rate,
            systolic_bp=row.systolic_bp,
            diastolic_bp=row.diastolic_bp,
            oxygen_saturation=row.oxygen_saturation,
            temperature=row.temperature,
        )

    def _to_record(self, risk: RiskScoreHistory, vitals: VitalSignsRecord) -> RiskScoreRecord:
        return RiskScoreRecord(
            score=risk.risk_score,
            level=risk.risk_level,
            factors=tuple(risk.risk_factors or ()),
            recommendations=tuple(risk.recommendations or ()),
            timestamp=_aware(risk.calculated_at),
            vitals=self._to_vitals(vitals),
        )
