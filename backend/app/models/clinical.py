"""SQLAlchemy models for patients, vital signs and risk score history.

Vital-sign and risk rows are append-only: one of each per vitals
submission, never updated afterwards.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.services.trend_analysis import DeteriorationPattern
from app.services.vitals_risk import RiskLevel

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Patient(Base):
    """Clinical snapshot of a patient used for safety evaluations."""

    __tablename__ = "patients"

    patient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    age_years: Mapped[float] = mapped_column(Float, nullable=False)
    weight_kg: Mapped[float] = mapped_column(Float, nullable=False)
    allergies: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    current_medications: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    conditions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Patient(patient_id={self.patient_id}, age={self.age_years}, weight={self.weight_kg})>"


class VitalSignsRecord(Base):
    """One set of vital signs as submitted."""

    __tablename__ = "vital_signs_history"

    patient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    heart_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    respiratory_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    systolic_bp: Mapped[float | None] = mapped_column(Float, nullable=True)
    diastolic_bp: Mapped[float | None] = mapped_column(Float, nullable=True)
    oxygen_saturation: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)

    risk_score = relationship(
        "RiskScoreHistory",
        back_populates="vital_signs",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<VitalSignsRecord(patient_id={self.patient_id}, recorded_at={self.recorded_at})>"


class RiskScoreHistory(Base):
    """Risk score computed from one VitalSignsRecord."""

    __tablename__ = "risk_score_history"

    patient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    vital_signs_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("vital_signs_history.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_level: Mapped[RiskLevel] = mapped_column(
        Enum(RiskLevel, name="risk_level", create_constraint=True),
        nullable=False,
    )
    risk_factors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    recommendations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    deterioration_pattern: Mapped[DeteriorationPattern] = mapped_column(
        Enum(DeteriorationPattern, name="deterioration_pattern", create_constraint=True),
        nullable=False,
        default=DeteriorationPattern.STABLE,
    )

    vital_signs = relationship(
        "VitalSignsRecord",
        back_populates="risk_score",
    )

    def __repr__(self) -> str:
        return f"<RiskScoreHistory(patient_id={self.patient_id}, score={self.risk_score}, level={self.risk_level})>"
