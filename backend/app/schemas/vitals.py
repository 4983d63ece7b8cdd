"""Request/response schemas for patients, vitals and risk history."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.safety import PatientStateInput, VitalSignsInput


class PatientCreate(PatientStateInput):
    """Register a patient snapshot."""

    patient_id: str = Field(..., min_length=1, max_length=255)


class PatientResponse(BaseModel):
    patient_id: str
    age: float
    weight: float
    age_group: str
    allergies: list[str]
    current_medications: list[str]
    conditions: list[str]


class VitalsSubmission(VitalSignsInput):
    """A vitals submission; age defaults to the stored patient age."""

    age: float | None = Field(None, ge=0, description="Age override in years")
    recorded_at: datetime | None = None

    @field_validator("recorded_at")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class RiskScoreResponse(BaseModel):
    patient_id: str
    score: int = Field(..., ge=0, le=100)
    level: str
    factors: list[str]
    recommendations: list[str]
    timestamp: datetime
    age_group: str


class RiskHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    risk_score: int
    risk_level: str
    risk_factors: list[str]
    recommendations: list[str]
    deterioration_pattern: str
    calculated_at: datetime


class TrendResponse(BaseModel):
    patient_id: str
    deltas: dict[str, float]
    pattern: str
    record_count: int
    window_start: datetime
    window_end: datetime
    timespan: str
