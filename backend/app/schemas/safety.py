"""Request/response schemas for the safety API."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.services.patient_state import PatientState, SafetyCheckResult, VitalSigns


# ==============================================================================
# Shared Components
# ==============================================================================


class VitalSignsInput(BaseModel):
    """Vital signs; every field is optional."""

    heart_rate: float | None = Field(None, ge=0, description="Heart rate (bpm)")
    respiratory_rate: float | None = Field(None, ge=0, description="Respiratory rate (breaths/min)")
    systolic_bp: float | None = Field(None, ge=0, description="Systolic blood pressure (mmHg)")
    diastolic_bp: float | None = Field(None, ge=0, description="Diastolic blood pressure (mmHg)")
    oxygen_saturation: float | None = Field(None, ge=0, le=100, description="SpO2 (%)")
    temperature: float | None = Field(None, description="Temperature (°C)")

    def to_domain(self) -> VitalSigns:
        return VitalSigns(**self.model_dump(include=set(VitalSignsInput.model_fields)))


class PatientStateInput(BaseModel):
    """Patient snapshot supplied inline with a request."""

    age: float = Field(..., ge=0, description="Age in years (fractional for infants)")
    weight: float = Field(..., gt=0, description="Weight in kg")
    allergies: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)
    vital_signs: VitalSignsInput | None = None

    def to_domain(self) -> PatientState:
        return PatientState(
            age=self.age,
            weight=self.weight,
            allergies=self.allergies,
            current_medications=self.current_medications,
            conditions=self.conditions,
            vital_signs=self.vital_signs.to_domain() if self.vital_signs else None,
        )


class OverrideInfo(BaseModel):
    allowed: bool
    requires_justification: bool
    confirmation_text: str = ""


class SafetyCheckResponse(BaseModel):
    """Structured answer to a safety check."""

    allowed: bool
    severity: str = Field(..., description="hard-block, warning, caution or safe")
    message: str
    rationale: str = ""
    override: OverrideInfo | None = None

    @classmethod
    def from_result(cls, result: SafetyCheckResult) -> "SafetyCheckResponse":
        return cls.model_validate(result.to_dict())


# ==============================================================================
# Drug Evaluation
# ==============================================================================


class DrugEvaluationRequest(BaseModel):
    """Evaluate a drug for a stored patient or an inline patient state."""

    drug_id: str = Field(..., description="Catalog protocol id, e.g. PR-DC-AMIO-CA-v1.0")
    patient_id: str | None = Field(None, description="Stored patient to evaluate")
    patient: PatientStateInput | None = Field(None, description="Inline patient state")


class DrugEvaluationResponse(BaseModel):
    drug_id: str
    result: SafetyCheckResponse
    findings: list[SafetyCheckResponse] = Field(
        default_factory=list,
        description="Every finding from the safety chain, in check order",
    )


class DrugSummary(BaseModel):
    drug_id: str
    drug_name: str
    indication: str


# ==============================================================================
# Encounter Checks
# ==============================================================================


class FluidBolusRequest(BaseModel):
    bolus_number: int = Field(..., ge=0, description="Boluses given including the proposed one")
    patient: PatientStateInput | None = None


class EpinephrineIntervalRequest(BaseModel):
    last_dose_at: datetime = Field(..., description="Time of the last epinephrine dose")
    now: datetime | None = Field(None, description="Reference time; defaults to server time")


class DefibrillationCheckRequest(BaseModel):
    energy_joules: float = Field(..., gt=0)
    weight_kg: float = Field(..., gt=0)


# ==============================================================================
# Calculators
# ==============================================================================


class DoseRequest(BaseModel):
    drug_id: str
    weight_kg: float = Field(..., gt=0)
    variant: str | None = Field(None, description="Dosing variant, e.g. 'second' or 'rectal'")


class DoseResponse(BaseModel):
    """Dose, volume to draw up and the bedside guidance that goes with it."""

    drug_id: str
    drug_name: str
    variant: str
    dose: float
    unit: str
    volume_ml: float
    route: str
    clamped: bool
    floored: bool
    concentration: str = Field("", description="Concentration to draw from, e.g. 0.1 mg/mL (1:10,000)")
    max_dose: str = ""
    reconstitution: list[str] = Field(default_factory=list)
    monitoring: list[str] = Field(default_factory=list)
    contraindications: list[str] = Field(default_factory=list)
    reassessment_timer: str = ""


class DefibrillationEnergyRequest(BaseModel):
    weight_kg: float = Field(..., gt=0)
    is_initial_shock: bool = True


class DefibrillationEnergyResponse(BaseModel):
    energy: float
    j_per_kg: float
    clamped: bool


# ==============================================================================
# Overrides
# ==============================================================================


class OverrideRequest(BaseModel):
    """A clinician proceeding past a warning or caution.

    The finding is recomputed on the server from the patient (inline or
    stored) for a drug, or from the check inputs for an encounter check
    (encounter:fluid-bolus, encounter:epinephrine-interval,
    encounter:defibrillation).
    """

    drug_id: str = Field(..., description="Protocol id, or encounter:<check> for encounter checks")
    justification: str = Field(..., min_length=1)
    patient_id: str | None = Field(None, description="Stored patient the override applies to")
    patient: PatientStateInput | None = Field(None, description="Inline patient state")
    user_id: str | None = None

    bolus_number: int | None = Field(None, ge=0, description="encounter:fluid-bolus")
    last_dose_at: datetime | None = Field(None, description="encounter:epinephrine-interval")
    now: datetime | None = Field(None, description="encounter:epinephrine-interval reference time")
    energy_joules: float | None = Field(None, gt=0, description="encounter:defibrillation")
    weight_kg: float | None = Field(None, gt=0, description="encounter:defibrillation; defaults to the patient weight")


class OverrideResponse(BaseModel):
    recorded: bool
    timestamp: datetime
    severity: str = Field(..., description="Severity of the overridden finding, as recomputed")
    message: str

