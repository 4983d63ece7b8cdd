"""SQLAlchemy models for the Pediatric Safety Engine."""

from app.models.clinical import Patient, RiskScoreHistory, VitalSignsRecord

__all__ = [
    "Patient",
    "RiskScoreHistory",
    "VitalSignsRecord",
]
