"""Core application configuration and utilities."""

from app.core.audit import AuditAction, AuditEvent, log_audit, log_data_access, log_override
from app.core.config import settings
from app.core.database import Base, get_db
from app.core.errors import (
    ConfigurationError,
    InputValidationError,
    PatientNotFoundError,
    ReferenceRangeNotFoundError,
    SafetyEngineError,
    UnknownDrugError,
)

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    "get_db",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_data_access",
    "log_override",
    # Errors
    "SafetyEngineError",
    "ConfigurationError",
    "UnknownDrugError",
    "ReferenceRangeNotFoundError",
    "InputValidationError",
    "PatientNotFoundError",
]
