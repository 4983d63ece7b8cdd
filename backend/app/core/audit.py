"""Audit trail for patient data access and safety overrides.

Every clinician override of a warning or caution is recorded with its
justification; attempts to override a hard-block are recorded as failed
events. Records go to the dedicated "audit" logger so deployments can
route them to an append-only store.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    READ = "read"
    CREATE = "create"
    SAFETY_OVERRIDE = "safety_override"
    SAFETY_BLOCK = "safety_block"


class AuditEvent(BaseModel):
    """One audit record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="patient, vital_signs, risk_score or drug")
    resource_id: str | None = Field(None, description="Protocol id or record id")
    patient_id: str | None = Field(None, description="Patient the action concerns")
    user_id: str | None = Field(None, description="Clinician who performed the action")
    details: dict | None = Field(None, description="Finding and justification for overrides")
    success: bool = Field(True, description="False for rejected actions")

    def summary(self) -> str:
        target = f"{self.resource_type}/{self.resource_id}" if self.resource_id else self.resource_type
        parts = [f"AUDIT: {self.action.value} {target}"]
        if self.patient_id:
            parts.append(f"patient={self.patient_id}")
        if self.user_id:
            parts.append(f"user={self.user_id}")
        parts.append(f"success={self.success}")
        return " ".join(parts)


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    patient_id: str | None = None,
    user_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Record an audit event and return it.

    Failed actions are logged at WARNING, everything else at INFO.
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        patient_id=patient_id,
        user_id=user_id,
        details=details,
        success=success,
    )
    audit_logger.log(
        logging.INFO if success else logging.WARNING,
        event.summary(),
        extra={"audit_event": event.model_dump(mode="json")},
    )
    return event


def log_data_access(
    resource_type: str,
    patient_id: str | None = None,
    resource_id: str | None = None,
    action: AuditAction = AuditAction.READ,
) -> AuditEvent:
    """Record a read or write of patient data."""
    return log_audit(action, resource_type, resource_id=resource_id, patient_id=patient_id)


def log_override(
    drug_id: str,
    severity: str,
    message: str,
    justification: str,
    patient_id: str | None = None,
    user_id: str | None = None,
) -> AuditEvent:
    """Record a clinician proceeding past a warning or caution.

    Args:
        drug_id: Protocol id, or encounter:<check> for encounter checks.
        severity: Severity of the overridden finding.
        message: Message of the overridden finding.
        justification: The clinician's stated reason.
        patient_id: Patient the override applies to.
        user_id: Clinician performing the override.
    """
    return log_audit(
        AuditAction.SAFETY_OVERRIDE,
        "drug",
        resource_id=drug_id,
        patient_id=patient_id,
        user_id=user_id,
        details={"severity": severity, "message": message, "justification": justification},
    )


def log_safety_block(
    drug_id: str,
    message: str,
    patient_id: str | None = None,
    user_id: str | None = None,
) -> AuditEvent:
    """Record a rejected attempt to override a hard-block."""
    return log_audit(
        AuditAction.SAFETY_BLOCK,
        "drug",
        resource_id=drug_id,
        patient_id=patient_id,
        user_id=user_id,
        details={"message": message},
        success=False,
    )
