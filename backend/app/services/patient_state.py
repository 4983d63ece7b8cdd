"""Patient snapshot and safety-result types shared by the safety engine.

PatientState is the immutable input to every evaluation; SafetyCheckResult
is the structured answer. Results are only built through the factory
functions at the bottom of this module so that the severity/allowed/override
invariant holds everywhere:

- hard-block: allowed=False, no override
- warning / caution: allowed=True, override requiring justification
- safe: allowed=True, no override
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.core.errors import InputValidationError


class Severity(str, Enum):
    """Severity of a safety finding."""

    HARD_BLOCK = "hard-block"
    WARNING = "warning"
    CAUTION = "caution"
    SAFE = "safe"

    @property
    def rank(self) -> int:
        """Numeric ordering; higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.SAFE: 0,
    Severity.CAUTION: 1,
    Severity.WARNING: 2,
    Severity.HARD_BLOCK: 3,
}


@dataclass(frozen=True)
class VitalSigns:
    """A set of vital-sign observations. Every field is optional."""

    heart_rate: float | None = None
    respiratory_rate: float | None = None
    systolic_bp: float | None = None
    diastolic_bp: float | None = None
    oxygen_saturation: float | None = None
    temperature: float | None = None

    def __post_init__(self) -> None:
        spo2 = self.oxygen_saturation
        if spo2 is not None and not 0 <= spo2 <= 100:
            raise InputValidationError(f"Oxygen saturation must be between 0 and 100, got {spo2}")

    def to_dict(self) -> dict[str, float | None]:
        return {
            "heart_rate": self.heart_rate,
            "respiratory_rate": self.respiratory_rate,
            "systolic_bp": self.systolic_bp,
            "diastolic_bp": self.diastolic_bp,
            "oxygen_saturation": self.oxygen_saturation,
            "temperature": self.temperature,
        }


def _freeze(values: Iterable[str] | None) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        raise InputValidationError("Expected a collection of strings, got a single string")
    return frozenset(v.strip() for v in values if v and v.strip())


@dataclass(frozen=True)
class PatientState:
    """Clinical context for one evaluation.

    Age is in years (fractional for infants), weight in kilograms.
    """

    age: float
    weight: float
    allergies: frozenset[str] = field(default_factory=frozenset)
    current_medications: frozenset[str] = field(default_factory=frozenset)
    conditions: frozenset[str] = field(default_factory=frozenset)
    vital_signs: VitalSigns | None = None

    def __post_init__(self) -> None:
        if self.age is None or self.age < 0:
            raise InputValidationError(f"Age must be >= 0 years, got {self.age}")
        if self.weight is None or self.weight <= 0:
            raise InputValidationError(f"Weight must be > 0 kg, got {self.weight}")

        # Accept lists/sets from callers but store immutable sets
        object.__setattr__(self, "allergies", _freeze(self.allergies))
        object.__setattr__(self, "current_medications", _freeze(self.current_medications))
        object.__setattr__(self, "conditions", _freeze(self.conditions))


@dataclass(frozen=True)
class OverridePolicy:
    """How a clinician may proceed past a non-blocking finding."""

    allowed: bool
    requires_justification: bool
    confirmation_text: str = ""


@dataclass(frozen=True)
class SafetyCheckResult:
    """Outcome of one safety evaluation."""

    allowed: bool
    severity: Severity
    message: str
    rationale: str = ""
    override: OverridePolicy | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.HARD_BLOCK

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "allowed": self.allowed,
            "severity": self.severity.value,
            "message": self.message,
            "rationale": self.rationale,
        }
        if self.override is not None:
            data["override"] = {
                "allowed": self.override.allowed,
                "requires_justification": self.override.requires_justification,
                "confirmation_text": self.override.confirmation_text,
            }
        return data


def hard_block(message: str, rationale: str = "") -> SafetyCheckResult:
    """Finding that must prevent administration."""
    return SafetyCheckResult(
        allowed=False,
        severity=Severity.HARD_BLOCK,
        message=message,
        rationale=rationale,
    )


def warning(message: str, rationale: str = "", confirmation_text: str = "") -> SafetyCheckResult:
    """Non-blocking finding; clinician may override with a logged reason."""
    return SafetyCheckResult(
        allowed=True,
        severity=Severity.WARNING,
        message=message,
        rationale=rationale,
        override=OverridePolicy(
            allowed=True,
            requires_justification=True,
            confirmation_text=confirmation_text,
        ),
    )


def caution(message: str, rationale: str = "", confirmation_text: str = "") -> SafetyCheckResult:
    """Lowest-priority non-safe finding; overridable like a warning."""
    return SafetyCheckResult(
        allowed=True,
        severity=Severity.CAUTION,
        message=message,
        rationale=rationale,
        override=OverridePolicy(
            allowed=True,
            requires_justification=True,
            confirmation_text=confirmation_text,
        ),
    )


def safe(message: str, rationale: str = "") -> SafetyCheckResult:
    return SafetyCheckResult(
        allowed=True,
        severity=Severity.SAFE,
        message=message,
        rationale=rationale,
    )
