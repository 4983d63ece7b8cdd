"""Exception types raised by the safety engine.

Clinical findings are never raised: an unsafe request returns a
SafetyCheckResult with allowed=False. Exceptions are reserved for an
incomplete catalog/table (configuration errors) and for malformed input.
"""


class SafetyEngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(SafetyEngineError):
    """A static table (drug catalog, reference ranges) is incomplete."""


class UnknownDrugError(ConfigurationError, KeyError):
    """The requested drug protocol id is not in the catalog."""

    def __init__(self, drug_id: str) -> None:
        super().__init__(drug_id)
        self.drug_id = drug_id

    def __str__(self) -> str:
        return f"Unknown drug protocol: {self.drug_id}"


class ReferenceRangeNotFoundError(ConfigurationError, LookupError):
    """No reference-range band covers the given age."""

    def __init__(self, age: float) -> None:
        super().__init__(age)
        self.age = age

    def __str__(self) -> str:
        return f"No reference range covers age {self.age} years"


class InputValidationError(SafetyEngineError, ValueError):
    """An input value is outside what the engine can evaluate."""


class PatientNotFoundError(SafetyEngineError, LookupError):
    """The storage layer has no patient with the given id."""

    def __init__(self, patient_id: str) -> None:
        super().__init__(patient_id)
        self.patient_id = patient_id

    def __str__(self) -> str:
        return f"Patient not found: {self.patient_id}"
