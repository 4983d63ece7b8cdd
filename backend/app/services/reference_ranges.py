"""Pediatric Vital-Sign Reference Ranges.

Age-banded normal bounds for heart rate, respiratory rate, blood pressure,
oxygen saturation and temperature. One band is selected per evaluation by
age_min <= age < age_max. There is no default band: a lookup that falls
outside the table is a configuration error.
"""

import logging
from dataclasses import dataclass

from app.core.errors import ConfigurationError, ReferenceRangeNotFoundError

logger = logging.getLogger(__name__)

# One month. Shared by the drug catalog's neonatal cautions and age grouping.
NEONATE_MAX_AGE_YEARS = 1 / 12

# Upper bound of the pediatric table; older patients need adult protocols.
PEDIATRIC_MAX_AGE_YEARS = 18.0


@dataclass(frozen=True)
class ReferenceRange:
    """Normal vital-sign bounds for one age band (ages in years)."""

    age_min: float
    age_max: float
    label: str
    weight_min: float
    weight_max: float
    heart_rate_min: float
    heart_rate_max: float
    respiratory_rate_min: float
    respiratory_rate_max: float
    systolic_bp_min: float
    systolic_bp_max: float
    diastolic_bp_min: float
    diastolic_bp_max: float
    oxygen_saturation_min: float
    temperature_min: float
    temperature_max: float

    def covers(self, age: float) -> bool:
        return self.age_min <= age < self.age_max


# ============================================================================
# Reference Range Table
# ============================================================================

REFERENCE_RANGES: tuple[ReferenceRange, ...] = (
    ReferenceRange(
        age_min=0,
        age_max=1,
        label="infant",
        weight_min=3,
        weight_max=10,
        heart_rate_min=100,
        heart_rate_max=160,
        respiratory_rate_min=30,
        respiratory_rate_max=60,
        systolic_bp_min=50,
        systolic_bp_max=90,
        diastolic_bp_min=30,
        diastolic_bp_max=60,
        oxygen_saturation_min=95,
        temperature_min=36.5,
        temperature_max=37.5,
    ),
    ReferenceRange(
        age_min=1,
        age_max=3,
        label="toddler",
        weight_min=10,
        weight_max=15,
        heart_rate_min=90,
        heart_rate_max=150,
        respiratory_rate_min=24,
        respiratory_rate_max=40,
        systolic_bp_min=80,
        systolic_bp_max=110,
        diastolic_bp_min=50,
        diastolic_bp_max=70,
        oxygen_saturation_min=95,
        temperature_min=36.5,
        temperature_max=37.5,
    ),
    ReferenceRange(
        age_min=3,
        age_max=6,
        label="preschool",
        weight_min=15,
        weight_max=22,
        heart_rate_min=80,
        heart_rate_max=120,
        respiratory_rate_min=20,
        respiratory_rate_max=30,
        systolic_bp_min=95,
        systolic_bp_max=125,
        diastolic_bp_min=60,
        diastolic_bp_max=80,
        oxygen_saturation_min=95,
        temperature_min=36.5,
        temperature_max=37.5,
    ),
    ReferenceRange(
        age_min=6,
        age_max=12,
        label="school age",
        weight_min=22,
        weight_max=40,
        heart_rate_min=70,
        heart_rate_max=110,
        respiratory_rate_min=18,
        respiratory_rate_max=25,
        systolic_bp_min=105,
        systolic_bp_max=135,
        diastolic_bp_min=70,
        diastolic_bp_max=85,
        oxygen_saturation_min=95,
        temperature_min=36.5,
        temperature_max=37.5,
    ),
    ReferenceRange(
        age_min=12,
        age_max=PEDIATRIC_MAX_AGE_YEARS,
        label="adolescent",
        weight_min=40,
        weight_max=70,
        heart_rate_min=60,
        heart_rate_max=100,
        respiratory_rate_min=12,
        respiratory_rate_max=20,
        systolic_bp_min=110,
        systolic_bp_max=140,
        diastolic_bp_min=70,
        diastolic_bp_max=90,
        oxygen_saturation_min=95,
        temperature_min=36.5,
        temperature_max=37.5,
    ),
)


def is_neonate(age: float) -> bool:
    """Whether an age in years falls in the neonatal period."""
    return age < NEONATE_MAX_AGE_YEARS


def age_group(age: float) -> str:
    """Human-readable age group for an age in years."""
    if is_neonate(age):
        return "neonate"
    return get_reference_range(age).label


def get_reference_range(
    age: float,
    table: tuple[ReferenceRange, ...] = REFERENCE_RANGES,
) -> ReferenceRange:
    """Select the single band where age_min <= age < age_max.

    Raises:
        ReferenceRangeNotFoundError: If no band covers the age.
    """
    for band in table:
        if band.covers(age):
            return band

    logger.error(f"No reference range for age {age} years")
    raise ReferenceRangeNotFoundError(age)


def validate_reference_ranges(
    table: tuple[ReferenceRange, ...] = REFERENCE_RANGES,
) -> None:
    """Check the table covers 0 to PEDIATRIC_MAX_AGE_YEARS without gaps or overlaps.

    Raises:
        ConfigurationError: If the table is empty, has a gap or overlap,
            or a band has inverted bounds.
    """
    if not table:
        raise ConfigurationError("Reference range table is empty")

    bands = sorted(table, key=lambda b: b.age_min)
    expected_start = 0.0

    for band in bands:
        if band.age_min != expected_start:
            raise ConfigurationError(
                f"Reference range gap or overlap at {expected_start} years "
                f"(next band starts at {band.age_min})"
            )
        if band.age_max <= band.age_min:
            raise ConfigurationError(f"Reference range '{band.label}' has an empty age span")
        for name in ("heart_rate", "respiratory_rate", "systolic_bp", "diastolic_bp", "temperature"):
            if getattr(band, f"{name}_min") > getattr(band, f"{name}_max"):
                raise ConfigurationError(f"Reference range '{band.label}' has inverted {name} bounds")
        expected_start = band.age_max

    if expected_start < PEDIATRIC_MAX_AGE_YEARS:
        raise ConfigurationError(
            f"Reference ranges end at {expected_start} years, expected {PEDIATRIC_MAX_AGE_YEARS}"
        )

    logger.info(f"Reference range table validated: {len(bands)} age bands")
