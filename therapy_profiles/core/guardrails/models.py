"""Profile guardrail Pydantic models.

Pure data models for profile validation. No storage or pump
dependencies.
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from therapy_profiles.core.exceptions import ProfileError
from therapy_profiles.core.guardrails.constants import (
    CARB_RATIO_MAX_GRAMS_PER_UNIT,
    CARB_RATIO_MIN_GRAMS_PER_UNIT,
    CORRECTION_RANGE_MAX_MGDL,
    CORRECTION_RANGE_MIN_MGDL,
    INSULIN_SENSITIVITY_MAX_MGDL_PER_UNIT,
    INSULIN_SENSITIVITY_MIN_MGDL_PER_UNIT,
)
from therapy_profiles.core.guardrails.enums import (
    ProfileCheckType,
    ProfileValidationError,
)


class GuardrailBounds(BaseModel):
    """Inclusive absolute bounds for one kind of setting."""

    model_config = ConfigDict(frozen=True)

    minimum: float
    maximum: float

    @model_validator(mode="after")
    def validate_ordering(self) -> Self:
        if self.minimum > self.maximum:
            msg = "minimum must not exceed maximum"
            raise ValueError(msg)
        return self

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


class Guardrails(BaseModel):
    """Absolute bounds a profile's schedules must satisfy.

    Glucose values are in mg/dL, insulin sensitivity in mg/dL per
    unit, carb ratio in grams per unit.
    """

    model_config = ConfigDict(frozen=True)

    correction_range: GuardrailBounds = GuardrailBounds(
        minimum=CORRECTION_RANGE_MIN_MGDL,
        maximum=CORRECTION_RANGE_MAX_MGDL,
    )
    insulin_sensitivity: GuardrailBounds = GuardrailBounds(
        minimum=INSULIN_SENSITIVITY_MIN_MGDL_PER_UNIT,
        maximum=INSULIN_SENSITIVITY_MAX_MGDL_PER_UNIT,
    )
    carb_ratio: GuardrailBounds = GuardrailBounds(
        minimum=CARB_RATIO_MIN_GRAMS_PER_UNIT,
        maximum=CARB_RATIO_MAX_GRAMS_PER_UNIT,
    )


DEFAULT_GUARDRAILS = Guardrails()


class ProfileValidationFailedError(ProfileError):
    """A profile failed validation and cannot be activated."""

    def __init__(self, error: ProfileValidationError):
        super().__init__(error.description)
        self.error = error


class ProfileCheckResult(BaseModel):
    """Result of a single profile check."""

    model_config = ConfigDict(frozen=True)

    check_type: ProfileCheckType
    passed: bool
    message: str = Field(min_length=1)
    details: dict[str, Any] | None = None


class ProfileValidationResult(BaseModel):
    """Outcome of validating a profile.

    Checks short-circuit, so ``check_results`` ends with the first
    failing check when the profile is invalid.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    error: ProfileValidationError | None = None
    message: str = ""
    check_results: list[ProfileCheckResult] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        """Enforce that valid/invalid states are internally consistent."""
        if self.valid and self.error is not None:
            msg = "error must be None when the profile is valid"
            raise ValueError(msg)
        if not self.valid and self.error is None:
            msg = "error must be set when the profile is invalid"
            raise ValueError(msg)
        return self

    def raise_for_error(self) -> None:
        """Raise ProfileValidationFailedError if the profile is invalid."""
        if self.error is not None:
            raise ProfileValidationFailedError(self.error)
