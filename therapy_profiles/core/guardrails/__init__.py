"""Profile guardrail validation.

A stored therapy profile must pass the ProfileValidator before any of
its schedules are sent to the pump. Checks short-circuit at the first
failure, in this order:

1. Pump capabilities available
2. Correction range (absolute guardrail)
3. Insulin sensitivity (absolute guardrail)
4. Carb ratio (absolute guardrail)
5. Maximum basal rate configured
6. Basal rates (maximum basal rate + pump increments)

IMPORTANT: This validator is a software safety layer -- it does NOT
replace clinical judgment. The guardrails in ``constants`` are the
absolute limits of the settings editors, not recommendations.
"""

from therapy_profiles.core.guardrails.enums import (
    ProfileCheckType,
    ProfileValidationError,
)
from therapy_profiles.core.guardrails.models import (
    DEFAULT_GUARDRAILS,
    GuardrailBounds,
    Guardrails,
    ProfileCheckResult,
    ProfileValidationFailedError,
    ProfileValidationResult,
)
from therapy_profiles.core.guardrails.validator import (
    ProfileValidator,
    validate_profile,
)

__all__ = [
    "DEFAULT_GUARDRAILS",
    "GuardrailBounds",
    "Guardrails",
    "ProfileCheckResult",
    "ProfileCheckType",
    "ProfileValidationError",
    "ProfileValidationFailedError",
    "ProfileValidationResult",
    "ProfileValidator",
    "validate_profile",
]
