"""Profile guardrail validator.

Decides whether a stored profile may be activated on the connected
pump. The validator is pure: pump capabilities and the maximum basal
rate are passed in by the caller, nothing is read from storage or
from the pump, and the profile is never modified.
"""

from collections.abc import Callable, Iterable

from therapy_profiles.core.guardrails.constants import BASAL_RATE_PRECISION_DECIMALS
from therapy_profiles.core.guardrails.enums import (
    ProfileCheckType,
    ProfileValidationError,
)
from therapy_profiles.core.guardrails.models import (
    DEFAULT_GUARDRAILS,
    Guardrails,
    ProfileCheckResult,
    ProfileValidationResult,
)
from therapy_profiles.schemas.profile import Profile
from therapy_profiles.schemas.schedule import GlucoseUnit

_ERRORS: dict[ProfileCheckType, ProfileValidationError] = {
    ProfileCheckType.device_capabilities: (
        ProfileValidationError.device_capabilities_unavailable
    ),
    ProfileCheckType.correction_range: ProfileValidationError.correction_range_error,
    ProfileCheckType.insulin_sensitivity: (
        ProfileValidationError.insulin_sensitivity_error
    ),
    ProfileCheckType.carb_ratio: ProfileValidationError.carb_ratio_error,
    ProfileCheckType.maximum_basal_rate: ProfileValidationError.max_basal_rate_not_set,
    ProfileCheckType.basal_rate: ProfileValidationError.basal_rate_error,
}


def _milliunits(rate: float) -> float:
    return round(rate, BASAL_RATE_PRECISION_DECIMALS)


class ProfileValidator:
    """Validates profiles against guardrails and pump capabilities.

    Checks run in a fixed order and stop at the first failure, so the
    same profile always reports the same error:

    1. Pump capabilities available
    2. Correction range within absolute bounds
    3. Insulin sensitivity within absolute bounds
    4. Carb ratio within absolute bounds
    5. Maximum basal rate configured
    6. Basal rates at or below the maximum and supported by the pump

    This class is stateless and safe to use as a singleton.
    """

    def validate(
        self,
        profile: Profile,
        *,
        supported_basal_rates: Iterable[float] | None,
        maximum_basal_rate_per_hour: float | None,
        guardrails: Guardrails = DEFAULT_GUARDRAILS,
    ) -> ProfileValidationResult:
        """Run the profile checks in order.

        Args:
            profile: The profile to validate.
            supported_basal_rates: Basal rates the pump can deliver, or
                None when no pump is connected.
            maximum_basal_rate_per_hour: The user's maximum basal rate,
                or None when it has not been configured.
            guardrails: Absolute bounds for the non-basal schedules.

        Returns:
            ProfileValidationResult describing the first failing check,
            or a valid result with every check passed.
        """
        supported = (
            None
            if supported_basal_rates is None
            else frozenset(_milliunits(rate) for rate in supported_basal_rates)
        )

        checks: list[Callable[[], ProfileCheckResult]] = [
            lambda: self._check_device_capabilities(supported),
            lambda: self._check_correction_range(profile, guardrails),
            lambda: self._check_insulin_sensitivity(profile, guardrails),
            lambda: self._check_carb_ratio(profile, guardrails),
            lambda: self._check_maximum_basal_rate(maximum_basal_rate_per_hour),
            lambda: self._check_basal_rates(
                profile, supported or frozenset(), maximum_basal_rate_per_hour or 0.0
            ),
        ]

        results: list[ProfileCheckResult] = []
        for check in checks:
            result = check()
            results.append(result)
            if not result.passed:
                return ProfileValidationResult(
                    valid=False,
                    error=_ERRORS[result.check_type],
                    message=result.message,
                    check_results=results,
                )

        return ProfileValidationResult(
            valid=True,
            message=f"Profile {profile.name!r} passed all checks",
            check_results=results,
        )

    def _check_device_capabilities(
        self,
        supported: frozenset[float] | None,
    ) -> ProfileCheckResult:
        """Fail fast when the pump's basal increments are unknown."""
        if supported is None:
            return ProfileCheckResult(
                check_type=ProfileCheckType.device_capabilities,
                passed=False,
                message="Pump supported basal rates are unavailable",
                details={"supported_basal_rates": None},
            )
        return ProfileCheckResult(
            check_type=ProfileCheckType.device_capabilities,
            passed=True,
            message=f"Pump supports {len(supported)} basal rates",
            details={"supported_basal_rate_count": len(supported)},
        )

    def _check_correction_range(
        self,
        profile: Profile,
        guardrails: Guardrails,
    ) -> ProfileCheckResult:
        """Check both ends of every correction range item, in mg/dL."""
        bounds = guardrails.correction_range
        schedule = profile.correction_range.in_unit(GlucoseUnit.mg_dl)

        for item in schedule.items:
            low, high = item.value.min_value, item.value.max_value
            if not (bounds.contains(low) and bounds.contains(high)):
                return ProfileCheckResult(
                    check_type=ProfileCheckType.correction_range,
                    passed=False,
                    message=(
                        f"Correction range {low:g}-{high:g} mg/dL at "
                        f"{item.start_time}s is outside "
                        f"{bounds.minimum:g}-{bounds.maximum:g} mg/dL"
                    ),
                    details={
                        "start_time": item.start_time,
                        "min_value_mgdl": low,
                        "max_value_mgdl": high,
                        "bounds_mgdl": [bounds.minimum, bounds.maximum],
                    },
                )

        return ProfileCheckResult(
            check_type=ProfileCheckType.correction_range,
            passed=True,
            message=(
                f"Correction range within "
                f"{bounds.minimum:g}-{bounds.maximum:g} mg/dL"
            ),
        )

    def _check_insulin_sensitivity(
        self,
        profile: Profile,
        guardrails: Guardrails,
    ) -> ProfileCheckResult:
        bounds = guardrails.insulin_sensitivity
        schedule = profile.insulin_sensitivity_schedule.in_unit(GlucoseUnit.mg_dl)

        for item in schedule.items:
            if not bounds.contains(item.value):
                return ProfileCheckResult(
                    check_type=ProfileCheckType.insulin_sensitivity,
                    passed=False,
                    message=(
                        f"Insulin sensitivity {item.value:g} mg/dL/U at "
                        f"{item.start_time}s is outside "
                        f"{bounds.minimum:g}-{bounds.maximum:g} mg/dL/U"
                    ),
                    details={
                        "start_time": item.start_time,
                        "value_mgdl_per_unit": item.value,
                        "bounds_mgdl_per_unit": [bounds.minimum, bounds.maximum],
                    },
                )

        return ProfileCheckResult(
            check_type=ProfileCheckType.insulin_sensitivity,
            passed=True,
            message=(
                f"Insulin sensitivity within "
                f"{bounds.minimum:g}-{bounds.maximum:g} mg/dL/U"
            ),
        )

    def _check_carb_ratio(
        self,
        profile: Profile,
        guardrails: Guardrails,
    ) -> ProfileCheckResult:
        bounds = guardrails.carb_ratio

        for item in profile.carb_ratio_schedule.items:
            if not bounds.contains(item.value):
                return ProfileCheckResult(
                    check_type=ProfileCheckType.carb_ratio,
                    passed=False,
                    message=(
                        f"Carb ratio {item.value:g} g/U at {item.start_time}s "
                        f"is outside {bounds.minimum:g}-{bounds.maximum:g} g/U"
                    ),
                    details={
                        "start_time": item.start_time,
                        "value_grams_per_unit": item.value,
                        "bounds_grams_per_unit": [bounds.minimum, bounds.maximum],
                    },
                )

        return ProfileCheckResult(
            check_type=ProfileCheckType.carb_ratio,
            passed=True,
            message=f"Carb ratio within {bounds.minimum:g}-{bounds.maximum:g} g/U",
        )

    def _check_maximum_basal_rate(
        self,
        maximum_basal_rate_per_hour: float | None,
    ) -> ProfileCheckResult:
        """An unset maximum is a failure, never an implicit cap."""
        if maximum_basal_rate_per_hour is None:
            return ProfileCheckResult(
                check_type=ProfileCheckType.maximum_basal_rate,
                passed=False,
                message="Maximum basal rate is not set",
                details={"maximum_basal_rate_per_hour": None},
            )
        return ProfileCheckResult(
            check_type=ProfileCheckType.maximum_basal_rate,
            passed=True,
            message=f"Maximum basal rate is {maximum_basal_rate_per_hour:g} U/h",
            details={"maximum_basal_rate_per_hour": maximum_basal_rate_per_hour},
        )

    def _check_basal_rates(
        self,
        profile: Profile,
        supported: frozenset[float],
        maximum_basal_rate_per_hour: float,
    ) -> ProfileCheckResult:
        """Every rate must be at or below the maximum and a pump increment."""
        for item in profile.basal_rate_schedule.items:
            rate = item.value
            over_maximum = rate > maximum_basal_rate_per_hour
            unsupported = _milliunits(rate) not in supported
            if over_maximum or unsupported:
                reason = (
                    f"exceeds maximum of {maximum_basal_rate_per_hour:g} U/h"
                    if over_maximum
                    else "is not a rate the pump supports"
                )
                return ProfileCheckResult(
                    check_type=ProfileCheckType.basal_rate,
                    passed=False,
                    message=f"Basal rate {rate:g} U/h at {item.start_time}s {reason}",
                    details={
                        "start_time": item.start_time,
                        "rate_units_per_hour": rate,
                        "maximum_basal_rate_per_hour": maximum_basal_rate_per_hour,
                        "supported": not unsupported,
                    },
                )

        return ProfileCheckResult(
            check_type=ProfileCheckType.basal_rate,
            passed=True,
            message=(
                f"All basal rates supported and at or below "
                f"{maximum_basal_rate_per_hour:g} U/h"
            ),
        )


_validator = ProfileValidator()


def validate_profile(
    profile: Profile,
    *,
    supported_basal_rates: Iterable[float] | None,
    maximum_basal_rate_per_hour: float | None,
    guardrails: Guardrails = DEFAULT_GUARDRAILS,
) -> ProfileValidationResult:
    """Validate ``profile`` with the shared ProfileValidator."""
    return _validator.validate(
        profile,
        supported_basal_rates=supported_basal_rates,
        maximum_basal_rate_per_hour=maximum_basal_rate_per_hour,
        guardrails=guardrails,
    )
