"""Tests for the profile guardrail validator.

The validator is pure, so every test builds profiles in memory and
passes pump capabilities and the maximum basal rate explicitly.
"""

import pytest
from pydantic import ValidationError

from factories import SUPPORTED_BASAL_RATES, make_profile
from therapy_profiles.core.guardrails import (
    DEFAULT_GUARDRAILS,
    GuardrailBounds,
    Guardrails,
    ProfileCheckType,
    ProfileValidationError,
    ProfileValidationFailedError,
    ProfileValidationResult,
    ProfileValidator,
    validate_profile,
)
from therapy_profiles.core.guardrails.constants import (
    CORRECTION_RANGE_MAX_MGDL,
    CORRECTION_RANGE_MIN_MGDL,
)
from therapy_profiles.schemas.schedule import (
    BasalRateSchedule,
    CarbRatioSchedule,
    GlucoseRangeSchedule,
    GlucoseUnit,
    InsulinSensitivitySchedule,
)


def _validate(profile, **overrides) -> ProfileValidationResult:
    kwargs = {
        "supported_basal_rates": SUPPORTED_BASAL_RATES,
        "maximum_basal_rate_per_hour": 2.0,
    }
    kwargs.update(overrides)
    return ProfileValidator().validate(profile, **kwargs)


def _correction_range(low: float, high: float) -> GlucoseRangeSchedule:
    return GlucoseRangeSchedule.from_pairs([(0, (low, high))])


def _basal(*rates: float) -> BasalRateSchedule:
    return BasalRateSchedule.from_pairs(
        (index * 3600, rate) for index, rate in enumerate(rates)
    )


class TestValidProfile:
    def test_passes_all_checks(self):
        result = _validate(make_profile())
        assert result.valid is True
        assert result.error is None
        assert [c.check_type for c in result.check_results] == list(ProfileCheckType)
        assert all(c.passed for c in result.check_results)

    def test_module_function(self):
        result = validate_profile(
            make_profile(),
            supported_basal_rates=SUPPORTED_BASAL_RATES,
            maximum_basal_rate_per_hour=2.0,
        )
        assert result.valid is True

    def test_does_not_mutate_profile(self):
        profile = make_profile()
        before = profile.model_dump()
        _validate(profile)
        assert profile.model_dump() == before


class TestDeviceCapabilities:
    def test_unavailable_fails_first(self):
        # Also violates the correction range guardrail.
        profile = make_profile(correction_range=_correction_range(50, 60))
        result = _validate(profile, supported_basal_rates=None)
        assert result.valid is False
        assert result.error == ProfileValidationError.device_capabilities_unavailable
        assert len(result.check_results) == 1


class TestCorrectionRange:
    def test_lower_bound_passes(self):
        profile = make_profile(
            correction_range=_correction_range(CORRECTION_RANGE_MIN_MGDL, 110)
        )
        assert _validate(profile).valid is True

    def test_one_below_lower_bound_fails(self):
        profile = make_profile(
            correction_range=_correction_range(CORRECTION_RANGE_MIN_MGDL - 1, 110)
        )
        result = _validate(profile)
        assert result.error == ProfileValidationError.correction_range_error
        assert "outside" in result.message

    def test_upper_bound_passes(self):
        profile = make_profile(
            correction_range=_correction_range(100, CORRECTION_RANGE_MAX_MGDL)
        )
        assert _validate(profile).valid is True

    def test_above_upper_bound_fails(self):
        profile = make_profile(
            correction_range=_correction_range(100, CORRECTION_RANGE_MAX_MGDL + 1)
        )
        assert _validate(profile).error == ProfileValidationError.correction_range_error

    def test_any_item_out_of_bounds_fails(self):
        profile = make_profile(
            correction_range=GlucoseRangeSchedule.from_pairs(
                [(0, (100, 110)), (3600, (100, 110)), (7200, (80, 90))]
            )
        )
        result = _validate(profile)
        assert result.error == ProfileValidationError.correction_range_error
        assert result.check_results[-1].details["start_time"] == 7200

    def test_mmol_schedule_converted_before_check(self):
        # 5.5-6.0 mmol/L is about 99-108 mg/dL
        profile = make_profile(
            correction_range=GlucoseRangeSchedule.from_pairs(
                [(0, (5.5, 6.0))], unit=GlucoseUnit.mmol_l
            )
        )
        assert _validate(profile).valid is True

    def test_checked_before_basal_rates(self):
        profile = make_profile(
            correction_range=_correction_range(50, 60),
            basal_rate_schedule=_basal(0.825),
        )
        assert _validate(profile).error == ProfileValidationError.correction_range_error


class TestInsulinSensitivity:
    @pytest.mark.parametrize("value", [10.0, 500.0])
    def test_bounds_pass(self, value):
        profile = make_profile(
            insulin_sensitivity_schedule=InsulinSensitivitySchedule.from_pairs(
                [(0, value)]
            )
        )
        assert _validate(profile).valid is True

    @pytest.mark.parametrize("value", [9.0, 501.0])
    def test_out_of_bounds_fails(self, value):
        profile = make_profile(
            insulin_sensitivity_schedule=InsulinSensitivitySchedule.from_pairs(
                [(0, value)]
            )
        )
        result = _validate(profile)
        assert result.error == ProfileValidationError.insulin_sensitivity_error

    def test_checked_before_carb_ratio(self):
        profile = make_profile(
            insulin_sensitivity_schedule=InsulinSensitivitySchedule.from_pairs([(0, 1.0)]),
            carb_ratio_schedule=CarbRatioSchedule.from_pairs([(0, 1.0)]),
        )
        result = _validate(profile)
        assert result.error == ProfileValidationError.insulin_sensitivity_error


class TestCarbRatio:
    @pytest.mark.parametrize("value", [2.0, 150.0])
    def test_bounds_pass(self, value):
        profile = make_profile(carb_ratio_schedule=CarbRatioSchedule.from_pairs([(0, value)]))
        assert _validate(profile).valid is True

    @pytest.mark.parametrize("value", [1.9, 151.0])
    def test_out_of_bounds_fails(self, value):
        profile = make_profile(carb_ratio_schedule=CarbRatioSchedule.from_pairs([(0, value)]))
        assert _validate(profile).error == ProfileValidationError.carb_ratio_error


class TestMaximumBasalRate:
    def test_not_set_fails(self):
        result = _validate(make_profile(), maximum_basal_rate_per_hour=None)
        assert result.valid is False
        assert result.error == ProfileValidationError.max_basal_rate_not_set

    def test_checked_after_carb_ratio(self):
        profile = make_profile(carb_ratio_schedule=CarbRatioSchedule.from_pairs([(0, 200.0)]))
        result = _validate(profile, maximum_basal_rate_per_hour=None)
        assert result.error == ProfileValidationError.carb_ratio_error


class TestBasalRates:
    def test_unsupported_increment_fails_below_maximum(self):
        profile = make_profile(basal_rate_schedule=_basal(0.5, 0.825))
        result = _validate(profile)
        assert result.error == ProfileValidationError.basal_rate_error
        assert "not a rate the pump supports" in result.message

    def test_above_maximum_fails(self):
        profile = make_profile(basal_rate_schedule=_basal(0.5, 1.0))
        result = _validate(profile, maximum_basal_rate_per_hour=0.8)
        assert result.error == ProfileValidationError.basal_rate_error
        assert "exceeds maximum" in result.message

    def test_at_maximum_passes(self):
        profile = make_profile(basal_rate_schedule=_basal(1.0))
        assert _validate(profile, maximum_basal_rate_per_hour=1.0).valid is True

    def test_float_noise_tolerated(self):
        profile = make_profile(basal_rate_schedule=_basal(0.1 + 0.2 + 0.45))
        assert _validate(profile).valid is True

    def test_empty_supported_set_fails(self):
        result = _validate(make_profile(), supported_basal_rates=[])
        assert result.error == ProfileValidationError.basal_rate_error


class TestCustomGuardrails:
    def test_narrower_correction_range(self):
        guardrails = Guardrails(correction_range=GuardrailBounds(minimum=100, maximum=120))
        profile = make_profile(correction_range=_correction_range(95, 110))
        assert _validate(profile).valid is True
        result = _validate(profile, guardrails=guardrails)
        assert result.error == ProfileValidationError.correction_range_error

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValidationError):
            GuardrailBounds(minimum=10, maximum=1)

    def test_defaults(self):
        assert DEFAULT_GUARDRAILS.correction_range.minimum == 87.0
        assert DEFAULT_GUARDRAILS.insulin_sensitivity.maximum == 500.0
        assert DEFAULT_GUARDRAILS.carb_ratio.minimum == 2.0


class TestValidationResult:
    def test_valid_with_error_rejected(self):
        with pytest.raises(ValidationError):
            ProfileValidationResult(
                valid=True, error=ProfileValidationError.carb_ratio_error
            )

    def test_invalid_without_error_rejected(self):
        with pytest.raises(ValidationError):
            ProfileValidationResult(valid=False)

    def test_raise_for_error(self):
        result = _validate(make_profile(), maximum_basal_rate_per_hour=None)
        with pytest.raises(ProfileValidationFailedError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.error == ProfileValidationError.max_basal_rate_not_set
        assert str(exc_info.value) == "Maximum Basal Rate is not set."

    def test_raise_for_error_noop_when_valid(self):
        _validate(make_profile()).raise_for_error()

    @pytest.mark.parametrize("error", list(ProfileValidationError))
    def test_every_error_has_description(self, error):
        assert error.description
