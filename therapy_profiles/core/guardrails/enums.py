"""Profile guardrail enums."""

from enum import StrEnum, auto


class ProfileCheckType(StrEnum):
    """Checks applied to a profile, in evaluation order."""

    device_capabilities = auto()
    correction_range = auto()
    insulin_sensitivity = auto()
    carb_ratio = auto()
    maximum_basal_rate = auto()
    basal_rate = auto()


_DESCRIPTIONS = {
    "correction_range_error": "Correction Range values are out of bounds.",
    "insulin_sensitivity_error": "Insulin Sensitivity values are out of bounds.",
    "carb_ratio_error": "Carb Ratio values are out of bounds.",
    "basal_rate_error": "Basal Rate values are out of bounds.",
    "max_basal_rate_not_set": "Maximum Basal Rate is not set.",
    "device_capabilities_unavailable": (
        "Pump capabilities are unavailable. Connect a pump before loading a profile."
    ),
}


class ProfileValidationError(StrEnum):
    """Reason a profile cannot be activated."""

    correction_range_error = auto()
    insulin_sensitivity_error = auto()
    carb_ratio_error = auto()
    basal_rate_error = auto()
    max_basal_rate_not_set = auto()
    device_capabilities_unavailable = auto()

    @property
    def description(self) -> str:
        """Human-readable explanation suitable for display."""
        return _DESCRIPTIONS[self.value]
