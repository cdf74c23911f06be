"""Active therapy configuration and pump capability schemas."""

from pydantic import BaseModel, ConfigDict, Field

from therapy_profiles.schemas.schedule import (
    BasalRateSchedule,
    CarbRatioSchedule,
    GlucoseRangeSchedule,
    InsulinSensitivitySchedule,
)


class SupportedIncrements(BaseModel):
    """Discrete values a connected pump can be programmed with."""

    model_config = ConfigDict(frozen=True)

    basal_rates: frozenset[float] = Field(
        description="Basal rates (U/h) the pump can deliver."
    )
    bolus_volumes: frozenset[float] = frozenset()
    maximum_basal_rates: frozenset[float] = frozenset()
    maximum_bolus_volumes: frozenset[float] = frozenset()
    maximum_basal_schedule_entry_count: int | None = Field(default=None, ge=1)


class TherapySettings(BaseModel):
    """In-memory active therapy configuration.

    Holds the schedules currently in effect and implements the
    ``apply_*`` writes a profile load commits through. Each write
    replaces one schedule; nothing here talks to a pump.
    """

    model_config = ConfigDict(validate_assignment=True)

    correction_range: GlucoseRangeSchedule | None = None
    carb_ratio_schedule: CarbRatioSchedule | None = None
    basal_rate_schedule: BasalRateSchedule | None = None
    insulin_sensitivity_schedule: InsulinSensitivitySchedule | None = None
    maximum_basal_rate_per_hour: float | None = Field(default=None, gt=0)

    def apply_correction_range(self, schedule: GlucoseRangeSchedule | None) -> None:
        self.correction_range = schedule

    def apply_carb_ratio_schedule(self, schedule: CarbRatioSchedule | None) -> None:
        self.carb_ratio_schedule = schedule

    def apply_basal_rate_schedule(self, schedule: BasalRateSchedule | None) -> None:
        self.basal_rate_schedule = schedule

    def apply_insulin_sensitivity_schedule(
        self, schedule: InsulinSensitivitySchedule | None
    ) -> None:
        self.insulin_sensitivity_schedule = schedule
