# Pydantic Schemas
from therapy_profiles.schemas.profile import Profile, ProfileReference
from therapy_profiles.schemas.schedule import (
    BasalRateSchedule,
    CarbRatioSchedule,
    DailyValueSchedule,
    DoubleRange,
    GlucoseRangeSchedule,
    GlucoseUnit,
    InsulinSensitivitySchedule,
    ScheduleItem,
)
from therapy_profiles.schemas.therapy_settings import (
    SupportedIncrements,
    TherapySettings,
)

__all__ = [
    "BasalRateSchedule",
    "CarbRatioSchedule",
    "DailyValueSchedule",
    "DoubleRange",
    "GlucoseRangeSchedule",
    "GlucoseUnit",
    "InsulinSensitivitySchedule",
    "Profile",
    "ProfileReference",
    "ScheduleItem",
    "SupportedIncrements",
    "TherapySettings",
]
