"""Therapy profile schemas."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from therapy_profiles.schemas.schedule import (
    BasalRateSchedule,
    CarbRatioSchedule,
    GlucoseRangeSchedule,
    InsulinSensitivitySchedule,
)


class Profile(BaseModel):
    """A named snapshot of the four therapy schedules.

    This is the unit of storage: one profile is one record on disk.
    Names are not unique at the type level; the store replaces an
    existing record with the same name on save. Surrounding whitespace
    is stripped from the name, and a blank name is rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(min_length=1)
    correction_range: GlucoseRangeSchedule
    carb_ratio_schedule: CarbRatioSchedule
    basal_rate_schedule: BasalRateSchedule
    insulin_sensitivity_schedule: InsulinSensitivitySchedule

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Profile name cannot be empty"
            raise ValueError(msg)
        return v

    def to_json(self) -> str:
        """Serialize to the on-disk JSON representation."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Profile":
        """Parse the on-disk JSON representation."""
        return cls.model_validate_json(data)


class ProfileReference(BaseModel):
    """Lightweight handle on a stored profile.

    ``name`` is a copy of the stored profile's name kept for display;
    ``storage_key`` is the file name and the only thing used to load
    or delete the record.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    storage_key: str

    def __str__(self) -> str:
        return f"{self.name} ({self.storage_key})"
