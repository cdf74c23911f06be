"""Daily therapy schedule schemas.

A schedule is an ordered sequence of items, each pairing an offset from
local midnight (seconds) with a value. An item's value holds until the
next item starts; the last item runs until midnight, so a schedule whose
first item starts at 0 covers the whole 24-hour cycle.

All schedules are immutable. Field names serialize as camelCase
(``startTime``, ``minValue``).
"""

from collections.abc import Iterable, Iterator
from enum import StrEnum
from typing import Any, Final, Generic, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SECONDS_PER_DAY: Final[int] = 86_400

# mg/dL per mmol/L (molar mass of glucose / 10)
MGDL_PER_MMOLL: Final[float] = 18.01559

V = TypeVar("V")

_SCHEDULE_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class GlucoseUnit(StrEnum):
    """Unit of a glucose concentration."""

    mg_dl = "mg/dL"
    mmol_l = "mmol/L"

    def convert(self, value: float, to: "GlucoseUnit") -> float:
        """Convert a concentration expressed in this unit to ``to``."""
        if self is to:
            return value
        if self is GlucoseUnit.mmol_l:
            return value * MGDL_PER_MMOLL
        return value / MGDL_PER_MMOLL


class ScheduleItem(BaseModel, Generic[V]):
    """A value that takes effect at a time of day."""

    model_config = _SCHEDULE_CONFIG

    start_time: int = Field(
        ge=0,
        lt=SECONDS_PER_DAY,
        description="Offset from local midnight in seconds. Range: 0-86399.",
    )
    value: V


class DoubleRange(BaseModel):
    """A closed numeric range, used for glucose targets."""

    model_config = _SCHEDULE_CONFIG

    min_value: float
    max_value: float

    @model_validator(mode="after")
    def validate_ordering(self) -> Self:
        if self.min_value > self.max_value:
            msg = (
                f"min_value ({self.min_value}) must not exceed "
                f"max_value ({self.max_value})"
            )
            raise ValueError(msg)
        return self


class DailyValueSchedule(BaseModel, Generic[V]):
    """Repeating 24-hour schedule of values.

    Items must be ordered by ascending ``start_time`` and the first item
    must start at midnight. Duplicate start times are not rejected here;
    the editors producing schedules are expected to avoid them.
    """

    model_config = _SCHEDULE_CONFIG

    items: tuple[ScheduleItem[V], ...] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def validate_items_order(
        cls, items: tuple[ScheduleItem[V], ...]
    ) -> tuple[ScheduleItem[V], ...]:
        if items[0].start_time != 0:
            msg = "first schedule item must start at midnight (start_time 0)"
            raise ValueError(msg)
        for previous, current in zip(items, items[1:]):
            if current.start_time < previous.start_time:
                msg = (
                    f"schedule items out of order: {current.start_time} "
                    f"follows {previous.start_time}"
                )
                raise ValueError(msg)
        return items

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, Any]], **kwargs: Any) -> Self:
        """Build a schedule from ``(start_time, value)`` pairs."""
        return cls(
            items=[
                {"start_time": start_time, "value": cls._coerce_value(value)}
                for start_time, value in pairs
            ],
            **kwargs,
        )

    @staticmethod
    def _coerce_value(value: Any) -> Any:
        return value

    def segments(self) -> Iterator[tuple[ScheduleItem[V], int]]:
        """Yield each item with the number of seconds it stays in effect."""
        for index, item in enumerate(self.items):
            if index + 1 < len(self.items):
                end = self.items[index + 1].start_time
            else:
                end = SECONDS_PER_DAY
            yield item, end - item.start_time

    def values(self) -> list[V]:
        return [item.value for item in self.items]


class GlucoseRangeSchedule(DailyValueSchedule[DoubleRange]):
    """Correction range schedule, tagged with its glucose unit."""

    unit: GlucoseUnit = GlucoseUnit.mg_dl

    @staticmethod
    def _coerce_value(value: Any) -> Any:
        if isinstance(value, tuple):
            min_value, max_value = value
            return {"min_value": min_value, "max_value": max_value}
        return value

    def in_unit(self, unit: GlucoseUnit) -> "GlucoseRangeSchedule":
        """Return this schedule expressed in ``unit``."""
        if unit is self.unit:
            return self
        return GlucoseRangeSchedule(
            unit=unit,
            items=tuple(
                ScheduleItem[DoubleRange](
                    start_time=item.start_time,
                    value=DoubleRange(
                        min_value=self.unit.convert(item.value.min_value, unit),
                        max_value=self.unit.convert(item.value.max_value, unit),
                    ),
                )
                for item in self.items
            ),
        )


class InsulinSensitivitySchedule(DailyValueSchedule[float]):
    """Insulin sensitivity schedule in glucose unit per insulin unit."""

    unit: GlucoseUnit = GlucoseUnit.mg_dl

    def in_unit(self, unit: GlucoseUnit) -> "InsulinSensitivitySchedule":
        """Return this schedule expressed in ``unit`` per insulin unit."""
        if unit is self.unit:
            return self
        return InsulinSensitivitySchedule(
            unit=unit,
            items=tuple(
                ScheduleItem[float](
                    start_time=item.start_time,
                    value=self.unit.convert(item.value, unit),
                )
                for item in self.items
            ),
        )


class CarbRatioSchedule(DailyValueSchedule[float]):
    """Carbohydrate ratio schedule in grams per insulin unit."""


class BasalRateSchedule(DailyValueSchedule[float]):
    """Basal rate schedule in insulin units per hour."""

    def total(self) -> float:
        """Return the insulin delivered over one 24-hour cycle, in units."""
        return sum(item.value * seconds / 3600 for item, seconds in self.segments())
