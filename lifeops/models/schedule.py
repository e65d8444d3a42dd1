"""Schedule models for recurring obligations.

A schedule is one of three kinds. At the domain level a yearly schedule is an
explicit (month, day) pair; the packed MMDD integer only exists at the
persistence boundary (see `schedule_to_storage` / `schedule_from_storage`).
"""
import calendar
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator


class ScheduleError(ValueError):
    """Base error for schedules that cannot be built or evaluated."""


class InvalidScheduleError(ScheduleError):
    """A schedule parameter is missing or out of range."""


class UnknownScheduleError(ScheduleError):
    """The schedule kind is not one of the supported kinds."""


# Storage names used by the tasks collection
SCHEDULE_TYPE_FIXED_DATE = "FIXED_DATE"
SCHEDULE_TYPE_EVERY_N_MONTHS = "EVERY_N_MONTHS"
SCHEDULE_TYPE_YEARLY = "YEARLY"

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


class FixedDate(BaseModel):
    """A one-time obligation. Never recurs."""
    kind: Literal["fixed_date"] = "fixed_date"

    class Config:
        frozen = True


class EveryNMonths(BaseModel):
    """Recurs by adding `months` months to the previous due date."""
    kind: Literal["every_n_months"] = "every_n_months"
    months: int = Field(..., ge=1, description="Number of months between occurrences")

    class Config:
        frozen = True


class Yearly(BaseModel):
    """Recurs on the same calendar date every year."""
    kind: Literal["yearly"] = "yearly"
    month: int = Field(..., ge=1, le=12)
    day: int = Field(..., ge=1, le=31)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_day_exists(self) -> "Yearly":
        # 2000 is a leap year, so Feb 29 is accepted
        _, last_day = calendar.monthrange(2000, self.month)
        if self.day > last_day:
            raise ValueError(
                f"{MONTH_ABBREVIATIONS[self.month - 1]} has no day {self.day}"
            )
        return self


ScheduleSpec = Annotated[
    Union[FixedDate, EveryNMonths, Yearly],
    Field(discriminator="kind"),
]


def to_mmdd(month: int, day: int) -> int:
    """Pack a (month, day) pair as month*100 + day."""
    return month * 100 + day


def parse_mmdd(mmdd: int) -> Tuple[int, int]:
    """Unpack an MMDD integer into (month, day)."""
    return mmdd // 100, mmdd % 100


def schedule_to_storage(schedule: ScheduleSpec) -> Tuple[str, Optional[int]]:
    """Encode a schedule as (schedule_type, schedule_value) for storage."""
    if isinstance(schedule, FixedDate):
        return SCHEDULE_TYPE_FIXED_DATE, None
    if isinstance(schedule, EveryNMonths):
        return SCHEDULE_TYPE_EVERY_N_MONTHS, schedule.months
    if isinstance(schedule, Yearly):
        return SCHEDULE_TYPE_YEARLY, to_mmdd(schedule.month, schedule.day)
    raise UnknownScheduleError(f"Unknown schedule: {schedule!r}")


def schedule_from_storage(schedule_type: str, schedule_value: Optional[int]) -> ScheduleSpec:
    """
    Decode a stored (schedule_type, schedule_value) pair.

    Raises UnknownScheduleError for an unsupported type and
    InvalidScheduleError for a missing or out-of-range value.
    """
    if schedule_type == SCHEDULE_TYPE_FIXED_DATE:
        return FixedDate()

    if schedule_type == SCHEDULE_TYPE_EVERY_N_MONTHS:
        if not schedule_value or schedule_value < 1:
            raise InvalidScheduleError(
                f"{SCHEDULE_TYPE_EVERY_N_MONTHS} requires a positive schedule_value, got {schedule_value!r}"
            )
        return EveryNMonths(months=schedule_value)

    if schedule_type == SCHEDULE_TYPE_YEARLY:
        if not schedule_value:
            raise InvalidScheduleError(f"{SCHEDULE_TYPE_YEARLY} requires a schedule_value (MMDD format)")
        month, day = parse_mmdd(schedule_value)
        try:
            return Yearly(month=month, day=day)
        except ValueError as exc:
            raise InvalidScheduleError(f"Invalid MMDD value {schedule_value}: {exc}") from exc

    raise UnknownScheduleError(f"Unknown schedule type: {schedule_type}")


def describe_schedule(schedule: ScheduleSpec) -> str:
    """Human-readable schedule label."""
    if isinstance(schedule, FixedDate):
        return "One-time"
    if isinstance(schedule, EveryNMonths):
        labels = {1: "Monthly", 3: "Quarterly", 6: "Every 6 months", 12: "Yearly"}
        return labels.get(schedule.months, f"Every {schedule.months} months")
    if isinstance(schedule, Yearly):
        return f"Yearly on {MONTH_ABBREVIATIONS[schedule.month - 1]} {schedule.day}"
    return "Unknown"
