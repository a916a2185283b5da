"""Provider records and declared availability."""

from datetime import date, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Provider(BaseModel):
    """A service provider known to the booking core."""

    model_config = ConfigDict(frozen=True)

    id: str
    business_name: str
    timezone: str = "UTC"


class AvailabilityTemplate(BaseModel):
    """Recurring weekly open hours. ``day_of_week`` uses Sunday = 0."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _check_time_range(self) -> "AvailabilityTemplate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class OverrideType(str, Enum):
    CUSTOM = "custom"
    BLACKOUT = "blackout"
    VACATION = "vacation"


class AvailabilityOverride(BaseModel):
    """A date-specific exception that supersedes the weekly template.

    ``custom`` overrides open one window each; ``blackout`` and ``vacation``
    close the whole day and carry no times.
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str
    override_date: date
    override_type: OverrideType = OverrideType.CUSTOM
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "AvailabilityOverride":
        has_start = self.start_time is not None
        has_end = self.end_time is not None
        if self.override_type == OverrideType.CUSTOM:
            if not (has_start and has_end):
                raise ValueError("custom overrides need start_time and end_time")
            if self.start_time >= self.end_time:
                raise ValueError("start_time must be before end_time")
        elif has_start or has_end:
            raise ValueError(f"{self.override_type.value} overrides cannot carry times")
        return self

    @property
    def blocked(self) -> bool:
        return self.override_type != OverrideType.CUSTOM
