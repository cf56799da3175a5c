from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TimerConfig(BaseModel):
    """One entry of the timers/precisionTimers lists of the add-on config"""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str = Field(min_length=1)
    name: str
    seconds: int = Field(gt=0)


class IntervalConfig(TimerConfig):
    """One entry of the intervals list, seconds being the repeat period"""


class AddonConfig(BaseModel):
    """
    Top level of the add-on config. The device lists are only checked to be
    lists here, each entry is validated on its own so a bad one can be skipped.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    timers: list[Any] = Field(default_factory=list)
    precision_timers: list[Any] = Field(default_factory=list, alias="precisionTimers")
    intervals: list[Any] = Field(default_factory=list)
    deactivate_progress_bar: bool = Field(default=False, alias="deactivateProgressBar")
    debug: bool = False

    @field_validator("timers", "precision_timers", "intervals", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return [] if value is None else value


class ActionResult(BaseModel):
    success: bool
    device: str
    action: str
    message: Optional[str] = None
