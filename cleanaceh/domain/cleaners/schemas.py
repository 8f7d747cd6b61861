"""Cleaner schedule schemas"""

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import minutes_since_midnight, parse_hhmm


class ScheduleEntry(BaseModel):
    dayOfWeek: int = Field(..., ge=0, le=6)  # 0 = Sunday
    startTime: str
    endTime: str
    isAvailable: bool = True

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock_time(cls, v):
        parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def check_window(self):
        if minutes_since_midnight(parse_hhmm(self.endTime)) <= minutes_since_midnight(parse_hhmm(self.startTime)):
            raise ValueError("endTime must be after startTime")
        return self


class ScheduleReplace(BaseModel):
    """Full weekly schedule; days left out become unbookable"""

    schedules: list[ScheduleEntry] = Field(default_factory=list, max_length=7)

    @field_validator("schedules")
    @classmethod
    def unique_days(cls, v):
        days = [entry.dayOfWeek for entry in v]
        if len(days) != len(set(days)):
            raise ValueError("Each day of the week may appear only once")
        return v
