from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, model_validator


HHMM_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


class _SlotFields(BaseModel):
    scheduled_date: date
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)

    @model_validator(mode='after')
    def _end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError('end_time must be after start_time')
        return self


class BookingCreateRequest(_SlotFields):
    lesson_id: int = Field(gt=0)
    student_id: int = Field(gt=0)
    week_number: int = Field(ge=1)


class BookingRescheduleRequest(_SlotFields):
    pass


class BookingCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class HybridPatternUpdateRequest(BaseModel):
    group_weeks: list[int] | None = None
    individual_weeks: list[int] | None = None
    individual_slot_duration: int | None = Field(default=None, gt=0, le=240)


BookingStatusFilter = Literal['pending', 'confirmed', 'cancelled', 'completed']
