"""
Run schemas.
"""

from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional

from paratransit.app.core.time_parsing import parse_trip_datetime


class RunCreate(BaseModel):
    """
    Schema for creating a run by hand.
    
    Without explicit times the run spans the configured business hours.
    """
    provider_id: int
    vehicle_id: int
    driver_id: Optional[int] = None
    date: date
    name: Optional[str] = Field(None, max_length=100)
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None
    
    @field_validator("scheduled_start_time", "scheduled_end_time", mode="before")
    @classmethod
    def parse_times(cls, value):
        return parse_trip_datetime(value)
    
    @model_validator(mode="after")
    def check_bounds(self):
        if (self.scheduled_start_time is None) != (self.scheduled_end_time is None):
            raise ValueError("give both scheduled_start_time and scheduled_end_time, or neither")
        if self.scheduled_start_time is not None:
            if self.scheduled_start_time > self.scheduled_end_time:
                raise ValueError("scheduled_start_time must not be after scheduled_end_time")
            if self.scheduled_start_time.date() != self.date or self.scheduled_end_time.date() != self.date:
                raise ValueError("a run's times must fall on its date")
        return self


class RunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    provider_id: int
    vehicle_id: Optional[int]
    driver_id: Optional[int]
    name: Optional[str]
    label: str
    date: date
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    start_odometer: Optional[int]
    end_odometer: Optional[int]
    complete: bool
    paid: bool
    trip_ids: List[int] = Field(default_factory=list)
