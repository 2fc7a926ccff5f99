"""
Trip schemas.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

from paratransit.app.core.time_parsing import parse_trip_datetime
from paratransit.app.domain.scheduling.recurring_series import RecurrenceRequest
from paratransit.app.models.trip_enums import TripResultCode, Weekday


class RecurrenceSchema(BaseModel):
    """
    Weekly recurrence for a trip.
    
    An empty weekdays list turns recurrence off for the trip's series.
    """
    weekdays: List[str] = Field(default_factory=list, description="e.g. ['monday', 'thursday']")
    interval: int = Field(1, ge=1, description="Repeat every N weeks")
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    customer_informed: bool = False
    
    @field_validator("weekdays")
    @classmethod
    def check_weekdays(cls, value):
        names = [name.strip().upper() for name in value]
        unknown = [name for name in names if name not in Weekday.__members__]
        if unknown:
            raise ValueError(f"unknown weekday(s): {', '.join(unknown)}")
        return names
    
    def to_request(self) -> RecurrenceRequest:
        return RecurrenceRequest(
            weekdays=frozenset(Weekday[name] for name in self.weekdays),
            interval=self.interval,
            driver_id=self.driver_id,
            vehicle_id=self.vehicle_id,
            customer_informed=self.customer_informed,
        )


class TripFields(BaseModel):
    """Editable trip attributes shared by create and update."""
    customer_id: Optional[int] = None
    provider_id: Optional[int] = None
    pickup_time: Optional[datetime] = None
    appointment_time: Optional[datetime] = None
    pickup_address: Optional[str] = Field(None, max_length=255)
    dropoff_address: Optional[str] = Field(None, max_length=255)
    trip_purpose: Optional[str] = Field(None, max_length=100)
    mobility: Optional[str] = Field(None, max_length=100)
    funding_source: Optional[str] = Field(None, max_length=100)
    service_level: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    guest_count: Optional[int] = None
    attendant_count: Optional[int] = None
    group_size: Optional[int] = None
    round_trip: Optional[bool] = None
    mileage: Optional[float] = None
    cab: Optional[bool] = None
    customer_informed: Optional[bool] = None
    
    # Requested assignment; the run decides the effective values
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    run_id: Optional[int] = None
    
    called_back_at: Optional[datetime] = None
    called_back_by_id: Optional[int] = None
    trip_result: Optional[TripResultCode] = None
    
    recurrence: Optional[RecurrenceSchema] = None
    
    @field_validator("pickup_time", "appointment_time", "called_back_at", mode="before")
    @classmethod
    def parse_times(cls, value):
        return parse_trip_datetime(value)


class TripCreate(TripFields):
    """Schema for booking a trip."""
    guest_count: int = 0
    attendant_count: int = 0
    group_size: int = 0
    round_trip: bool = False
    cab: bool = False
    customer_informed: bool = False


class TripUpdate(TripFields):
    """Schema for editing a trip; only fields sent are changed."""


class TripResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: int
    provider_id: Optional[int]
    customer_id: Optional[int]
    run_id: Optional[int]
    repeating_trip_id: Optional[int]
    pickup_time: Optional[datetime]
    appointment_time: Optional[datetime]
    pickup_address: Optional[str]
    dropoff_address: Optional[str]
    trip_purpose: Optional[str]
    guest_count: int
    attendant_count: int
    group_size: int
    round_trip: bool
    cab: bool
    called_back_at: Optional[datetime]
    trip_result: Optional[TripResultCode]
    
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    run_summary: str = ""
    instantiated_trip_ids: List[int] = Field(default_factory=list)
