"""
RepeatingTrip database model.

The recurrence template behind a series of trips: a snapshot of the seed
trip's schedulable attributes plus a weekly schedule rule.
"""

from datetime import date, timedelta
from typing import Iterator, List

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text
from sqlalchemy.sql import func
from paratransit.app.db.session import Base
from paratransit.app.models.trip_enums import Weekday

# Trip fields copied from the seed trip into every generated instance
TRIP_ATTRIBUTES = (
    "provider_id",
    "customer_id",
    "pickup_time",
    "appointment_time",
    "pickup_address",
    "dropoff_address",
    "trip_purpose",
    "mobility",
    "funding_source",
    "service_level",
    "notes",
    "guest_count",
    "attendant_count",
    "group_size",
    "round_trip",
)

DAY_COLUMNS = (
    (Weekday.MONDAY, "repeats_mondays"),
    (Weekday.TUESDAY, "repeats_tuesdays"),
    (Weekday.WEDNESDAY, "repeats_wednesdays"),
    (Weekday.THURSDAY, "repeats_thursdays"),
    (Weekday.FRIDAY, "repeats_fridays"),
    (Weekday.SATURDAY, "repeats_saturdays"),
    (Weekday.SUNDAY, "repeats_sundays"),
)


class RepeatingTrip(Base):
    __tablename__ = "repeating_trips"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Seed attributes
    provider_id = Column(Integer, nullable=True, index=True)
    customer_id = Column(Integer, nullable=True, index=True)
    pickup_time = Column(DateTime, nullable=True)
    appointment_time = Column(DateTime, nullable=True)
    pickup_address = Column(String(255), nullable=True)
    dropoff_address = Column(String(255), nullable=True)
    trip_purpose = Column(String(100), nullable=True)
    mobility = Column(String(100), nullable=True)
    funding_source = Column(String(100), nullable=True)
    service_level = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    guest_count = Column(Integer, default=0, nullable=False)
    attendant_count = Column(Integer, default=0, nullable=False)
    group_size = Column(Integer, default=0, nullable=False)
    round_trip = Column(Boolean, default=False, nullable=False)
    
    # Instance overrides
    driver_id = Column(Integer, nullable=True)
    vehicle_id = Column(Integer, nullable=True)
    customer_informed = Column(Boolean, default=False, nullable=False)
    
    # Weekly schedule
    start_date = Column(Date, nullable=False)
    schedule_interval = Column(Integer, default=1, nullable=False)
    repeats_mondays = Column(Boolean, default=False, nullable=False)
    repeats_tuesdays = Column(Boolean, default=False, nullable=False)
    repeats_wednesdays = Column(Boolean, default=False, nullable=False)
    repeats_thursdays = Column(Boolean, default=False, nullable=False)
    repeats_fridays = Column(Boolean, default=False, nullable=False)
    repeats_saturdays = Column(Boolean, default=False, nullable=False)
    repeats_sundays = Column(Boolean, default=False, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    @property
    def weekdays(self) -> List[Weekday]:
        return [day for day, column in DAY_COLUMNS if getattr(self, column)]
    
    def occurs_on(self, day: date) -> bool:
        """Weekly rule: selected weekday, on an active week counted from start_date's week."""
        if day < self.start_date or day.weekday() not in self.weekdays:
            return False
        interval = max(self.schedule_interval or 1, 1)
        start_week = self.start_date - timedelta(days=self.start_date.weekday())
        weeks = (day - start_week).days // 7
        return weeks % interval == 0
    
    def occurrences_between(self, first: date, last: date) -> Iterator[date]:
        day = max(first, self.start_date)
        while day <= last:
            if self.occurs_on(day):
                yield day
            day += timedelta(days=1)
    
    def __repr__(self):
        days = ",".join(day.name[:3] for day in self.weekdays)
        return f"<RepeatingTrip(id={self.id}, every={self.schedule_interval}w, days={days})>"
