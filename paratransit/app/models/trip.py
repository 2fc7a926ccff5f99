"""
Trip database model.

A trip is a single pickup -> dropoff request for one customer. Non-cab trips
with a vehicle are carried by a run; trips generated from a recurring series
keep a reference to their RepeatingTrip.
"""

from sqlalchemy import Column, Integer, String, Boolean, Float, Text, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from paratransit.app.db.session import Base
from paratransit.app.models.run import CAB_RUN_ID, UNSCHEDULED_RUN_ID
from paratransit.app.models.trip_enums import TripResultCode


class Trip(Base):
    """
    Trip model.
    
    driver_id and vehicle_id hold what the caller *requested*. Once a run is
    assigned, the run's driver and vehicle are authoritative; use
    effective_driver_id / effective_vehicle_id to read the resolved values.
    """
    __tablename__ = "trips"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership
    provider_id = Column(Integer, ForeignKey('providers.id'), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=True, index=True)
    
    # Scheduling
    run_id = Column(Integer, ForeignKey('runs.id'), nullable=True, index=True)
    repeating_trip_id = Column(Integer, ForeignKey('repeating_trips.id'), nullable=True, index=True)
    driver_id = Column(Integer, nullable=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=True)
    cab = Column(Boolean, default=False, nullable=False)
    
    pickup_time = Column(DateTime, nullable=True, index=True)
    appointment_time = Column(DateTime, nullable=True)
    
    # Trip details
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
    mileage = Column(Float, nullable=True)
    customer_informed = Column(Boolean, default=False, nullable=False)
    
    # Confirmation and outcome
    called_back_at = Column(DateTime, nullable=True)
    called_back_by_id = Column(Integer, nullable=True)
    trip_result = Column(Enum(TripResultCode), nullable=True, index=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    # Not persisted: set on instances materialized from a RepeatingTrip
    via_repeating_trip = False
    
    @property
    def date(self):
        return self.pickup_time.date() if self.pickup_time else None
    
    @property
    def complete(self) -> bool:
        return self.trip_result == TripResultCode.COMPLETE
    
    @property
    def pending(self) -> bool:
        return self.trip_result is None
    
    @property
    def has_scheduled_time(self) -> bool:
        return self.pickup_time is not None and self.appointment_time is not None
    
    def effective_driver_id(self, run=None):
        if run is not None and run.driver_id is not None:
            return run.driver_id
        return self.driver_id
    
    def effective_vehicle_id(self, run=None):
        if run is not None:
            return run.vehicle_id
        return self.vehicle_id
    
    def trip_size(self, customer_is_group: bool = False) -> int:
        if customer_is_group:
            return self.group_size or 0
        return (self.guest_count or 0) + (self.attendant_count or 0) + 1
    
    def trip_count(self, customer_is_group: bool = False) -> int:
        size = self.trip_size(customer_is_group)
        return size * 2 if self.round_trip else size
    
    def run_text(self, run=None) -> str:
        if self.cab:
            return "Cab"
        if run is not None:
            return run.label
        return "(No run specified)"
    
    @property
    def adjusted_run_id(self) -> int:
        if self.cab:
            return CAB_RUN_ID
        return self.run_id if self.run_id else UNSCHEDULED_RUN_ID
    
    def __repr__(self):
        return f"<Trip(id={self.id}, run_id={self.run_id}, pickup={self.pickup_time})>"
