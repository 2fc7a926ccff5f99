"""
Field-level validation for trips, independent of run assignment.
"""

from typing import Optional

from paratransit.app.domain.scheduling.errors import ValidationErrors
from paratransit.app.models.provider import Provider
from paratransit.app.models.trip import Trip

BLANK = "can't be blank"


def allow_addressless_trip(trip: Trip, provider: Optional[Provider]) -> bool:
    """
    Trips dropped straight onto a run may skip addresses and times.
    
    The provider comes from the customer, so without a customer the whole
    trip is invalid anyway; address errors wait until there is one.
    """
    if trip.run_id is None:
        return False
    return trip.customer_id is None or (provider is not None and provider.allow_trip_entry_from_runs_page)


def validate_trip_fields(trip: Trip, provider: Optional[Provider]) -> ValidationErrors:
    errors = ValidationErrors()
    addressless = allow_addressless_trip(trip, provider)
    
    if trip.customer_id is None:
        errors.add("customer_id", BLANK)
    if not trip.trip_purpose:
        errors.add("trip_purpose", BLANK)
    
    if not addressless:
        for name in ("pickup_time", "appointment_time", "pickup_address", "dropoff_address"):
            if getattr(trip, name) in (None, ""):
                errors.add(name, BLANK)
    
    if (trip.guest_count or 0) < 0:
        errors.add("guest_count", "must be greater than or equal to 0")
    if (trip.attendant_count or 0) < 0:
        errors.add("attendant_count", "must be greater than or equal to 0")
    if trip.mileage is not None and trip.mileage <= 0:
        errors.add("mileage", "must be greater than 0")
    
    if trip.has_scheduled_time and trip.appointment_time < trip.pickup_time:
        errors.add("appointment_time", "must be at or after the pickup time")
    
    return errors
