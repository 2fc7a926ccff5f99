"""
Capacity Validator.

Answers whether a vehicle still has enough open seats over a trip's window,
given every other scheduled trip already riding on that vehicle's runs.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.models.customer import Customer
from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip
from paratransit.app.models.vehicle import Vehicle
from paratransit.app.services import trip_repository as trips


class CapacityValidator:
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def open_seating_capacity(
        self,
        vehicle_id: int,
        window: TimeWindow,
        ignore_trip_id: Optional[int] = None,
    ) -> int:
        """
        Minimum number of free seats on the vehicle at any moment of the window.
        
        A trip occupies its seats over its whole [pickup, appointment]
        interval, endpoints included. The trip being (re)validated is
        excluded via ignore_trip_id.
        """
        vehicle = await self.db.get(Vehicle, vehicle_id)
        if vehicle is None:
            return 0
        
        stmt = (
            select(Trip, Customer.group)
            .join(Run, Trip.run_id == Run.id)
            .outerjoin(Customer, Trip.customer_id == Customer.id)
            .where(
                Run.vehicle_id == vehicle_id,
                trips.not_for_cab(),
                trips.scheduled(),
                trips.has_scheduled_time(),
                trips.during(window.start, window.end),
            )
        )
        if ignore_trip_id is not None:
            stmt = stmt.where(Trip.id != ignore_trip_id)
        rows = (await self.db.execute(stmt)).all()
        
        occupied = [
            (TimeWindow(trip.pickup_time, trip.appointment_time), trip.trip_size(bool(group)))
            for trip, group in rows
        ]
        
        # Occupancy only rises at a pickup, so checking the window start and
        # every pickup inside the window finds the peak.
        checkpoints = {window.start}
        checkpoints.update(
            occupancy.start for occupancy, _ in occupied
            if window.start <= occupancy.start <= window.end
        )
        peak = 0
        for moment in checkpoints:
            load = sum(size for occupancy, size in occupied if occupancy.start <= moment <= occupancy.end)
            peak = max(peak, load)
        
        return (vehicle.seating_capacity or 0) - peak
    
    async def capacity_ok(
        self,
        vehicle_id: int,
        window: TimeWindow,
        trip_size: int,
        ignore_trip_id: Optional[int] = None,
    ) -> bool:
        return await self.open_seating_capacity(vehicle_id, window, ignore_trip_id) >= trip_size
