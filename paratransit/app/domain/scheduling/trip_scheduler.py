"""
Trip-to-Run Scheduler.

Saves trips: validates them, finds or builds the run that carries them,
checks the run's driver and seating capacity, keeps recurring series in
step, and commits everything as one transaction.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.core.clock import Clock, system_clock
from paratransit.app.core.config import settings
from paratransit.app.core.exceptions import RunConflictError
from paratransit.app.domain.scheduling.capacity import CapacityValidator
from paratransit.app.domain.scheduling.errors import BASE, SaveResult, ValidationErrors
from paratransit.app.domain.scheduling.recurring_series import RecurrenceRequest, RecurringSeriesManager
from paratransit.app.domain.scheduling.run_factory import BusinessHours, RunFactory
from paratransit.app.domain.scheduling.run_resolver import RunPlan, RunResolver
from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.domain.scheduling.trip_validation import validate_trip_fields
from paratransit.app.models.customer import Customer
from paratransit.app.models.provider import Provider
from paratransit.app.models.trip import Trip
from paratransit.app.services.run_repository import RunRepository
from paratransit.app.services.vehicle_locking import VehicleScheduleLock, vehicle_schedule_lock

logger = logging.getLogger("paratransit.scheduling")

DRIVER_MISMATCH = "is not the driver for the selected vehicle during this vehicle's run."
NO_CAPACITY = "There's not enough open capacity on this run to accommodate this trip"

# Edits to these fields send an already-scheduled trip back through run resolution
SCHEDULING_FIELDS = ("pickup_time", "appointment_time", "vehicle_id", "driver_id", "cab")


class TripScheduler:
    
    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = system_clock,
        hours: Optional[BusinessHours] = None,
        lookahead_days: Optional[int] = None,
        locks: VehicleScheduleLock = vehicle_schedule_lock,
    ):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.runs = RunRepository(db)
        self.factory = RunFactory(db, hours or BusinessHours.from_settings(settings))
        self.resolver = RunResolver(self.runs, self.factory)
        self.capacity = CapacityValidator(db)
        self.series = RecurringSeriesManager(
            db,
            self.runs,
            clock,
            settings.recurrence_lookahead_days if lookahead_days is None else lookahead_days,
            self.place_instance,
        )
    
    async def save(self, trip: Trip, recurrence: Optional[RecurrenceRequest] = None) -> SaveResult:
        """
        Create or update a trip.
        
        Args:
            trip: New (transient) or loaded trip carrying the desired values
            recurrence: Recurrence parameters; None leaves an existing series as is
        
        Returns:
            SaveResult. On failure nothing is written and every staged run
            change is rolled back.
        """
        async with self.locks.hold(trip.vehicle_id, trip.date):
            trip_id = trip.id
            try:
                result = await self._save(trip, recurrence)
            except Exception:
                await self.db.rollback()
                raise
            if result.ok:
                await self.db.commit()
            else:
                # Rollback expires the trip; nothing below may touch its attributes
                logger.info(
                    "Trip rejected",
                    extra={"trip_id": trip_id, "errors": result.errors.as_dict()}
                )
                await self.db.rollback()
        return result
    
    async def destroy(self, trip: Trip) -> None:
        """Delete a trip. Its run stays in place."""
        await self.db.delete(trip)
        await self.db.commit()
    
    async def place_instance(self, trip: Trip) -> ValidationErrors:
        """Schedule a trip generated from a recurring series inside the current transaction."""
        return await self._place(trip, ValidationErrors())
    
    async def _save(self, trip: Trip, recurrence: Optional[RecurrenceRequest]) -> SaveResult:
        is_new = trip.id is None
        errors = ValidationErrors()
        
        previous_run_id = None
        if not is_new and self._needs_new_run(trip):
            previous_run_id = trip.run_id
            trip.run_id = None
        
        if recurrence is not None and recurrence.is_recurring and trip.pickup_time is None:
            errors.add("pickup_time", "is required for a repeating trip")
        
        errors = await self._place(trip, errors)
        if errors:
            return SaveResult(False, trip, errors)
        
        if previous_run_id is not None and previous_run_id != trip.run_id:
            await self.runs.delete_if_empty(previous_run_id)
        
        instantiated = []
        if not trip.via_repeating_trip:
            await self.series.before_save(trip, recurrence, is_new)
            instantiated = await self.series.after_save(trip)
        
        return SaveResult(True, trip, errors, instantiated)
    
    def _needs_new_run(self, trip: Trip) -> bool:
        state = inspect(trip)
        if state.attrs.run_id.history.has_changes():
            # Caller chose the run explicitly
            return False
        return any(state.attrs[name].history.has_changes() for name in SCHEDULING_FIELDS)
    
    async def _place(self, trip: Trip, errors: ValidationErrors) -> ValidationErrors:
        """Validate, resolve and (if valid) apply the trip's run assignment, then flush."""
        provider = await self.db.get(Provider, trip.provider_id) if trip.provider_id else None
        errors.extend(validate_trip_fields(trip, provider))
        
        plan, carrier_driver_id, carrier_vehicle_id = await self._plan_run(trip, errors)
        
        if carrier_driver_id is not None and trip.driver_id is not None and carrier_driver_id != trip.driver_id:
            errors.add("driver_id", DRIVER_MISMATCH)
        
        if carrier_vehicle_id is not None and self._has_window(trip):
            customer = await self.db.get(Customer, trip.customer_id) if trip.customer_id else None
            size = trip.trip_size(bool(customer and customer.group))
            if not await self.capacity.capacity_ok(carrier_vehicle_id, TimeWindow.for_trip(trip), size, trip.id):
                errors.add(BASE, NO_CAPACITY)
        
        if errors:
            return errors
        
        if plan is not None:
            run = await self.resolver.apply(plan)
            trip.run_id = run.id
        self.db.add(trip)
        await self.db.flush()
        return errors
    
    async def _plan_run(self, trip: Trip, errors: ValidationErrors) -> Tuple[Optional[RunPlan], Optional[int], Optional[int]]:
        """
        Returns the plan (None when the run is already fixed or the trip is
        not scheduled onto runs) plus the driver and vehicle of the carrying run.
        """
        if trip.run_id is not None:
            run = await self.runs.get(trip.run_id)
            if run is None:
                errors.add("run_id", "does not exist")
                return None, None, None
            return None, run.driver_id, run.vehicle_id
        
        if trip.cab or trip.vehicle_id is None or trip.provider_id is None:
            return None, None, None
        if not self._has_window(trip):
            # Missing or inverted times are reported by field validation
            return None, None, None
        
        try:
            plan = await self.resolver.plan(
                trip.vehicle_id,
                trip.provider_id,
                TimeWindow.for_trip(trip),
                driver_id=trip.driver_id,
                trip_id=trip.id,
            )
        except RunConflictError as exc:
            errors.add(BASE, str(exc))
            return None, None, trip.vehicle_id
        return plan, plan.carrier_driver_id, trip.vehicle_id
    
    @staticmethod
    def _has_window(trip: Trip) -> bool:
        return trip.has_scheduled_time and trip.appointment_time >= trip.pickup_time
