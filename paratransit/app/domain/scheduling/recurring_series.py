"""
Recurring Series Manager.

Keeps a RepeatingTrip template and its generated Trip instances consistent
when any trip of the series is saved.

Per save, a trip is in one of four recurrence states:

    STANDALONE   no template, not recurring
    LINKING      becoming recurring on this save; a template is created
    LINKED       has a template and stays recurring; template attributes are
                 refreshed and, if they changed, future instances regenerated
    DETACHING    has a template but is no longer recurring; future instances
                 are destroyed, the rest unlinked, the template removed

"Future" always means pickup strictly after the clock's current time.
Instances that are in the past or have been called back are never deleted.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.core.clock import Clock
from paratransit.app.domain.scheduling.errors import ValidationErrors
from paratransit.app.models.repeating_trip import DAY_COLUMNS, TRIP_ATTRIBUTES, RepeatingTrip
from paratransit.app.models.trip import Trip
from paratransit.app.models.trip_enums import Weekday
from paratransit.app.services import trip_repository as trips
from paratransit.app.services.run_repository import RunRepository
from paratransit.app.services.trip_repository import TripRepository

logger = logging.getLogger("paratransit.recurrence")

InstancePlacer = Callable[[Trip], Awaitable[ValidationErrors]]


class SeriesState(str, enum.Enum):
    STANDALONE = "STANDALONE"
    LINKING = "LINKING"
    LINKED = "LINKED"
    DETACHING = "DETACHING"


@dataclass(frozen=True)
class RecurrenceRequest:
    """Recurrence parameters submitted with a trip save."""
    weekdays: FrozenSet[Weekday] = field(default_factory=frozenset)
    interval: int = 1
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    customer_informed: bool = False
    
    @property
    def is_recurring(self) -> bool:
        return bool(self.weekdays)
    
    @classmethod
    def stop(cls) -> "RecurrenceRequest":
        return cls()
    
    @classmethod
    def from_template(cls, template: RepeatingTrip) -> "RecurrenceRequest":
        return cls(
            weekdays=frozenset(template.weekdays),
            interval=template.schedule_interval or 1,
            driver_id=template.driver_id,
            vehicle_id=template.vehicle_id,
            customer_informed=template.customer_informed,
        )


def series_state(trip: Trip, template: Optional[RepeatingTrip], recurrence: Optional[RecurrenceRequest]) -> SeriesState:
    """Classify a save. `recurrence` None means the caller left recurrence untouched."""
    if template is None:
        if recurrence is not None and recurrence.is_recurring and not trip.via_repeating_trip:
            return SeriesState.LINKING
        return SeriesState.STANDALONE
    if recurrence is None or recurrence.is_recurring:
        return SeriesState.LINKED
    return SeriesState.DETACHING


def times_on(
    pickup: datetime, appointment: Optional[datetime], day: date
) -> Tuple[datetime, Optional[datetime]]:
    """Move a pickup/appointment pair to `day`, keeping an appointment that falls on the following day there."""
    moved_appointment = None
    if appointment is not None:
        offset = appointment.date() - pickup.date()
        moved_appointment = datetime.combine(day + offset, appointment.time())
    return datetime.combine(day, pickup.time()), moved_appointment


def template_attributes(
    trip: Trip,
    recurrence: RecurrenceRequest,
    template: Optional[RepeatingTrip] = None,
) -> Dict[str, object]:
    """
    Snapshot of the trip plus schedule, as stored on its RepeatingTrip.
    
    Any trip of an existing series may be the one being edited, so an
    existing template keeps its start date and anchor day and only takes
    over the trip's time of day.
    """
    attrs = {name: getattr(trip, name) for name in TRIP_ATTRIBUTES}
    if template is not None and template.pickup_time is not None:
        attrs["pickup_time"], attrs["appointment_time"] = times_on(
            trip.pickup_time, trip.appointment_time, template.pickup_time.date()
        )
        attrs["start_date"] = template.start_date
    else:
        attrs["start_date"] = trip.pickup_time.date()
    attrs["driver_id"] = recurrence.driver_id
    attrs["vehicle_id"] = recurrence.vehicle_id
    attrs["customer_informed"] = recurrence.customer_informed
    attrs["schedule_interval"] = max(recurrence.interval or 1, 1)
    for day, column in DAY_COLUMNS:
        attrs[column] = day in recurrence.weekdays
    return attrs


class RecurringSeriesManager:
    
    def __init__(
        self,
        db: AsyncSession,
        runs: RunRepository,
        clock: Clock,
        lookahead_days: int,
        place_instance: InstancePlacer,
    ):
        self.db = db
        self.runs = runs
        self.clock = clock
        self.lookahead_days = lookahead_days
        self.place_instance = place_instance
    
    async def load_template(self, trip: Trip) -> Optional[RepeatingTrip]:
        if trip.repeating_trip_id is None:
            return None
        return await self.db.get(RepeatingTrip, trip.repeating_trip_id)
    
    async def before_save(self, trip: Trip, recurrence: Optional[RecurrenceRequest], is_new: bool) -> SeriesState:
        """
        Bring the template in line with a trip that has just been placed.
        
        The trip must already be flushed so it can be told apart from the
        instances being pruned.
        """
        template = await self.load_template(trip)
        state = series_state(trip, template, recurrence)
        
        if state == SeriesState.LINKING:
            template = RepeatingTrip(**template_attributes(trip, recurrence))
            self.db.add(template)
            await self.db.flush()
            trip.repeating_trip_id = template.id
            await self.db.flush()
            logger.info("Created repeating trip", extra={"repeating_trip_id": template.id, "trip_id": trip.id})
        
        elif state == SeriesState.LINKED and not is_new:
            if recurrence is None:
                recurrence = RecurrenceRequest.from_template(template)
            if self._assign(template, template_attributes(trip, recurrence, template)):
                await self.db.flush()
                await self.destroy_future_instances(template.id, keep_trip_id=trip.id)
                logger.info("Updated repeating trip", extra={"repeating_trip_id": template.id, "trip_id": trip.id})
        
        elif state == SeriesState.DETACHING:
            await self.detach(trip, template)
        
        return state
    
    async def after_save(self, trip: Trip) -> List[Trip]:
        if trip.repeating_trip_id is None or trip.via_repeating_trip:
            return []
        template = await self.load_template(trip)
        if template is None:
            return []
        return await self.instantiate(template)
    
    def _assign(self, template: RepeatingTrip, attrs: Dict[str, object]) -> bool:
        changed = False
        for name, value in attrs.items():
            if getattr(template, name) != value:
                setattr(template, name, value)
                changed = True
        return changed
    
    async def detach(self, trip: Trip, template: RepeatingTrip) -> None:
        template_id = template.id
        await self.destroy_future_instances(template_id, keep_trip_id=trip.id)
        await self.unlink_instances(template_id)
        trip.repeating_trip_id = None
        await self.db.flush()
        await self.destroy_template(template_id)
        logger.info("Detached trip from repeating trip", extra={"repeating_trip_id": template_id, "trip_id": trip.id})
    
    async def destroy_future_instances(self, repeating_trip_id: int, keep_trip_id: Optional[int] = None) -> List[int]:
        """
        Delete the series' future, not-called-back trips. Runs left empty by
        the deletion go with them.
        
        Returns:
            Ids of the destroyed trips
        """
        stmt = select(Trip.id, Trip.run_id).where(
            trips.repeating_based_on(repeating_trip_id),
            trips.after(self.clock.now()),
            trips.not_called_back(),
        )
        if keep_trip_id is not None:
            stmt = stmt.where(Trip.id != keep_trip_id)
        rows = (await self.db.execute(stmt)).all()
        
        trip_ids = [trip_id for trip_id, _ in rows]
        run_ids = {run_id for _, run_id in rows if run_id is not None}
        if not trip_ids:
            return []
        
        await self.db.execute(
            delete(Trip)
            .where(Trip.id.in_(trip_ids))
            .execution_options(synchronize_session="fetch")
        )
        for run_id in sorted(run_ids):
            await self.runs.delete_if_empty(run_id)
        
        logger.info(
            "Destroyed future instances",
            extra={"repeating_trip_id": repeating_trip_id, "trip_ids": trip_ids}
        )
        return trip_ids
    
    async def unlink_instances(self, repeating_trip_id: int) -> List[int]:
        """Clear the series reference on every trip still in the series."""
        result = await self.db.execute(
            select(Trip.id).where(trips.repeating_based_on(repeating_trip_id))
        )
        trip_ids = list(result.scalars().all())
        if trip_ids:
            await self.db.execute(
                update(Trip)
                .where(Trip.id.in_(trip_ids))
                .values(repeating_trip_id=None)
                .execution_options(synchronize_session="fetch")
            )
        return trip_ids
    
    async def destroy_template(self, repeating_trip_id: int) -> bool:
        template = await self.db.get(RepeatingTrip, repeating_trip_id)
        if template is None:
            return False
        await self.db.delete(template)
        await self.db.flush()
        return True
    
    def build_instance(self, template: RepeatingTrip, day) -> Trip:
        attrs = {name: getattr(template, name) for name in TRIP_ATTRIBUTES}
        pickup, appointment = times_on(template.pickup_time, template.appointment_time, day)
        attrs.update(
            pickup_time=pickup,
            appointment_time=appointment,
            repeating_trip_id=template.id,
            driver_id=template.driver_id,
            vehicle_id=template.vehicle_id,
            customer_informed=template.customer_informed,
        )
        instance = Trip(**attrs)
        instance.via_repeating_trip = True
        return instance
    
    async def instantiate(self, template: RepeatingTrip) -> List[Trip]:
        """
        Materialize the series up to the lookahead horizon.
        
        Dates that already have a trip in the series are skipped, so calling
        this repeatedly is harmless. An instance that cannot be placed (no
        capacity, run conflict, driver mismatch) is logged and skipped.
        """
        if template.pickup_time is None:
            return []
        now = self.clock.now()
        horizon = now.date() + timedelta(days=self.lookahead_days)
        existing = {
            trip.pickup_time.date()
            for trip in await TripRepository(self.db).series(template.id)
            if trip.pickup_time is not None
        }
        
        created = []
        for day in template.occurrences_between(now.date(), horizon):
            if day in existing:
                continue
            instance = self.build_instance(template, day)
            if instance.pickup_time <= now:
                continue
            errors = await self.place_instance(instance)
            instance.via_repeating_trip = False
            if errors:
                logger.warning(
                    "Skipped repeating trip instance",
                    extra={"repeating_trip_id": template.id, "day": day.isoformat(), "errors": errors.as_dict()}
                )
                continue
            created.append(instance)
        
        if created:
            logger.info(
                "Instantiated repeating trips",
                extra={"repeating_trip_id": template.id, "count": len(created)}
            )
        return created

