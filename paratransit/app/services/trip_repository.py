"""
Trip query predicates and lookups.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy import and_, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip
from paratransit.app.models.trip_enums import TripResultCode


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time())


# Predicates

def for_provider(provider_id: int):
    return Trip.provider_id == provider_id


def for_date(day: date):
    return and_(Trip.pickup_time >= _day_start(day), Trip.pickup_time < _day_start(day + timedelta(days=1)))


def for_date_range(start_date: date, end_date: date):
    return and_(Trip.pickup_time >= _day_start(start_date), Trip.pickup_time < _day_start(end_date))


def not_for_cab():
    return Trip.cab.is_(False)


def scheduled():
    return or_(Trip.trip_result.is_(None), Trip.trip_result == TripResultCode.COMPLETE)


def completed():
    return Trip.trip_result == TripResultCode.COMPLETE


def turned_down():
    return Trip.trip_result == TripResultCode.TURNED_DOWN


def incomplete():
    return Trip.trip_result.is_(None)


def called_back():
    return Trip.called_back_at.is_not(None)


def not_called_back():
    return Trip.called_back_at.is_(None)


def repeating_based_on(repeating_trip_id: int):
    return Trip.repeating_trip_id == repeating_trip_id


def prior_to(moment: datetime):
    return Trip.pickup_time < moment


def after(moment: datetime):
    return Trip.pickup_time > moment


def has_scheduled_time():
    return and_(Trip.pickup_time.is_not(None), Trip.appointment_time.is_not(None))


def during(pickup_time: datetime, appointment_time: datetime):
    """Trips whose [pickup, appointment] intersects the window, endpoints included."""
    return not_(
        or_(
            and_(Trip.pickup_time < pickup_time, Trip.appointment_time < pickup_time),
            and_(Trip.pickup_time > appointment_time, Trip.appointment_time > appointment_time),
        )
    )


class TripRepository:
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get(self, trip_id: int) -> Optional[Trip]:
        return await self.db.get(Trip, trip_id)
    
    async def search(
        self,
        provider_id: Optional[int] = None,
        day: Optional[date] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> List[Trip]:
        stmt = select(Trip)
        if vehicle_id is not None or driver_id is not None:
            # Vehicle and driver come from the run; cab trips never match
            stmt = stmt.join(Run, Trip.run_id == Run.id).where(not_for_cab())
            if vehicle_id is not None:
                stmt = stmt.where(Run.vehicle_id == vehicle_id)
            if driver_id is not None:
                stmt = stmt.where(Run.driver_id == driver_id)
        if provider_id is not None:
            stmt = stmt.where(for_provider(provider_id))
        if day is not None:
            stmt = stmt.where(for_date(day))
        result = await self.db.execute(stmt.order_by(Trip.pickup_time, Trip.id))
        return list(result.scalars().all())
    
    async def series(self, repeating_trip_id: int, *criteria) -> List[Trip]:
        result = await self.db.execute(
            select(Trip)
            .where(repeating_based_on(repeating_trip_id), *criteria)
            .order_by(Trip.pickup_time, Trip.id)
        )
        return list(result.scalars().all())
