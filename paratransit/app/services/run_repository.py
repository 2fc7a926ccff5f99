"""
Run repository.

Transactional queries and mutations over runs, scoped by vehicle and provider.
Every read used for a scheduling decision locks the rows it returns
(SELECT ... FOR UPDATE) on databases that support it.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip


class RunRepository:
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    def _scoped(self, vehicle_id: int, provider_id: int):
        return (
            select(Run)
            .where(Run.vehicle_id == vehicle_id, Run.provider_id == provider_id)
            .with_for_update()
        )
    
    async def get(self, run_id: int) -> Optional[Run]:
        return await self.db.get(Run, run_id)
    
    async def find_containing(self, vehicle_id: int, provider_id: int, window: TimeWindow) -> Optional[Run]:
        """First run (by start) whose bounds fully contain the window."""
        result = await self.db.execute(
            self._scoped(vehicle_id, provider_id)
            .where(Run.scheduled_start_time <= window.start, Run.scheduled_end_time >= window.end)
            .order_by(Run.scheduled_start_time, Run.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
    
    async def find_previous(self, vehicle_id: int, provider_id: int, at: datetime) -> Optional[Run]:
        """Latest run starting at or before `at`."""
        result = await self.db.execute(
            self._scoped(vehicle_id, provider_id)
            .where(Run.scheduled_start_time <= at)
            .order_by(Run.scheduled_start_time.desc(), Run.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
    
    async def find_next(self, vehicle_id: int, provider_id: int, after: datetime) -> Optional[Run]:
        """Earliest run starting strictly after `after`."""
        result = await self.db.execute(
            self._scoped(vehicle_id, provider_id)
            .where(Run.scheduled_start_time > after)
            .order_by(Run.scheduled_start_time, Run.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
    
    async def find_overlapping(
        self,
        vehicle_id: int,
        provider_id: int,
        window: TimeWindow,
        exclude_ids: Iterable[int] = (),
    ) -> List[Run]:
        """Runs whose bounds strictly overlap the window."""
        stmt = self._scoped(vehicle_id, provider_id).where(
            Run.scheduled_start_time < window.end,
            Run.scheduled_end_time > window.start,
        )
        exclude_ids = [run_id for run_id in exclude_ids if run_id is not None]
        if exclude_ids:
            stmt = stmt.where(Run.id.not_in(exclude_ids))
        result = await self.db.execute(stmt.order_by(Run.scheduled_start_time, Run.id))
        return list(result.scalars().all())
    
    async def for_vehicle_on_date(self, vehicle_id: int, provider_id: int, day: date) -> List[Run]:
        result = await self.db.execute(
            self._scoped(vehicle_id, provider_id)
            .where(Run.date == day)
            .order_by(Run.scheduled_start_time, Run.id)
        )
        return list(result.scalars().all())
    
    async def search(
        self,
        vehicle_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        day: Optional[date] = None,
        driver_id: Optional[int] = None,
    ) -> List[Run]:
        stmt = select(Run)
        if vehicle_id is not None:
            stmt = stmt.where(Run.vehicle_id == vehicle_id)
        if provider_id is not None:
            stmt = stmt.where(Run.provider_id == provider_id)
        if day is not None:
            stmt = stmt.where(Run.date == day)
        if driver_id is not None:
            stmt = stmt.where(Run.driver_id == driver_id)
        result = await self.db.execute(stmt.order_by(Run.scheduled_start_time, Run.id))
        return list(result.scalars().all())
    
    async def first_trip(self, run_id: int, exclude_trip_id: Optional[int] = None) -> Optional[Trip]:
        """Trip on the run with the earliest pickup."""
        stmt = select(Trip).where(Trip.run_id == run_id, Trip.pickup_time.is_not(None))
        if exclude_trip_id is not None:
            stmt = stmt.where(Trip.id != exclude_trip_id)
        result = await self.db.execute(stmt.order_by(Trip.pickup_time, Trip.id).limit(1))
        return result.scalar_one_or_none()
    
    async def last_trip(self, run_id: int, exclude_trip_id: Optional[int] = None) -> Optional[Trip]:
        """Trip on the run with the latest appointment."""
        stmt = select(Trip).where(Trip.run_id == run_id, Trip.appointment_time.is_not(None))
        if exclude_trip_id is not None:
            stmt = stmt.where(Trip.id != exclude_trip_id)
        result = await self.db.execute(stmt.order_by(Trip.appointment_time.desc(), Trip.id.desc()).limit(1))
        return result.scalar_one_or_none()
    
    async def trip_count(self, run_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Trip.id)).where(Trip.run_id == run_id)
        )
        return result.scalar()
    
    async def trip_ids(self, run_id: int) -> List[int]:
        result = await self.db.execute(select(Trip.id).where(Trip.run_id == run_id).order_by(Trip.id))
        return list(result.scalars().all())
    
    async def reassign_trips(self, from_run_id: int, to_run_id: int) -> int:
        """Point every trip of one run at another. Returns the number moved."""
        result = await self.db.execute(
            update(Trip)
            .where(Trip.run_id == from_run_id)
            .values(run_id=to_run_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
    
    async def delete(self, run: Run) -> None:
        await self.db.delete(run)
        await self.db.flush()
    
    async def delete_if_empty(self, run_id: Optional[int]) -> bool:
        """Destroy a run nothing points at any more. Missing runs are a no-op."""
        if run_id is None:
            return False
        run = await self.get(run_id)
        if run is None or await self.trip_count(run_id):
            return False
        await self.delete(run)
        return True
