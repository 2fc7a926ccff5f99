"""
Run Factory.

Builds brand-new runs spanning the provider's daily business hours.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.models.run import Run

logger = logging.getLogger("paratransit.scheduling")


@dataclass(frozen=True)
class BusinessHours:
    start_hour: int = 6
    end_hour: int = 20
    
    @classmethod
    def from_settings(cls, settings) -> "BusinessHours":
        return cls(settings.business_hours_start, settings.business_hours_end)
    
    def window_for(self, day: date) -> TimeWindow:
        start = datetime.combine(day, time(self.start_hour))
        # end_hour == 24 means midnight at the end of the day
        end = datetime.combine(day, time()) + timedelta(hours=self.end_hour)
        return TimeWindow(start, end)


class RunFactory:
    
    def __init__(self, db: AsyncSession, hours: BusinessHours):
        self.db = db
        self.hours = hours
    
    def fit_window(
        self,
        day: date,
        trip_window: TimeWindow,
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
    ) -> TimeWindow:
        """
        Business hours for `day`, clipped to the gap between neighbouring runs
        and widened to cover the trip if it falls outside business hours.
        
        Callers guarantee not_before <= trip start and not_after >= trip end.
        """
        window = self.hours.window_for(day)
        start, end = window.start, window.end
        if not_before is not None:
            start = max(start, not_before)
        if not_after is not None:
            end = min(end, not_after)
        return TimeWindow(min(start, trip_window.start), max(end, trip_window.end))
    
    async def make_run(
        self,
        vehicle_id: int,
        driver_id: Optional[int],
        provider_id: int,
        day: date,
        window: Optional[TimeWindow] = None,
    ) -> Run:
        """
        Persist a new run for the vehicle on `day`.
        
        Args:
            vehicle_id: Vehicle carrying the run
            driver_id: Driver for the run (may be unassigned)
            provider_id: Owning provider
            day: Calendar date of the run
            window: Bounds to use instead of the default business hours
        
        Returns:
            The flushed Run
        """
        window = window or self.hours.window_for(day)
        run = Run(
            provider_id=provider_id,
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            date=day,
            scheduled_start_time=window.start,
            scheduled_end_time=window.end,
            complete=False,
            paid=True,
        )
        self.db.add(run)
        await self.db.flush()
        
        logger.info(
            "Created run",
            extra={"run_id": run.id, "vehicle_id": vehicle_id, "driver_id": driver_id, "window": str(window)}
        )
        return run
