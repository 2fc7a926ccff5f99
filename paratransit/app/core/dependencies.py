"""
Shared FastAPI dependencies.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.core.clock import Clock, system_clock
from paratransit.app.db.session import get_db
from paratransit.app.domain.scheduling.trip_scheduler import TripScheduler


def get_clock() -> Clock:
    """Wall clock used for recurrence cutoffs; overridden in tests."""
    return system_clock


async def get_scheduler(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TripScheduler:
    return TripScheduler(db, clock=clock)
