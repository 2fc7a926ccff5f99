"""
Vehicle scheduling locks.

Run resolution reads and then rewrites a vehicle's runs for a day, so two
scheduling operations for the same vehicle and date must not interleave.
Within one process this is an asyncio.Lock per (vehicle, date); across
processes the row locks taken by RunRepository serialize writers.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import Dict, Optional, Tuple

LockKey = Tuple[Optional[int], Optional[date]]


class VehicleScheduleLock:
    
    def __init__(self):
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._users: Dict[LockKey, int] = {}
    
    def is_locked(self, vehicle_id: Optional[int], day: Optional[date]) -> bool:
        lock = self._locks.get((vehicle_id, day))
        return lock is not None and lock.locked()
    
    @asynccontextmanager
    async def hold(self, vehicle_id: Optional[int], day: Optional[date]):
        """
        Hold the lock for a vehicle's day.
        
        Trips without a vehicle or date never touch runs and are not serialized.
        """
        if vehicle_id is None or day is None:
            yield
            return
        key = (vehicle_id, day)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once nobody holds or waits for it
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


# Process-wide registry shared by every scheduler instance
vehicle_schedule_lock = VehicleScheduleLock()
