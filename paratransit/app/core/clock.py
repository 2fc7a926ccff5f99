"""
Wall-clock access for scheduling decisions.

All trip and run times are naive local datetimes, so the clock reports
naive local time as well.
"""

from datetime import date, datetime


class Clock:
    """Source of the current time."""
    
    def now(self) -> datetime:
        raise NotImplementedError
    
    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Clock pinned to a single moment (tests, replays)."""
    
    def __init__(self, moment: datetime):
        self.moment = moment
    
    def now(self) -> datetime:
        return self.moment
    
    def advance_to(self, moment: datetime) -> None:
        self.moment = moment


system_clock = SystemClock()
