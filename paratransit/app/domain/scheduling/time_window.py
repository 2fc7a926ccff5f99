"""
Time window value type used for run and trip overlap comparisons.
"""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class TimeWindow:
    """A closed [start, end] interval of naive local datetimes."""
    start: datetime
    end: datetime
    
    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")
    
    @classmethod
    def for_trip(cls, trip) -> "TimeWindow":
        return cls(trip.pickup_time, trip.appointment_time)
    
    @classmethod
    def for_run(cls, run) -> "TimeWindow":
        return cls(run.scheduled_start_time, run.scheduled_end_time)
    
    @property
    def date(self) -> date:
        return self.start.date()
    
    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and self.end >= other.end
    
    def overlaps(self, other: "TimeWindow") -> bool:
        """Strict overlap; windows that only touch at an endpoint do not overlap."""
        return self.start < other.end and other.start < self.end
    
    def intersects(self, other: "TimeWindow") -> bool:
        """Inclusive intersection; touching endpoints count."""
        return self.start <= other.end and other.start <= self.end
    
    def covering(self, other: "TimeWindow") -> "TimeWindow":
        return TimeWindow(min(self.start, other.start), max(self.end, other.end))
    
    def __str__(self):
        return f"{self.start:%Y-%m-%d %H:%M}-{self.end:%H:%M}"
