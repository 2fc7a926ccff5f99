"""
Trip-related enumerations.
"""

import enum


class TripResultCode(str, enum.Enum):
    """Outcome codes recorded against a trip. No result means pending."""
    COMPLETE = "COMP"  # Trip was carried out
    TURNED_DOWN = "TD"  # Provider could not serve the request
    NO_SHOW = "NS"  # Customer did not show at pickup
    CANCELLED = "CANC"  # Cancelled ahead of time
    LATE_CANCEL = "LTCANC"  # Cancelled too late to reuse the seat
    UNMET_NEED = "UNMET"  # Requested but outside service capability


class Weekday(int, enum.Enum):
    """Python weekday numbers (Monday == 0)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6
