"""
Run database model.

A run is one vehicle + driver's block of work on a single date. Trips point
at their run; the run's trip list is always derived by query.
"""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from paratransit.app.db.session import Base

# Pseudo run ids used when grouping trips for display
CAB_RUN_ID = -1
UNSCHEDULED_RUN_ID = -2


class Run(Base):
    """
    Run model.
    
    scheduled_start_time and scheduled_end_time are naive local datetimes
    on the run's date; runs never cross midnight.
    """
    __tablename__ = "runs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    provider_id = Column(Integer, ForeignKey('providers.id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=True, index=True)
    driver_id = Column(Integer, nullable=True, index=True)
    
    name = Column(String(100), nullable=True)
    date = Column(Date, nullable=False, index=True)
    scheduled_start_time = Column(DateTime, nullable=False, index=True)
    scheduled_end_time = Column(DateTime, nullable=False)
    
    start_odometer = Column(Integer, nullable=True)
    end_odometer = Column(Integer, nullable=True)
    
    complete = Column(Boolean, default=False, nullable=False)
    paid = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __table_args__ = (
        CheckConstraint("scheduled_start_time <= scheduled_end_time", name="ck_runs_start_before_end"),
    )
    
    @property
    def label(self) -> str:
        if self.name:
            return self.name
        start = self.scheduled_start_time.strftime("%I:%M%p").lstrip("0").lower()
        end = self.scheduled_end_time.strftime("%I:%M%p").lstrip("0").lower()
        return f"{start}-{end}"
    
    def contains(self, start, end) -> bool:
        return self.scheduled_start_time <= start and self.scheduled_end_time >= end
    
    def __repr__(self):
        return (
            f"<Run(id={self.id}, vehicle_id={self.vehicle_id}, driver_id={self.driver_id}, "
            f"{self.scheduled_start_time}-{self.scheduled_end_time})>"
        )
