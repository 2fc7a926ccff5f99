"""
Provider database model.

A provider is the transportation agency that owns vehicles, runs and trips.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from paratransit.app.db.session import Base


class Provider(Base):
    __tablename__ = "providers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    
    # Lets dispatchers drop bare trips straight onto a run
    allow_trip_entry_from_runs_page = Column(Boolean, default=False, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Provider(id={self.id}, name='{self.name}')>"
