"""
Vehicle database model.

Vehicles carry the seating capacity that run assignment is checked against.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
from paratransit.app.db.session import Base


class Vehicle(Base):
    __tablename__ = "vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    provider_id = Column(Integer, ForeignKey('providers.id'), nullable=False, index=True)
    
    name = Column(String(100), nullable=False)
    vin = Column(String(17), nullable=True)
    
    # Passenger seats, driver excluded
    seating_capacity = Column(Integer, nullable=False, default=0)
    
    active = Column(Boolean, default=True, nullable=False, index=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    @validates("vin")
    def validate_vin(self, key, vin):
        if vin is None:
            return vin
        if len(vin) != 17:
            raise ValueError("VIN must be exactly 17 characters")
        if set(vin.upper()) & {"I", "O", "Q"}:
            raise ValueError("VIN may not contain I, O or Q")
        return vin
    
    def __repr__(self):
        return f"<Vehicle(id={self.id}, name='{self.name}', seats={self.seating_capacity})>"
