"""
Customer database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from paratransit.app.db.session import Base


class Customer(Base):
    """
    Customer model.
    
    A group customer (e.g. a day program) books trips whose size is given
    explicitly by the trip's group_size instead of being counted from
    guests and attendants.
    """
    __tablename__ = "customers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    provider_id = Column(Integer, ForeignKey('providers.id'), nullable=False, index=True)
    
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    group = Column(Boolean, default=False, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    @property
    def name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
    
    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', group={self.group})>"
