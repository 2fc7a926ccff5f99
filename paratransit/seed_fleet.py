"""
Database seeding script for a demo provider.

Creates one provider with a customer and two vehicles so trips can be
booked through the API right away.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from paratransit.app.db.session import AsyncSessionLocal, engine, Base
from paratransit.app.models.provider import Provider
from paratransit.app.models.customer import Customer
from paratransit.app.models.vehicle import Vehicle
from paratransit.app.models.run import Run
from paratransit.app.models.repeating_trip import RepeatingTrip
from paratransit.app.models.trip import Trip
from sqlalchemy import select


async def seed_fleet():
    """
    Seed a provider and its fleet.
    
    Creates:
    - 1 provider
    - 1 individual customer
    - 2 vehicles (8 and 12 seats)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    async with AsyncSessionLocal() as db:
        print("🌱 Starting fleet seeding...")
        
        result = await db.execute(
            select(Provider).where(Provider.name == "Demo Transit")
        )
        existing = result.scalar_one_or_none()
        
        if existing:
            print(f"ℹ️  Provider already exists (id={existing.id}), skipping seeding")
            return
        
        provider = Provider(name="Demo Transit", allow_trip_entry_from_runs_page=False)
        db.add(provider)
        await db.flush()
        print(f"✅ Created provider (id={provider.id})")
        
        customer = Customer(provider_id=provider.id, first_name="Ada", last_name="Rider", group=False)
        db.add(customer)
        
        for name, seats in (("Van 1", 8), ("Bus 2", 12)):
            db.add(Vehicle(provider_id=provider.id, name=name, seating_capacity=seats, active=True))
        
        await db.commit()
        print(f"✅ Created customer (id={customer.id}) and 2 vehicles")
        print("\n🎉 Fleet seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_fleet())
