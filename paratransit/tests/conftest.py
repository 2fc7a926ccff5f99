"""
Centralized Test Configuration.
"""

import pytest
from types import SimpleNamespace
from httpx import AsyncClient, ASGITransport

from paratransit.app.main import app
from paratransit.app.db.session import get_db, Base
from paratransit.app.core.clock import FixedClock
from paratransit.app.core.dependencies import get_clock
from paratransit.app.domain.scheduling.run_factory import BusinessHours
from paratransit.app.domain.scheduling.trip_scheduler import TripScheduler
from paratransit.app.models.customer import Customer
from paratransit.app.models.provider import Provider
from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip
from paratransit.app.models.vehicle import Vehicle
from paratransit.app.services.vehicle_locking import VehicleScheduleLock

from paratransit.tests.helpers import NOW, TestingSessionLocal, engine


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture(autouse=True)
def apply_overrides(clock):
    """Route the app's sessions and clock to the test doubles."""
    
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield
    
    app.dependency_overrides = {}

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def fleet(db_session):
    """
    One provider with an individual customer, a group customer and two vehicles.
    
    Only ids are handed out: a rejected save rolls the session back, which
    expires every loaded object.
    """
    provider = Provider(name="County Transit")
    db_session.add(provider)
    await db_session.flush()
    
    customer = Customer(provider_id=provider.id, first_name="Ada", last_name="Rider")
    group_customer = Customer(provider_id=provider.id, first_name="Day", last_name="Program", group=True)
    van = Vehicle(provider_id=provider.id, name="Van 1", seating_capacity=4)
    bus = Vehicle(provider_id=provider.id, name="Bus 2", seating_capacity=12)
    db_session.add_all([customer, group_customer, van, bus])
    await db_session.commit()
    
    return SimpleNamespace(
        provider_id=provider.id,
        customer_id=customer.id,
        group_customer_id=group_customer.id,
        vehicle_id=van.id,
        bus_id=bus.id,
    )


@pytest.fixture
def scheduler(db_session, clock):
    return TripScheduler(
        db_session,
        clock=clock,
        hours=BusinessHours(6, 20),
        lookahead_days=20,
        locks=VehicleScheduleLock(),
    )


@pytest.fixture
def make_run(db_session, fleet):
    async def _make_run(start, end, driver_id=None, vehicle_id=None, **extra):
        run = Run(
            provider_id=fleet.provider_id,
            vehicle_id=vehicle_id or fleet.vehicle_id,
            driver_id=driver_id,
            date=start.date(),
            scheduled_start_time=start,
            scheduled_end_time=end,
            **extra,
        )
        db_session.add(run)
        await db_session.commit()
        return run
    return _make_run


@pytest.fixture
def make_trip(db_session, fleet):
    """Insert a trip directly onto a run, bypassing scheduling."""
    async def _make_trip(pickup, appointment, run=None, **extra):
        attrs = dict(
            provider_id=fleet.provider_id,
            customer_id=fleet.customer_id,
            pickup_time=pickup,
            appointment_time=appointment,
            pickup_address="1 Elm St",
            dropoff_address="9 Oak Ave",
            trip_purpose="Medical",
            run_id=run.id if run is not None else None,
        )
        attrs.update(extra)
        trip = Trip(**attrs)
        db_session.add(trip)
        await db_session.commit()
        return trip
    return _make_trip


@pytest.fixture
def new_trip(fleet):
    """Build an unsaved trip for the scheduler."""
    def _new_trip(pickup, appointment, **extra):
        attrs = dict(
            provider_id=fleet.provider_id,
            customer_id=fleet.customer_id,
            vehicle_id=fleet.vehicle_id,
            pickup_time=pickup,
            appointment_time=appointment,
            pickup_address="1 Elm St",
            dropoff_address="9 Oak Ave",
            trip_purpose="Medical",
            guest_count=0,
            attendant_count=0,
            group_size=0,
        )
        attrs.update(extra)
        return Trip(**attrs)
    return _new_trip
