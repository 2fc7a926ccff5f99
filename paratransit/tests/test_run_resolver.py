"""
Run resolution tests.

Covers reuse, extension, unification, boundary shifting and new runs, plus
the guarantee that a vehicle's runs never overlap afterwards.
"""

import pytest
from itertools import combinations
from sqlalchemy import select

from paratransit.app.domain.scheduling.run_resolver import RunAction
from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip
from paratransit.tests.helpers import at


async def runs_for(db, vehicle_id):
    result = await db.execute(
        select(Run)
        .where(Run.vehicle_id == vehicle_id)
        .order_by(Run.scheduled_start_time)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def reload_trip(db, trip_id):
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def assert_no_overlaps(runs):
    for first, second in combinations(runs, 2):
        assert not TimeWindow.for_run(first).overlaps(TimeWindow.for_run(second)), (first, second)


# Scenario A
@pytest.mark.asyncio
async def test_first_trip_creates_business_hours_run(db_session, fleet, scheduler, new_trip):
    result = await scheduler.save(new_trip(at(8, 9), at(8, 9, 30)))
    
    assert result.ok, result.errors
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert len(runs) == 1
    assert runs[0].id == result.trip.run_id
    assert runs[0].scheduled_start_time == at(8, 6)
    assert runs[0].scheduled_end_time == at(8, 20)
    assert runs[0].paid is True
    assert runs[0].complete is False


# Scenario B
@pytest.mark.asyncio
async def test_containing_run_is_reused_unchanged(db_session, fleet, scheduler, new_trip, make_run):
    r1 = await make_run(at(8, 8), at(8, 10), driver_id=1)
    r1_id = r1.id
    
    result = await scheduler.save(new_trip(at(8, 9), at(8, 9, 45)))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r1_id
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert [(r.scheduled_start_time, r.scheduled_end_time) for r in runs] == [(at(8, 8), at(8, 10))]


# Scenario C
@pytest.mark.asyncio
async def test_same_driver_runs_are_unified(db_session, fleet, scheduler, new_trip, make_run, make_trip):
    r1 = await make_run(at(8, 8), at(8, 9, 30), driver_id=1)
    r2 = await make_run(at(8, 10), at(8, 12), driver_id=1, end_odometer=1520)
    r1_id, r2_id = r1.id, r2.id
    moved = await make_trip(at(8, 10, 30), at(8, 11), run=r2)
    
    result = await scheduler.save(new_trip(at(8, 9, 15), at(8, 10, 30), driver_id=1))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r1_id
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert [r.id for r in runs] == [r1_id]
    assert runs[0].scheduled_start_time == at(8, 8)
    assert runs[0].scheduled_end_time == at(8, 12)
    assert runs[0].end_odometer == 1520
    assert await db_session.get(Run, r2_id) is None
    assert (await reload_trip(db_session, moved.id)).run_id == r1_id


# Scenario D
@pytest.mark.asyncio
async def test_different_driver_next_run_starts_later(db_session, fleet, scheduler, new_trip, make_run, make_trip):
    r1 = await make_run(at(8, 8), at(8, 9, 30), driver_id=1)
    r2 = await make_run(at(8, 10), at(8, 12), driver_id=2)
    r1_id, r2_id = r1.id, r2.id
    await make_trip(at(8, 11), at(8, 11, 30), run=r2)
    
    result = await scheduler.save(new_trip(at(8, 9, 15), at(8, 10, 30), driver_id=1))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r1_id
    r1, r2 = await runs_for(db_session, fleet.vehicle_id)
    assert (r1.id, r1.scheduled_start_time, r1.scheduled_end_time) == (r1_id, at(8, 8), at(8, 10, 30))
    assert (r2.id, r2.scheduled_start_time, r2.scheduled_end_time) == (r2_id, at(8, 10, 30), at(8, 12))


@pytest.mark.asyncio
async def test_different_driver_previous_run_ends_earlier(db_session, fleet, scheduler, new_trip, make_run, make_trip):
    r1 = await make_run(at(8, 8), at(8, 9, 30), driver_id=1)
    r2 = await make_run(at(8, 10), at(8, 12), driver_id=2)
    r1_id, r2_id = r1.id, r2.id
    await make_trip(at(8, 8), at(8, 8, 30), run=r1)
    await make_trip(at(8, 10, 15), at(8, 10, 45), run=r2)
    
    result = await scheduler.save(new_trip(at(8, 9), at(8, 10, 30), driver_id=2))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r2_id
    r1, r2 = await runs_for(db_session, fleet.vehicle_id)
    assert (r1.id, r1.scheduled_end_time) == (r1_id, at(8, 9))
    assert (r2.id, r2.scheduled_start_time, r2.scheduled_end_time) == (r2_id, at(8, 9), at(8, 12))


@pytest.mark.asyncio
async def test_irreconcilable_runs_are_a_conflict(db_session, fleet, scheduler, new_trip, make_run, make_trip):
    r1 = await make_run(at(8, 8), at(8, 9, 30), driver_id=1)
    r2 = await make_run(at(8, 10), at(8, 12), driver_id=2)
    await make_trip(at(8, 9), at(8, 9, 25), run=r1)
    await make_trip(at(8, 10, 5), at(8, 10, 40), run=r2)
    
    result = await scheduler.save(new_trip(at(8, 9, 15), at(8, 10, 30)))
    
    assert not result.ok
    assert any("neither run can be shortened" in message for message in result.errors["base"])
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert [(r.scheduled_start_time, r.scheduled_end_time) for r in runs] == [
        (at(8, 8), at(8, 9, 30)),
        (at(8, 10), at(8, 12)),
    ]


@pytest.mark.asyncio
async def test_previous_run_is_extended(db_session, fleet, scheduler, new_trip, make_run):
    r1 = await make_run(at(8, 8), at(8, 10), driver_id=1)
    r1_id = r1.id
    
    result = await scheduler.save(new_trip(at(8, 9, 30), at(8, 11)))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r1_id
    (run,) = await runs_for(db_session, fleet.vehicle_id)
    assert (run.scheduled_start_time, run.scheduled_end_time) == (at(8, 8), at(8, 11))


@pytest.mark.asyncio
async def test_next_run_is_pulled_back(db_session, fleet, scheduler, new_trip, make_run):
    r1 = await make_run(at(8, 10), at(8, 12), driver_id=1)
    r1_id = r1.id
    
    result = await scheduler.save(new_trip(at(8, 9), at(8, 10, 30)))
    
    assert result.ok, result.errors
    assert result.trip.run_id == r1_id
    (run,) = await runs_for(db_session, fleet.vehicle_id)
    assert (run.scheduled_start_time, run.scheduled_end_time) == (at(8, 9), at(8, 12))


@pytest.mark.asyncio
async def test_new_run_fills_gap_between_runs(db_session, fleet, scheduler, new_trip, make_run):
    await make_run(at(8, 8), at(8, 10), driver_id=1)
    await make_run(at(8, 14), at(8, 16), driver_id=1)
    
    result = await scheduler.save(new_trip(at(8, 11), at(8, 12), driver_id=3))
    
    assert result.ok, result.errors
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert len(runs) == 3
    middle = runs[1]
    assert middle.id == result.trip.run_id
    assert (middle.scheduled_start_time, middle.scheduled_end_time) == (at(8, 10), at(8, 14))
    assert middle.driver_id == 3
    assert_no_overlaps(runs)


@pytest.mark.asyncio
async def test_new_run_covers_trip_outside_business_hours(db_session, fleet, scheduler, new_trip):
    result = await scheduler.save(new_trip(at(8, 21), at(8, 21, 30)))
    
    assert result.ok, result.errors
    (run,) = await runs_for(db_session, fleet.vehicle_id)
    assert (run.scheduled_start_time, run.scheduled_end_time) == (at(8, 6), at(8, 21, 30))


@pytest.mark.asyncio
async def test_runs_are_never_stretched_across_midnight(db_session, fleet, scheduler, new_trip, make_run):
    await make_run(at(7, 22), at(8, 1), driver_id=1)
    
    result = await scheduler.save(new_trip(at(8, 0, 30), at(8, 1, 30)))
    
    assert not result.ok
    assert any("midnight" in message for message in result.errors["base"])
    (run,) = await runs_for(db_session, fleet.vehicle_id)
    assert run.scheduled_end_time == at(8, 1)


@pytest.mark.asyncio
async def test_plan_does_not_touch_runs(db_session, fleet, scheduler, make_run):
    r1 = await make_run(at(8, 8), at(8, 9, 30), driver_id=1)
    r2 = await make_run(at(8, 10), at(8, 12), driver_id=1)
    r1_id, r2_id = r1.id, r2.id
    
    plan = await scheduler.resolver.plan(
        fleet.vehicle_id, fleet.provider_id, TimeWindow(at(8, 9, 15), at(8, 10, 30))
    )
    
    assert plan.action == RunAction.UNIFY
    assert plan.run.id == r1_id
    assert plan.absorbed.id == r2_id
    runs = await runs_for(db_session, fleet.vehicle_id)
    assert [(r.id, r.scheduled_end_time) for r in runs] == [(r1_id, at(8, 9, 30)), (r2_id, at(8, 12))]


@pytest.mark.asyncio
async def test_runs_of_other_vehicles_are_ignored(db_session, fleet, scheduler, new_trip, make_run):
    await make_run(at(8, 8), at(8, 12), driver_id=1, vehicle_id=fleet.bus_id)
    
    result = await scheduler.save(new_trip(at(8, 9), at(8, 9, 30)))
    
    assert result.ok, result.errors
    (run,) = await runs_for(db_session, fleet.vehicle_id)
    assert run.id == result.trip.run_id
    assert run.scheduled_start_time == at(8, 6)


@pytest.mark.asyncio
async def test_bookings_never_leave_overlapping_runs(db_session, fleet, scheduler, new_trip, make_run, make_trip):
    r1 = await make_run(at(8, 7), at(8, 8), driver_id=1)
    r2 = await make_run(at(8, 9), at(8, 10), driver_id=2)
    r3 = await make_run(at(8, 13), at(8, 15), driver_id=1)
    await make_trip(at(8, 9, 30), at(8, 9, 50), run=r2)
    
    windows = [
        (at(8, 7, 45), at(8, 9, 0)),
        (at(8, 10, 30), at(8, 11)),
        (at(8, 12, 30), at(8, 13, 30)),
        (at(8, 15, 30), at(8, 16)),
        (at(8, 5), at(8, 5, 30)),
    ]
    for pickup, appointment in windows:
        result = await scheduler.save(new_trip(pickup, appointment))
        assert result.ok, result.errors
        run = await db_session.get(Run, result.trip.run_id)
        assert run.contains(pickup, appointment)
    
    assert_no_overlaps(await runs_for(db_session, fleet.vehicle_id))
