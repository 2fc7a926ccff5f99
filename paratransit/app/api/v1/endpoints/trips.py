"""
Trip API Endpoints.

Booking, editing and cancelling trips. Every write goes through the
TripScheduler, which assigns runs and keeps recurring series in step.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.core.dependencies import get_scheduler
from paratransit.app.core.exceptions import ResourceNotFoundError, TripValidationError
from paratransit.app.db.session import get_db
from paratransit.app.domain.scheduling.trip_scheduler import TripScheduler
from paratransit.app.models.run import Run
from paratransit.app.models.trip import Trip
from paratransit.app.schemas.trip import TripCreate, TripResponse, TripUpdate
from paratransit.app.services.trip_repository import TripRepository

router = APIRouter(prefix="/trips", tags=["Trips"])


async def build_trip_response(db: AsyncSession, trip: Trip, instantiated: List[Trip] = ()) -> TripResponse:
    run = await db.get(Run, trip.run_id) if trip.run_id else None
    response = TripResponse.model_validate(trip)
    response.driver_id = trip.effective_driver_id(run)
    response.vehicle_id = trip.effective_vehicle_id(run)
    response.run_summary = trip.run_text(run)
    response.instantiated_trip_ids = [instance.id for instance in instantiated]
    return response


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler),
):
    """
    Book a trip.
    
    A non-cab trip with a vehicle is placed on a run: an existing run is
    reused or stretched, neighbouring runs are unified or shifted, or a new
    run is created. Include `recurrence` to start a weekly series.
    """
    fields = trip_data.model_dump(exclude={"recurrence"})
    trip = Trip(**fields)
    recurrence = trip_data.recurrence.to_request() if trip_data.recurrence is not None else None
    
    result = await scheduler.save(trip, recurrence)
    if not result.ok:
        raise TripValidationError(result.errors.as_dict())
    
    return await build_trip_response(db, result.trip, result.instantiated)


@router.get("", response_model=List[TripResponse])
async def list_trips(
    provider_id: Optional[int] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    vehicle_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List trips, optionally for a provider, date, vehicle or driver."""
    found = await TripRepository(db).search(
        provider_id=provider_id, day=day, vehicle_id=vehicle_id, driver_id=driver_id
    )
    return [await build_trip_response(db, trip) for trip in found]


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
):
    trip = await TripRepository(db).get(trip_id)
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    return await build_trip_response(db, trip)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_data: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler),
):
    """
    Edit a trip.
    
    Changing times, vehicle or driver re-resolves the run unless `run_id` is
    given. Sending `recurrence` updates the series (an empty weekday list
    stops it); omitting it keeps the series and propagates the edit.
    """
    trip = await TripRepository(db).get(trip_id)
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    
    changes = trip_data.model_dump(exclude_unset=True, exclude={"recurrence"})
    for name, value in changes.items():
        setattr(trip, name, value)
    recurrence = trip_data.recurrence.to_request() if trip_data.recurrence is not None else None
    
    result = await scheduler.save(trip, recurrence)
    if not result.ok:
        raise TripValidationError(result.errors.as_dict())
    
    return await build_trip_response(db, result.trip, result.instantiated)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler),
):
    """Cancel a trip outright. The run it was on is kept."""
    trip = await TripRepository(db).get(trip_id)
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    await scheduler.destroy(trip)
