"""
Run API Endpoints.

Read access to runs plus manual run creation. Runs are otherwise created,
stretched, split and unified by trip scheduling.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from paratransit.app.core.dependencies import get_scheduler
from paratransit.app.core.exceptions import ResourceNotFoundError
from paratransit.app.db.session import get_db
from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.domain.scheduling.trip_scheduler import TripScheduler
from paratransit.app.models.run import Run
from paratransit.app.models.vehicle import Vehicle
from paratransit.app.schemas.run import RunCreate, RunResponse
from paratransit.app.services.run_repository import RunRepository

router = APIRouter(prefix="/runs", tags=["Runs"])


async def build_run_response(runs: RunRepository, run: Run) -> RunResponse:
    response = RunResponse.model_validate(run)
    response.trip_ids = await runs.trip_ids(run.id)
    return response


@router.get("", response_model=List[RunResponse])
async def list_runs(
    vehicle_id: Optional[int] = Query(None),
    provider_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    runs = RunRepository(db)
    found = await runs.search(vehicle_id=vehicle_id, provider_id=provider_id, day=day, driver_id=driver_id)
    return [await build_run_response(runs, run) for run in found]


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: int = Path(..., description="Run ID"),
    db: AsyncSession = Depends(get_db),
):
    runs = RunRepository(db)
    run = await runs.get(run_id)
    if not run:
        raise ResourceNotFoundError("Run", run_id)
    return await build_run_response(runs, run)


@router.post("", response_model=RunResponse, status_code=status.HTTP_201_CREATED)
async def create_run(
    run_data: RunCreate,
    db: AsyncSession = Depends(get_db),
    scheduler: TripScheduler = Depends(get_scheduler),
):
    """
    Create a run for a vehicle and driver.
    
    Rejected with 409 if it would overlap another run of the same vehicle.
    """
    vehicle = await db.get(Vehicle, run_data.vehicle_id)
    if not vehicle or vehicle.provider_id != run_data.provider_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vehicle does not belong to this provider"
        )
    
    window = None
    if run_data.scheduled_start_time is not None:
        window = TimeWindow(run_data.scheduled_start_time, run_data.scheduled_end_time)
    else:
        window = scheduler.factory.hours.window_for(run_data.date)
    
    async with scheduler.locks.hold(run_data.vehicle_id, run_data.date):
        clashes = await scheduler.runs.find_overlapping(run_data.vehicle_id, run_data.provider_id, window)
        if clashes:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Run would overlap run {clashes[0].id}"
            )
        run = await scheduler.factory.make_run(
            run_data.vehicle_id, run_data.driver_id, run_data.provider_id, run_data.date, window
        )
        run.name = run_data.name
        await db.commit()
    
    return await build_run_response(scheduler.runs, run)
