"""
Run Resolver.

Decides which run should carry a trip on a given vehicle: reuse a run that
already covers the trip, stretch a neighbouring run, unify two runs the trip
bridges, shift the boundary between two runs with different drivers, or
create a new run.

Resolution happens in two steps. plan() reads the vehicle's runs and returns
a RunPlan describing every mutation, raising RunConflictError if no
clash-free arrangement exists; nothing is written. apply() then performs the
plan. Callers validate the plan (driver, capacity) in between, so a rejected
trip never leaves a half-extended or orphaned run behind.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from paratransit.app.core.exceptions import RunConflictError, SchedulingInvariantError
from paratransit.app.domain.scheduling.run_factory import RunFactory
from paratransit.app.domain.scheduling.time_window import TimeWindow
from paratransit.app.models.run import Run
from paratransit.app.services.run_repository import RunRepository

logger = logging.getLogger("paratransit.scheduling")


class RunAction(str, enum.Enum):
    REUSE = "REUSE"  # An existing run already covers the trip
    EXTEND_PREVIOUS = "EXTEND_PREVIOUS"  # Stretch the earlier run's end
    EXTEND_NEXT = "EXTEND_NEXT"  # Pull the later run's start back
    UNIFY = "UNIFY"  # Same driver on both sides: merge next into previous
    SHIFT_INTO_PREVIOUS = "SHIFT_INTO_PREVIOUS"  # Push next run's start to the appointment
    SHIFT_INTO_NEXT = "SHIFT_INTO_NEXT"  # Pull previous run's end back to the pickup
    NEW_RUN = "NEW_RUN"  # Nothing nearby overlaps


@dataclass
class BoundsChange:
    run: Run
    start: datetime
    end: datetime
    
    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start, self.end)


@dataclass
class RunPlan:
    action: RunAction
    window: TimeWindow
    vehicle_id: int
    provider_id: int
    driver_id: Optional[int] = None
    run: Optional[Run] = None
    changes: List[BoundsChange] = field(default_factory=list)
    absorbed: Optional[Run] = None
    new_run_window: Optional[TimeWindow] = None
    
    @property
    def carrier_driver_id(self) -> Optional[int]:
        """Driver of the run that will carry the trip."""
        if self.run is not None:
            return self.run.driver_id
        return self.driver_id
    
    @property
    def mutates(self) -> bool:
        return self.action != RunAction.REUSE


class RunResolver:
    
    def __init__(self, runs: RunRepository, factory: RunFactory):
        self.runs = runs
        self.factory = factory
    
    async def resolve_run(
        self,
        vehicle_id: int,
        provider_id: int,
        pickup: datetime,
        appointment: datetime,
        driver_id: Optional[int] = None,
        trip_id: Optional[int] = None,
    ) -> Run:
        """Plan and immediately apply. Raises RunConflictError."""
        plan = await self.plan(vehicle_id, provider_id, TimeWindow(pickup, appointment), driver_id, trip_id)
        return await self.apply(plan)
    
    async def plan(
        self,
        vehicle_id: int,
        provider_id: int,
        window: TimeWindow,
        driver_id: Optional[int] = None,
        trip_id: Optional[int] = None,
    ) -> RunPlan:
        """
        Work out which run carries a trip over `window`.
        
        Args:
            vehicle_id: Vehicle the trip rides on
            provider_id: Provider owning the runs
            window: Trip's [pickup, appointment]
            driver_id: Driver requested for the trip, used for a new run
            trip_id: The trip being scheduled, ignored when inspecting
                neighbouring runs' trips (it may still be on one of them)
        
        Returns:
            RunPlan describing the mutations to perform
        
        Raises:
            RunConflictError: If the trip cannot be placed without two runs
                overlapping
        """
        plan = RunPlan(
            action=RunAction.REUSE, window=window,
            vehicle_id=vehicle_id, provider_id=provider_id, driver_id=driver_id,
        )
        
        containing = await self.runs.find_containing(vehicle_id, provider_id, window)
        if containing is not None:
            plan.run = containing
            return plan
        
        previous_run = await self.runs.find_previous(vehicle_id, provider_id, window.start)
        next_run = await self.runs.find_next(vehicle_id, provider_id, window.start)
        
        previous_overlaps = previous_run is not None and previous_run.scheduled_end_time > window.start
        next_overlaps = next_run is not None and next_run.scheduled_start_time < window.end
        
        if previous_overlaps and next_overlaps:
            await self._plan_overlapping(plan, previous_run, next_run, trip_id)
        elif previous_overlaps:
            # A run carried past midnight is never extended or paired with a fresh run
            # for the new day; either would leave two runs of the vehicle overlapping.
            if previous_run.scheduled_start_time.date() != window.date:
                raise RunConflictError(
                    f"Run {previous_run.id} started on {previous_run.scheduled_start_time:%Y-%m-%d} "
                    f"and is still scheduled at {window.start:%H:%M}; runs cannot cross midnight",
                    previous_run_id=previous_run.id,
                )
            plan.action = RunAction.EXTEND_PREVIOUS
            plan.run = previous_run
            plan.changes.append(BoundsChange(
                previous_run,
                previous_run.scheduled_start_time,
                max(previous_run.scheduled_end_time, window.end),
            ))
        elif next_overlaps:
            # Same rule from the other side: no new run is built underneath a
            # run that starts on the next day.
            if next_run.scheduled_start_time.date() != window.date:
                raise RunConflictError(
                    f"Run {next_run.id} starts on {next_run.scheduled_start_time:%Y-%m-%d}, "
                    "a different day than the trip's pickup; runs cannot cross midnight",
                    next_run_id=next_run.id,
                )
            plan.action = RunAction.EXTEND_NEXT
            plan.run = next_run
            plan.changes.append(BoundsChange(
                next_run,
                window.start,
                max(next_run.scheduled_end_time, window.end),
            ))
        else:
            plan.action = RunAction.NEW_RUN
            plan.new_run_window = self.factory.fit_window(
                window.date,
                window,
                not_before=previous_run.scheduled_end_time if previous_run is not None else None,
                not_after=next_run.scheduled_start_time if next_run is not None else None,
            )
        
        await self._verify(plan)
        return plan
    
    async def _plan_overlapping(self, plan: RunPlan, previous_run: Run, next_run: Run, trip_id: Optional[int]):
        """The trip bridges two runs."""
        window = plan.window
        
        if previous_run.driver_id == next_run.driver_id:
            if previous_run.date != next_run.date:
                raise RunConflictError(
                    f"Runs {previous_run.id} and {next_run.id} are on different days and cannot be unified",
                    previous_run_id=previous_run.id, next_run_id=next_run.id,
                )
            plan.action = RunAction.UNIFY
            plan.run = previous_run
            plan.absorbed = next_run
            plan.changes.append(BoundsChange(
                previous_run,
                previous_run.scheduled_start_time,
                max(next_run.scheduled_end_time, window.end),
            ))
            return
        
        # Different drivers: can the next run start later?
        first_trip = await self.runs.first_trip(next_run.id, exclude_trip_id=trip_id)
        last_trip = await self.runs.last_trip(previous_run.id, exclude_trip_id=trip_id)
        
        next_can_start_later = (
            (first_trip is None or first_trip.pickup_time > window.end)
            and next_run.scheduled_end_time >= window.end
            and (last_trip is None or last_trip.appointment_time <= window.end)
        )
        if next_can_start_later:
            plan.action = RunAction.SHIFT_INTO_PREVIOUS
            plan.run = previous_run
            plan.changes.append(BoundsChange(next_run, window.end, next_run.scheduled_end_time))
            plan.changes.append(BoundsChange(previous_run, previous_run.scheduled_start_time, window.end))
            return
        
        # No, the next run is fixed. Can the previous run end earlier?
        if last_trip is None or last_trip.appointment_time <= window.start:
            plan.action = RunAction.SHIFT_INTO_NEXT
            plan.run = next_run
            plan.changes.append(BoundsChange(previous_run, previous_run.scheduled_start_time, window.start))
            plan.changes.append(BoundsChange(
                next_run, window.start, max(next_run.scheduled_end_time, window.end)
            ))
            return
        
        logger.warning(
            "Run conflict",
            extra={
                "vehicle_id": plan.vehicle_id,
                "previous_run_id": previous_run.id,
                "next_run_id": next_run.id,
                "window": str(window),
            }
        )
        raise RunConflictError(
            f"The trip overlaps run {previous_run.id} (driver {previous_run.driver_id}) and "
            f"run {next_run.id} (driver {next_run.driver_id}), and neither run can be shortened",
            previous_run_id=previous_run.id, next_run_id=next_run.id,
        )
    
    def _final_windows(self, plan: RunPlan) -> List[TimeWindow]:
        windows = [change.window for change in plan.changes]
        if plan.new_run_window is not None:
            windows.append(plan.new_run_window)
        return windows
    
    async def _verify(self, plan: RunPlan) -> None:
        """Reject a plan whose resulting bounds would overlap an uninvolved run."""
        involved = [change.run.id for change in plan.changes]
        if plan.absorbed is not None:
            involved.append(plan.absorbed.id)
        for window in self._final_windows(plan):
            clashes = await self.runs.find_overlapping(plan.vehicle_id, plan.provider_id, window, involved)
            if clashes:
                raise RunConflictError(
                    f"Placing the trip would make a run overlap run {clashes[0].id}",
                    next_run_id=clashes[0].id,
                )
    
    async def apply(self, plan: RunPlan) -> Run:
        """
        Perform a plan's mutations and return the run that carries the trip.
        
        Raises:
            SchedulingInvariantError: If runs still overlap afterwards
        """
        for change in plan.changes:
            change.run.scheduled_start_time = change.start
            change.run.scheduled_end_time = change.end
        if plan.changes:
            await self.runs.db.flush()
        
        run = plan.run
        if plan.action == RunAction.NEW_RUN:
            run = await self.factory.make_run(
                plan.vehicle_id, plan.driver_id, plan.provider_id,
                plan.window.date, plan.new_run_window,
            )
        elif plan.absorbed is not None:
            moved = await self.runs.reassign_trips(plan.absorbed.id, run.id)
            run.end_odometer = plan.absorbed.end_odometer
            await self.runs.delete(plan.absorbed)
            logger.info(
                "Unified runs",
                extra={"run_id": run.id, "absorbed_run_id": plan.absorbed.id, "trips_moved": moved}
            )
        
        if plan.mutates:
            logger.info(
                "Resolved run",
                extra={
                    "action": plan.action.value,
                    "run_id": run.id,
                    "vehicle_id": plan.vehicle_id,
                    "window": str(plan.window),
                }
            )
            touched = {change.run.id: change.run for change in plan.changes}
            touched[run.id] = run
            for carrier in touched.values():
                await self.assert_no_overlap(carrier)
        return run
    
    async def assert_no_overlap(self, run: Run) -> None:
        clashes = await self.runs.find_overlapping(
            run.vehicle_id, run.provider_id, TimeWindow.for_run(run), [run.id]
        )
        if clashes:
            raise SchedulingInvariantError(
                f"Run {run.id} overlaps run {clashes[0].id} for vehicle {run.vehicle_id}"
            )
