"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from paratransit.app.api.v1.endpoints import trips, runs

router = APIRouter()

# Trip booking and scheduling
router.include_router(trips.router)

# Runs
router.include_router(runs.router)
