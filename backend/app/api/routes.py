from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.modules.scheduler import TICK_MODE_REQUEST, FleetScheduler
from app.modules.sim_clock import MAX_SPEED_MULTIPLIER, MIN_SPEED_MULTIPLIER, validate_speed_multiplier
from app.modules.state_store import VesselStateStore
from app.schemas.error import ErrorResponse
from app.schemas.vessel import ResetResponse, RouteRead, SimulationStatus, VesselStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def get_scheduler(request: Request) -> FleetScheduler:
    return request.app.state.scheduler


def get_store(request: Request) -> VesselStateStore:
    return request.app.state.store


# ---------------------------------------------------------------------------
# Boats
# ---------------------------------------------------------------------------

@router.get(
    "/boats",
    tags=["boats"],
    response_model=list[VesselStatus],
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def list_boats(
    speed: Optional[float] = Query(
        None,
        description=f"Simulation speed multiplier ({MIN_SPEED_MULTIPLIER}-{MAX_SPEED_MULTIPLIER})",
    ),
    scheduler: FleetScheduler = Depends(get_scheduler),
):
    """Current fleet snapshot.

    In scheduler mode ``speed`` sets the multiplier for the following ticks;
    in request mode one tick runs with it before the snapshot is returned.
    An out-of-range speed is rejected before anything ticks.
    """
    if speed is not None:
        speed = validate_speed_multiplier(speed)

    if scheduler.tick_mode == TICK_MODE_REQUEST:
        scheduler.tick(speed if speed is not None else settings.SIMULATION_DEFAULT_SPEED)
    elif speed is not None and speed != scheduler.speed_multiplier:
        logger.info("Simulation speed changed to %.1fx", speed)
        scheduler.speed_multiplier = speed

    snapshot = scheduler.snapshot()
    return [VesselStatus.from_fleet(info, state) for info, state in snapshot.entries]


@router.post("/boats/reset", tags=["boats"], response_model=ResetResponse, responses={503: {"model": ErrorResponse}})
def reset_boats(scheduler: FleetScheduler = Depends(get_scheduler)):
    """Restore every boat to its initial position, energy and status."""
    count = scheduler.reset()
    return ResetResponse(boats_reset=count)


@router.get("/boats/{vessel_id}", tags=["boats"], response_model=VesselStatus, responses={404: {"model": ErrorResponse}})
def get_boat(vessel_id: str, store: VesselStateStore = Depends(get_store)):
    info, state = store.get_by_id(vessel_id)
    return VesselStatus.from_fleet(info, state)


@router.get("/boats/{vessel_id}/route", tags=["boats"], response_model=RouteRead, responses={404: {"model": ErrorResponse}})
def get_boat_route(vessel_id: str, store: VesselStateStore = Depends(get_store)):
    return RouteRead.from_route(store.get_route(vessel_id))


# ---------------------------------------------------------------------------
# Simulation / system
# ---------------------------------------------------------------------------

@router.get("/simulation", tags=["system"], response_model=SimulationStatus)
def simulation_status(scheduler: FleetScheduler = Depends(get_scheduler)):
    return SimulationStatus(**scheduler.status())


@router.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    """Health check with DB latency measurement."""
    t0 = time.time()
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {e}"
    latency_ms = round((time.time() - t0) * 1000, 1)

    return {
        "status": "ok",
        "version": "0.1.0",
        "database": {"status": db_status, "latency_ms": latency_ms},
    }
