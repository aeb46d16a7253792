"""Battery model and the Active / Charging / Maintenance state machine.

Transitions per tick (dt = simulated seconds):

  Active       drain 0.008 × (speed/10)² × dt percent, after navigating.
               energy < 20  → Charging (speed forced to 0, station keeping)
  Charging     solar gain 0.083 × dt percent (~5% per simulated minute).
               energy ≥ 75  → Active (cruising speed restored, heading
               re-pointed at the current waypoint)
  Maintenance  no-op. Never entered or left automatically; only seed data
               and a fleet reset put a vessel in or out of it.

Energy is always clamped into [0, 100].
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Sequence

from app.models.base import VesselStatusEnum
from app.modules.fleet_types import RoutePoint, VesselStateSnapshot
from app.modules.navigation import heading_to_waypoint, navigate

# ── Constants ──────────────────────────────────────────────────────────────────

# Base drain: 0.5% per minute at 10 knots, quadratic in speed
DRAIN_COEFFICIENT: float = 0.008
REFERENCE_SPEED_KNOTS: float = 10.0
SOLAR_CHARGE_RATE: float = 0.083

LOW_ENERGY_THRESHOLD: float = 20.0
RESUME_ENERGY_THRESHOLD: float = 75.0

ENERGY_MIN: float = 0.0
ENERGY_MAX: float = 100.0

STATION_KEEPING: str = "Station keeping"
CHARGING_CONDITIONS: str = "Charging via solar panels"


def clamp_energy(level: float) -> float:
    return max(ENERGY_MIN, min(ENERGY_MAX, level))


def drain_rate(speed_knots: float, simulated_seconds: float) -> float:
    speed_factor = speed_knots / REFERENCE_SPEED_KNOTS
    return DRAIN_COEFFICIENT * speed_factor * speed_factor * simulated_seconds


def charge_gain(simulated_seconds: float) -> float:
    return SOLAR_CHARGE_RATE * simulated_seconds


def cruising_speed_text(speed_knots: float) -> str:
    return f"{speed_knots:.0f} knots"


# ── Per-status transitions ─────────────────────────────────────────────────────

def _tick_active(
    state: VesselStateSnapshot, route: Sequence[RoutePoint], dt: float, now: Optional[datetime]
) -> VesselStateSnapshot:
    if len(route) < 2:
        # Stationary route: nothing moves, nothing drains
        return state

    moved = navigate(state, route, dt, now)
    energy = clamp_energy(moved.energy_level - drain_rate(state.speed_knots, dt))

    if energy < LOW_ENERGY_THRESHOLD:
        return moved.evolve(
            energy_level=energy,
            status=VesselStatusEnum.CHARGING,
            speed_knots=0.0,
            speed=STATION_KEEPING,
            conditions=CHARGING_CONDITIONS,
        )
    return moved.evolve(energy_level=energy)


def _tick_charging(
    state: VesselStateSnapshot, route: Sequence[RoutePoint], dt: float, now: Optional[datetime]
) -> VesselStateSnapshot:
    if not route:
        return state

    energy = clamp_energy(state.energy_level + charge_gain(dt))
    stamped = now if now is not None else state.last_updated

    if energy >= RESUME_ENERGY_THRESHOLD:
        return state.evolve(
            energy_level=energy,
            status=VesselStatusEnum.ACTIVE,
            speed_knots=state.original_speed_knots,
            speed=cruising_speed_text(state.original_speed_knots),
            heading=heading_to_waypoint(state, route),
            last_updated=stamped,
        )
    return state.evolve(
        energy_level=energy,
        speed_knots=0.0,
        speed=STATION_KEEPING,
        last_updated=stamped,
    )


def _tick_maintenance(
    state: VesselStateSnapshot, route: Sequence[RoutePoint], dt: float, now: Optional[datetime]
) -> VesselStateSnapshot:
    return state


_TRANSITIONS: dict[
    VesselStatusEnum,
    Callable[[VesselStateSnapshot, Sequence[RoutePoint], float, Optional[datetime]], VesselStateSnapshot],
] = {
    VesselStatusEnum.ACTIVE: _tick_active,
    VesselStatusEnum.CHARGING: _tick_charging,
    VesselStatusEnum.MAINTENANCE: _tick_maintenance,
}


def advance_vessel(
    state: VesselStateSnapshot,
    route: Sequence[RoutePoint],
    simulated_seconds: float,
    now: Optional[datetime] = None,
) -> VesselStateSnapshot:
    """Run one tick of navigation + energy for a vessel.

    Returns the same object when the vessel does not change (Maintenance,
    stationary or route-less vessels), so callers can skip the write.
    """
    return _TRANSITIONS[VesselStatusEnum(state.status)](state, route, simulated_seconds, now)
