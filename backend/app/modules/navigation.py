"""Waypoint navigation for a single Active vessel.

One step moves the vessel ``speed_knots / 3600 * dt`` nautical miles toward its
current route waypoint:

  1. Arrival is tested BEFORE moving. The threshold grows with the distance
     covered per tick (0.15 nm + 1.5 × traveled) so high speed multipliers do
     not overshoot a waypoint while low speeds still register arrival.
  2. On arrival the waypoint index advances by one, wrapping to 0.
  3. Heading is recomputed toward the (possibly new) target.
  4. Position moves by a local flat-earth approximation:
       Δlat = d·cos(h) / 60
       Δlon = d·sin(h) / (60·cos(lat))
     valid only at the few-mile scale of the survey routes.

Routes with a single waypoint are stationary and left untouched.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Optional, Sequence

from app.modules.fleet_types import RoutePoint, VesselStateSnapshot
from app.utils.geo import bearing_deg, haversine_nm

_SECONDS_PER_HOUR: float = 3600.0
_NM_PER_DEGREE_LAT: float = 60.0

WAYPOINT_BASE_THRESHOLD_NM: float = 0.15
WAYPOINT_OVERSHOOT_FACTOR: float = 1.5
# Swath width proxy: faster boats cover more seabed per mile
AREA_COVERAGE_FACTOR: float = 0.05


def distance_traveled_nm(speed_knots: float, simulated_seconds: float) -> float:
    """1 knot = 1 nm per hour."""
    return (speed_knots / _SECONDS_PER_HOUR) * simulated_seconds


def arrival_threshold_nm(traveled_nm: float) -> float:
    return WAYPOINT_BASE_THRESHOLD_NM + traveled_nm * WAYPOINT_OVERSHOOT_FACTOR


def next_waypoint_index(index: int, route_length: int) -> int:
    return (index + 1) % route_length


def heading_to_waypoint(state: VesselStateSnapshot, route: Sequence[RoutePoint]) -> float:
    target = route[state.current_waypoint_index]
    return bearing_deg(state.latitude, state.longitude, target.latitude, target.longitude)


def navigate(
    state: VesselStateSnapshot,
    route: Sequence[RoutePoint],
    simulated_seconds: float,
    now: Optional[datetime] = None,
) -> VesselStateSnapshot:
    """Advance position, heading, waypoint index and area covered by one tick."""
    if len(route) < 2:
        return state

    traveled = distance_traveled_nm(state.speed_knots, simulated_seconds)

    index = state.current_waypoint_index
    target = route[index]
    distance_to_target = haversine_nm(state.latitude, state.longitude, target.latitude, target.longitude)
    if distance_to_target < arrival_threshold_nm(traveled):
        index = next_waypoint_index(index, len(route))
        target = route[index]

    heading = bearing_deg(state.latitude, state.longitude, target.latitude, target.longitude)
    heading_rad = math.radians(heading)
    delta_lat = traveled * math.cos(heading_rad) / _NM_PER_DEGREE_LAT
    delta_lon = traveled * math.sin(heading_rad) / (
        _NM_PER_DEGREE_LAT * math.cos(math.radians(state.latitude))
    )

    return state.evolve(
        latitude=state.latitude + delta_lat,
        longitude=state.longitude + delta_lon,
        heading=heading,
        current_waypoint_index=index,
        area_covered=state.area_covered + traveled * AREA_COVERAGE_FACTOR * state.speed_knots,
        last_updated=now if now is not None else state.last_updated,
    )
