"""Immutable value types passed between the store, the tick engine and readers.

ORM rows never leave the state store; everything else works on these frozen
dataclasses so a published snapshot can be shared between threads without copying.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.models.base import VesselStatusEnum


@dataclass(frozen=True)
class RoutePoint:
    latitude: float
    longitude: float
    sequence: int


@dataclass(frozen=True)
class VesselInfo:
    id: str
    vessel_name: str
    crew_count: int
    equipment: str
    project: str
    survey_type: str


@dataclass(frozen=True)
class VesselStateSnapshot:
    vessel_id: str
    latitude: float
    longitude: float
    heading: float
    speed_knots: float
    original_speed_knots: float
    energy_level: float
    status: VesselStatusEnum
    speed: str
    conditions: str
    area_covered: float
    current_waypoint_index: int
    last_updated: Optional[datetime] = None

    def evolve(self, **changes) -> "VesselStateSnapshot":
        return dataclasses.replace(self, **changes)

    def same_values(self, other: "VesselStateSnapshot") -> bool:
        """Field-by-field equality ignoring ``last_updated``."""
        return self.evolve(last_updated=None) == other.evolve(last_updated=None)


@dataclass(frozen=True)
class VesselRoute:
    vessel_id: str
    route_name: Optional[str]
    waypoints: tuple[RoutePoint, ...]


@dataclass(frozen=True)
class FleetSnapshot:
    """What readers see: the fleet as of one completed tick (or reset)."""
    tick: int
    taken_at: datetime
    entries: tuple[tuple[VesselInfo, VesselStateSnapshot], ...] = ()

    def find(self, vessel_id: str) -> Optional[tuple[VesselInfo, VesselStateSnapshot]]:
        for info, state in self.entries:
            if info.id == vessel_id:
                return info, state
        return None
