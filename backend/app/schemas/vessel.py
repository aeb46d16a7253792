"""Pydantic schemas for vessel status, camelCase on the wire for the 3D dashboard."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.modules.fleet_types import VesselInfo, VesselRoute, VesselStateSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VesselStatus(_CamelModel):
    id: str
    latitude: float
    longitude: float
    status: str
    energy_level: float = Field(ge=0, le=100)
    vessel_name: str
    survey_type: str
    project: str
    equipment: str
    area_covered: float
    speed: str
    crew_count: int
    conditions: str
    heading: float

    @classmethod
    def from_fleet(cls, info: VesselInfo, state: VesselStateSnapshot) -> "VesselStatus":
        return cls(
            id=info.id,
            latitude=state.latitude,
            longitude=state.longitude,
            status=state.status.value,
            energy_level=state.energy_level,
            vessel_name=info.vessel_name,
            survey_type=info.survey_type,
            project=info.project,
            equipment=info.equipment,
            area_covered=state.area_covered,
            speed=state.speed,
            crew_count=info.crew_count,
            conditions=state.conditions,
            heading=state.heading,
        )


class WaypointRead(_CamelModel):
    latitude: float
    longitude: float
    sequence: int


class RouteRead(_CamelModel):
    vessel_id: str
    route_name: Optional[str] = None
    waypoints: list[WaypointRead]

    @classmethod
    def from_route(cls, route: VesselRoute) -> "RouteRead":
        return cls(
            vessel_id=route.vessel_id,
            route_name=route.route_name,
            waypoints=[
                WaypointRead(latitude=p.latitude, longitude=p.longitude, sequence=p.sequence)
                for p in route.waypoints
            ],
        )


class ResetResponse(_CamelModel):
    success: bool = True
    message: str = "Boats reset to initial positions"
    boats_reset: int


class SimulationStatus(_CamelModel):
    running: bool
    tick_mode: str
    speed_multiplier: float
    interval_seconds: float
    tick_count: int
    failed_writes: int
    writes_in_flight: int = 0
    last_tick_at: Optional[datetime] = None
    vessels: int
