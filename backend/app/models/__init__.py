"""Import all models to register them with SQLAlchemy metadata."""
from app.models.base import Base, VesselStatusEnum
from app.models.vessel import Vessel
from app.models.vessel_state import VesselState, VesselInitialState
from app.models.route import Route, Waypoint

__all__ = [
    "Base",
    "VesselStatusEnum",
    "Vessel",
    "VesselState",
    "VesselInitialState",
    "Route",
    "Waypoint",
]
