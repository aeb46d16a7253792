"""Seed the demo survey fleet: four vessels off the Thames with routes and initial states.

Usage:
    from app.database import SessionLocal
    from app.modules.fleet_seed import seed_fleet
    db = SessionLocal()
    seed_fleet(db)
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.base import VesselStatusEnum

logger = logging.getLogger(__name__)

# (id, vessel_name, crew_count, equipment, project, survey_type)
FLEET: list[tuple[str, str, int, str, str, str]] = [
    ("BOAT-001", "Contoso Sea Voyager", 24, "Multibeam Sonar, Magnetometer",
     "Dogger Bank Offshore Wind Farm", "Geophysical Survey"),
    ("BOAT-002", "Contoso Sea Pioneer", 18, "ROV, Side-scan Sonar",
     "Subsea Cable Route Survey", "ROV Operations"),
    ("BOAT-003", "Contoso Sea Navigator", 22, "CPT, Seabed Sampling",
     "North Sea Pipeline Inspection", "Geotechnical Survey"),
    ("BOAT-004", "Contoso Sea Explorer", 12, "Multibeam, Sub-bottom Profiler",
     "Scheduled Maintenance", "Standby"),
]

# id -> (lat, lon, heading, speed_knots, energy_level, status, speed, conditions)
INITIAL_STATES: dict[str, tuple[float, float, float, float, float, VesselStatusEnum, str, str]] = {
    "BOAT-001": (51.5074, -0.1278, 45.0, 12.0, 85.5, VesselStatusEnum.ACTIVE, "12 knots", "Good sea state"),
    "BOAT-002": (51.5154, -0.1420, 0.0, 0.0, 42.3, VesselStatusEnum.CHARGING, "Station keeping", "Calm seas"),
    "BOAT-003": (51.5010, -0.1200, 135.0, 8.0, 91.2, VesselStatusEnum.ACTIVE, "8 knots", "Moderate seas, 2m swell"),
    "BOAT-004": (51.5090, -0.1390, 315.0, 0.0, 15.7, VesselStatusEnum.MAINTENANCE, "Docked", "At berth"),
}

# id -> (route_name, [(lat, lon), ...] in sequence order)
ROUTES: dict[str, tuple[str, list[tuple[float, float]]]] = {
    "BOAT-001": ("Rectangle Pattern - NE Quadrant", [
        (51.5170, -0.1278),
        (51.5250, -0.1000),
        (51.5250, -0.1400),
        (51.5170, -0.1400),
        (51.5170, -0.1278),
    ]),
    "BOAT-002": ("Zigzag Pattern - NW Quadrant", [
        (51.5200, -0.1500),
        (51.5250, -0.1600),
        (51.5200, -0.1700),
        (51.5150, -0.1600),
        (51.5200, -0.1500),
    ]),
    "BOAT-003": ("Triangle Pattern - South Quadrant", [
        (51.4950, -0.1200),
        (51.5050, -0.1100),
        (51.5050, -0.1300),
        (51.4950, -0.1200),
    ]),
    "BOAT-004": ("Docked Position (Maintenance)", [
        (51.5090, -0.1390),
    ]),
}


def seed_fleet(db: Session) -> dict:
    """Insert the demo fleet if the vessels table is empty. Idempotent.

    Vessels, states, routes and waypoints go in as one transaction, then the
    InitialSnapshot is captured for every vessel that lacks one.
    """
    from app.models.route import Route, Waypoint
    from app.models.vessel import Vessel
    from app.models.vessel_state import VesselState
    from app.modules.state_store import capture_initial_snapshots

    if db.query(Vessel).count() > 0:
        captured = capture_initial_snapshots(db)
        db.commit()
        logger.info("seed_fleet: database already contains vessels, skipping (captured=%d)", captured)
        return {"vessels": 0, "waypoints": 0, "skipped": True, "snapshots_captured": captured}

    waypoint_count = 0
    try:
        for vessel_id, name, crew, equipment, project, survey_type in FLEET:
            db.add(Vessel(
                id=vessel_id,
                vessel_name=name,
                crew_count=crew,
                equipment=equipment,
                project=project,
                survey_type=survey_type,
            ))
        db.flush()

        for vessel_id, (lat, lon, heading, speed_kn, energy, status, speed, conditions) in INITIAL_STATES.items():
            db.add(VesselState(
                vessel_id=vessel_id,
                latitude=lat,
                longitude=lon,
                heading=heading,
                speed_knots=speed_kn,
                original_speed_knots=speed_kn,
                energy_level=energy,
                status=status,
                speed=speed,
                conditions=conditions,
                area_covered=0.0,
                current_waypoint_index=0,
            ))

        for vessel_id, (route_name, points) in ROUTES.items():
            db.add(Route(vessel_id=vessel_id, route_name=route_name))
            for sequence, (lat, lon) in enumerate(points):
                db.add(Waypoint(vessel_id=vessel_id, latitude=lat, longitude=lon, sequence=sequence))
                waypoint_count += 1
        db.flush()

        captured = capture_initial_snapshots(db)
        db.commit()
    except Exception:
        logger.error("seed_fleet: failed, rolling back")
        db.rollback()
        raise

    logger.info("seed_fleet: inserted vessels=%d waypoints=%d", len(FLEET), waypoint_count)
    return {"vessels": len(FLEET), "waypoints": waypoint_count, "skipped": False, "snapshots_captured": captured}
