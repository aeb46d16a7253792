"""Durable per-vessel state, keyed by vessel id.

The store is the only code that touches the ORM for simulation state. It hands
out frozen ``fleet_types`` values and accepts full-row writes:

  - get_all_with_states  joined metadata + state, ordered by vessel id
  - get_by_id            one joined row, VesselNotFoundError when unknown
  - update_state         full-row upsert, last writer wins
  - reset_all            copy every InitialSnapshot back in ONE transaction;
                         either every row is restored or none is

Each call opens its own short-lived session, so writes for different vessels
can run concurrently from a bounded worker pool. SQLAlchemy errors are
re-raised as PersistenceError with the original chained.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.models.route import Route, Waypoint
from app.models.vessel import Vessel
from app.models.vessel_state import STATE_FIELDS, VesselInitialState, VesselState
from app.modules.errors import PersistenceError, VesselNotFoundError
from app.modules.fleet_types import RoutePoint, VesselInfo, VesselRoute, VesselStateSnapshot

logger = logging.getLogger(__name__)


# ── Row <-> value conversion ───────────────────────────────────────────────────

def to_vessel_info(vessel: Vessel) -> VesselInfo:
    return VesselInfo(
        id=vessel.id,
        vessel_name=vessel.vessel_name,
        crew_count=vessel.crew_count,
        equipment=vessel.equipment,
        project=vessel.project,
        survey_type=vessel.survey_type,
    )


def to_state_snapshot(row: VesselState | VesselInitialState) -> VesselStateSnapshot:
    return VesselStateSnapshot(
        vessel_id=row.vessel_id,
        last_updated=row.last_updated,
        **{field: getattr(row, field) for field in STATE_FIELDS},
    )


def state_values(state: VesselStateSnapshot, now: Optional[datetime] = None) -> dict:
    """Column values for a full-row write (everything but the key)."""
    values = {field: getattr(state, field) for field in STATE_FIELDS}
    values["last_updated"] = state.last_updated or now or datetime.now(timezone.utc)
    return values


def capture_initial_snapshots(db: Session) -> int:
    """Freeze the current state of every vessel that has no InitialSnapshot yet.

    Uses flush (not commit) so it joins the caller's seeding transaction.
    Existing snapshots are never touched.
    """
    have_snapshot = {vid for (vid,) in db.query(VesselInitialState.vessel_id).all()}
    captured = 0
    for row in db.query(VesselState).order_by(VesselState.vessel_id).all():
        if row.vessel_id in have_snapshot:
            continue
        db.add(VesselInitialState(
            vessel_id=row.vessel_id,
            last_updated=row.last_updated,
            **{field: getattr(row, field) for field in STATE_FIELDS},
        ))
        captured += 1
    db.flush()
    return captured


class VesselStateStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # ── Reads ──────────────────────────────────────────────────────────────

    def get_all_with_states(self) -> list[tuple[VesselInfo, VesselStateSnapshot]]:
        try:
            with self._session() as db:
                rows = (
                    db.query(Vessel, VesselState)
                    .join(VesselState, VesselState.vessel_id == Vessel.id)
                    .order_by(Vessel.id)
                    .all()
                )
                result = [(to_vessel_info(v), to_state_snapshot(s)) for v, s in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Fleet snapshot read failed: {exc}") from exc
        logger.debug("Retrieved %d vessels with states", len(result))
        return result

    def get_by_id(self, vessel_id: str) -> tuple[VesselInfo, VesselStateSnapshot]:
        try:
            with self._session() as db:
                row = (
                    db.query(Vessel, VesselState)
                    .join(VesselState, VesselState.vessel_id == Vessel.id)
                    .filter(Vessel.id == vessel_id)
                    .first()
                )
                result = (to_vessel_info(row[0]), to_state_snapshot(row[1])) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Read of vessel {vessel_id} failed: {exc}") from exc
        if result is None:
            logger.warning("Vessel %s not found", vessel_id)
            raise VesselNotFoundError(vessel_id)
        return result

    def get_route(self, vessel_id: str) -> VesselRoute:
        try:
            with self._session() as db:
                if db.get(Vessel, vessel_id) is None:
                    raise VesselNotFoundError(vessel_id)
                route = db.get(Route, vessel_id)
                points = (
                    db.query(Waypoint)
                    .filter(Waypoint.vessel_id == vessel_id)
                    .order_by(Waypoint.sequence)
                    .all()
                )
                return VesselRoute(
                    vessel_id=vessel_id,
                    route_name=route.route_name if route else None,
                    waypoints=tuple(RoutePoint(p.latitude, p.longitude, p.sequence) for p in points),
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Route read for {vessel_id} failed: {exc}") from exc

    def get_routes(self) -> dict[str, tuple[RoutePoint, ...]]:
        """All waypoints grouped by vessel, each list in sequence order."""
        try:
            with self._session() as db:
                points = db.query(Waypoint).order_by(Waypoint.vessel_id, Waypoint.sequence).all()
                grouped: dict[str, list[RoutePoint]] = {}
                for p in points:
                    grouped.setdefault(p.vessel_id, []).append(RoutePoint(p.latitude, p.longitude, p.sequence))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Route read failed: {exc}") from exc
        return {vid: tuple(pts) for vid, pts in grouped.items()}

    # ── Writes ─────────────────────────────────────────────────────────────

    def update_state(self, state: VesselStateSnapshot) -> None:
        """Full-row upsert of one vessel's state. Last writer wins."""
        values = state_values(state)
        with self._session() as db:
            try:
                result = db.execute(
                    update(VesselState)
                    .where(VesselState.vessel_id == state.vessel_id)
                    .values(**values)
                )
                if result.rowcount == 0:
                    db.add(VesselState(vessel_id=state.vessel_id, **values))
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError(f"State write for {state.vessel_id} failed: {exc}") from exc
        logger.debug("Updated state for %s", state.vessel_id)

    def reset_all(self, now: Optional[datetime] = None) -> int:
        """Restore every vessel to its InitialSnapshot with waypoint index 0.

        All rows are written in a single transaction; any failure rolls the
        whole reset back and the pre-reset fleet stays visible.
        """
        now = now or datetime.now(timezone.utc)
        with self._session() as db:
            try:
                initial_rows = db.query(VesselInitialState).order_by(VesselInitialState.vessel_id).all()
                reset = 0
                for initial in initial_rows:
                    values = {field: getattr(initial, field) for field in STATE_FIELDS}
                    values["current_waypoint_index"] = 0
                    values["last_updated"] = now
                    result = db.execute(
                        update(VesselState)
                        .where(VesselState.vessel_id == initial.vessel_id)
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        db.add(VesselState(vessel_id=initial.vessel_id, **values))
                    reset += 1
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Failed to reset fleet, transaction rolled back: %s", exc)
                raise PersistenceError(f"Fleet reset failed: {exc}") from exc
        logger.info("Reset %d vessels to initial state", reset)
        return reset

    def capture_initial_snapshots(self) -> int:
        with self._session() as db:
            try:
                captured = capture_initial_snapshots(db)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError(f"Initial snapshot capture failed: {exc}") from exc
        if captured:
            logger.info("Captured initial snapshot for %d vessels", captured)
        return captured
