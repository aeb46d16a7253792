"""Tests for VesselStateStore: reads, full-row writes and the transactional reset."""
from unittest.mock import MagicMock

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from app.models.base import VesselStatusEnum
from app.models.vessel_state import STATE_FIELDS, VesselInitialState, VesselState
from app.modules.errors import PersistenceError, VesselNotFoundError
from app.modules.fleet_seed import INITIAL_STATES, ROUTES, seed_fleet
from app.modules.state_store import VesselStateStore, capture_initial_snapshots, to_state_snapshot


def _state(store, vessel_id):
    return store.get_by_id(vessel_id)[1]


class TestSeed:
    def test_seed_inserts_fleet(self, db):
        result = seed_fleet(db)
        assert result["vessels"] == 4
        assert result["waypoints"] == sum(len(points) for _, points in ROUTES.values())
        assert result["snapshots_captured"] == 4
        assert result["skipped"] is False

    def test_seed_is_idempotent(self, db):
        seed_fleet(db)
        again = seed_fleet(db)
        assert again["skipped"] is True
        assert again["vessels"] == 0
        assert again["snapshots_captured"] == 0
        assert db.query(VesselState).count() == 4

    def test_initial_snapshot_matches_seeded_state(self, db):
        seed_fleet(db)
        for initial in db.query(VesselInitialState).all():
            state = db.get(VesselState, initial.vessel_id)
            for field in STATE_FIELDS:
                assert getattr(initial, field) == getattr(state, field)

    def test_capture_only_fills_missing_snapshots(self, db):
        seed_fleet(db)
        db.query(VesselInitialState).filter(VesselInitialState.vessel_id == "BOAT-003").delete()
        db.commit()
        assert capture_initial_snapshots(db) == 1
        db.commit()
        assert capture_initial_snapshots(db) == 0


class TestReads:
    def test_get_all_ordered_by_id(self, store):
        rows = store.get_all_with_states()
        assert [info.id for info, _ in rows] == ["BOAT-001", "BOAT-002", "BOAT-003", "BOAT-004"]

    def test_joined_metadata_and_state(self, store):
        info, state = store.get_by_id("BOAT-001")
        assert info.vessel_name == "Contoso Sea Voyager"
        assert info.crew_count == 24
        assert state.status == VesselStatusEnum.ACTIVE
        assert state.energy_level == pytest.approx(85.5)
        assert state.speed == "12 knots"
        assert state.original_speed_knots == 12.0

    def test_status_round_trips_as_enum(self, store):
        assert _state(store, "BOAT-004").status == VesselStatusEnum.MAINTENANCE
        assert _state(store, "BOAT-002").status == VesselStatusEnum.CHARGING

    def test_unknown_vessel(self, store):
        with pytest.raises(VesselNotFoundError) as exc_info:
            store.get_by_id("BOAT-999")
        assert exc_info.value.vessel_id == "BOAT-999"

    def test_empty_store(self, session_factory):
        assert VesselStateStore(session_factory).get_all_with_states() == []

    def test_routes_in_sequence_order(self, store):
        routes = store.get_routes()
        assert set(routes) == set(ROUTES)
        assert len(routes["BOAT-004"]) == 1
        for vessel_id, points in routes.items():
            assert [p.sequence for p in points] == list(range(len(points)))
            assert [(p.latitude, p.longitude) for p in points] == ROUTES[vessel_id][1]

    def test_get_route(self, store):
        route = store.get_route("BOAT-003")
        assert route.route_name == "Triangle Pattern - South Quadrant"
        assert len(route.waypoints) == 4

    def test_get_route_unknown(self, store):
        with pytest.raises(VesselNotFoundError):
            store.get_route("NOPE")


class TestUpdateState:
    def test_full_row_write(self, store):
        state = _state(store, "BOAT-001")
        changed = state.evolve(
            latitude=51.51,
            longitude=-0.12,
            heading=90.0,
            energy_level=19.5,
            status=VesselStatusEnum.CHARGING,
            speed_knots=0.0,
            speed="Station keeping",
            conditions="Charging via solar panels",
            area_covered=1.25,
            current_waypoint_index=3,
        )
        store.update_state(changed)
        assert _state(store, "BOAT-001").same_values(changed)

    def test_other_vessels_untouched(self, store):
        before = _state(store, "BOAT-002")
        store.update_state(_state(store, "BOAT-001").evolve(energy_level=50.0))
        assert _state(store, "BOAT-002").same_values(before)

    def test_last_writer_wins(self, store):
        state = _state(store, "BOAT-003")
        store.update_state(state.evolve(energy_level=60.0))
        store.update_state(state.evolve(energy_level=61.0))
        assert _state(store, "BOAT-003").energy_level == pytest.approx(61.0)

    def test_inserts_missing_row(self, store, seeded):
        state = _state(store, "BOAT-002")
        db = seeded()
        db.query(VesselState).filter(VesselState.vessel_id == "BOAT-002").delete()
        db.commit()
        db.close()

        store.update_state(state)
        assert _state(store, "BOAT-002").same_values(state)

    def test_constraint_violation_is_persistence_error(self, store):
        state = _state(store, "BOAT-001")
        with pytest.raises(PersistenceError):
            store.update_state(state.evolve(energy_level=150.0))
        assert _state(store, "BOAT-001").energy_level == pytest.approx(85.5)


class TestResetAll:
    def _scramble(self, store):
        """Change every state column of every vessel."""
        for _, state in store.get_all_with_states():
            other_status = (
                VesselStatusEnum.MAINTENANCE
                if state.status == VesselStatusEnum.CHARGING
                else VesselStatusEnum.CHARGING
            )
            store.update_state(state.evolve(
                latitude=state.latitude + 0.01,
                longitude=state.longitude - 0.01,
                heading=(state.heading + 90.0) % 360.0,
                speed_knots=state.speed_knots + 3.0,
                original_speed_knots=state.original_speed_knots + 5.0,
                energy_level=5.0,
                status=other_status,
                speed="Scrambled",
                conditions="Scrambled",
                area_covered=7.0,
                current_waypoint_index=1,
            ))

    def _initial_snapshots(self, seeded):
        db = seeded()
        try:
            return {row.vessel_id: to_state_snapshot(row) for row in db.query(VesselInitialState).all()}
        finally:
            db.close()

    def test_scramble_touches_every_field(self, store, seeded):
        initial = self._initial_snapshots(seeded)
        self._scramble(store)
        for vessel_id, snapshot in initial.items():
            state = _state(store, vessel_id)
            for field in STATE_FIELDS:
                assert getattr(state, field) != getattr(snapshot, field), (vessel_id, field)

    def test_restores_every_field(self, store, seeded):
        initial = self._initial_snapshots(seeded)
        self._scramble(store)
        assert store.reset_all() == 4
        assert set(initial) == set(INITIAL_STATES)
        for vessel_id, snapshot in initial.items():
            state = _state(store, vessel_id)
            assert state.same_values(snapshot), vessel_id
            assert state.current_waypoint_index == 0

    def test_restores_seeded_values(self, store):
        self._scramble(store)
        store.reset_all()
        for vessel_id, (lat, lon, heading, speed_kn, energy, status, speed, conditions) in INITIAL_STATES.items():
            state = _state(store, vessel_id)
            assert state.latitude == pytest.approx(lat)
            assert state.longitude == pytest.approx(lon)
            assert state.heading == pytest.approx(heading)
            assert state.speed_knots == pytest.approx(speed_kn)
            assert state.original_speed_knots == pytest.approx(speed_kn)
            assert state.energy_level == pytest.approx(energy)
            assert state.status == status
            assert state.speed == speed
            assert state.conditions == conditions
            assert state.area_covered == 0.0
            assert state.current_waypoint_index == 0

    def test_repeated_resets_are_identical(self, store):
        store.reset_all()
        first = {info.id: state for info, state in store.get_all_with_states()}
        self._scramble(store)
        store.reset_all()
        second = {info.id: state for info, state in store.get_all_with_states()}
        assert all(first[vid].same_values(second[vid]) for vid in first)

    def test_stamps_last_updated(self, store):
        store.reset_all()
        assert all(state.last_updated is not None for _, state in store.get_all_with_states())

    def test_failure_rolls_back_whole_reset(self, store, engine):
        self._scramble(store)
        before = {info.id: state for info, state in store.get_all_with_states()}
        calls = {"n": 0}

        def fail_second_update(conn, cursor, statement, parameters, context, executemany):
            if statement.startswith("UPDATE vessel_states"):
                calls["n"] += 1
                if calls["n"] == 2:
                    raise OperationalError(statement, parameters, Exception("disk I/O error"))

        event.listen(engine, "before_cursor_execute", fail_second_update)
        try:
            with pytest.raises(PersistenceError):
                store.reset_all()
        finally:
            event.remove(engine, "before_cursor_execute", fail_second_update)

        after = {info.id: state for info, state in store.get_all_with_states()}
        assert calls["n"] == 2
        assert all(after[vid].same_values(before[vid]) for vid in before)

    def test_failure_rolls_back_and_never_commits(self):
        session = MagicMock()
        session.query.return_value.order_by.return_value.all.side_effect = OperationalError(
            "SELECT", {}, Exception("connection lost")
        )
        store = VesselStateStore(lambda: session)

        with pytest.raises(PersistenceError):
            store.reset_all()

        session.rollback.assert_called_once()
        session.commit.assert_not_called()
        session.close.assert_called_once()
