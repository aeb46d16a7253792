"""Tests for the battery model and the Active / Charging / Maintenance state machine."""
import pytest

from app.models.base import VesselStatusEnum
from app.modules.energy import (
    CHARGING_CONDITIONS,
    STATION_KEEPING,
    advance_vessel,
    charge_gain,
    clamp_energy,
    drain_rate,
)
from app.modules.fleet_seed import INITIAL_STATES, ROUTES
from app.modules.fleet_types import RoutePoint, VesselStateSnapshot
from app.modules.navigation import navigate

ROUTE = (
    RoutePoint(51.5170, -0.1278, 0),
    RoutePoint(51.5250, -0.1000, 1),
    RoutePoint(51.5250, -0.1400, 2),
)


def _state(status=VesselStatusEnum.ACTIVE, energy=85.5, speed=12.0, original=12.0, **overrides):
    values = dict(
        vessel_id="BOAT-001",
        latitude=51.5074,
        longitude=-0.1278,
        heading=45.0,
        speed_knots=speed,
        original_speed_knots=original,
        energy_level=energy,
        status=status,
        speed=f"{speed:.0f} knots",
        conditions="Good sea state",
        area_covered=0.0,
        current_waypoint_index=0,
    )
    values.update(overrides)
    return VesselStateSnapshot(**values)


class TestRates:
    def test_drain_at_12_knots_one_second(self):
        assert drain_rate(12.0, 1.0) == pytest.approx(0.01152)

    def test_drain_is_quadratic_in_speed(self):
        assert drain_rate(20.0, 1.0) == pytest.approx(4 * drain_rate(10.0, 1.0))

    def test_charge_gain_about_5_percent_per_minute(self):
        assert charge_gain(60.0) == pytest.approx(4.98)

    def test_clamp(self):
        assert clamp_energy(-1.0) == 0.0
        assert clamp_energy(101.0) == 100.0
        assert clamp_energy(42.0) == 42.0


class TestActive:
    def test_drains_and_moves(self):
        state = _state()
        result = advance_vessel(state, ROUTE, 1.0)
        assert result.energy_level == pytest.approx(85.5 - 0.01152)
        assert result.status == VesselStatusEnum.ACTIVE
        assert (result.latitude, result.longitude) != (state.latitude, state.longitude)

    def test_position_matches_navigation_step(self):
        state = _state()
        moved = navigate(state, ROUTE, 1.0)
        result = advance_vessel(state, ROUTE, 1.0)
        assert result.latitude == moved.latitude
        assert result.longitude == moved.longitude
        assert result.heading == moved.heading

    def test_low_energy_switches_to_charging(self):
        result = advance_vessel(_state(energy=20.005), ROUTE, 1.0)
        assert result.energy_level == pytest.approx(20.005 - 0.01152)
        assert result.status == VesselStatusEnum.CHARGING
        assert result.speed_knots == 0.0
        assert result.original_speed_knots == 12.0
        assert result.speed == STATION_KEEPING
        assert result.conditions == CHARGING_CONDITIONS

    def test_no_double_transition_on_next_tick(self):
        charging = advance_vessel(_state(energy=20.005), ROUTE, 1.0)
        following = advance_vessel(charging, ROUTE, 1.0)
        assert following.status == VesselStatusEnum.CHARGING
        assert following.energy_level == pytest.approx(charging.energy_level + 0.083)
        assert following.latitude == charging.latitude

    def test_energy_clamped_at_zero(self):
        result = advance_vessel(_state(energy=0.001, speed=30.0, original=30.0), ROUTE, 10.0)
        assert result.energy_level == 0.0
        assert result.status == VesselStatusEnum.CHARGING

    def test_single_waypoint_route_is_untouched(self):
        state = _state()
        assert advance_vessel(state, (RoutePoint(51.5, -0.1, 0),), 5.0) is state


class TestCharging:
    def test_gains_energy_and_holds_station(self):
        state = _state(status=VesselStatusEnum.CHARGING, energy=42.3, speed=0.0, original=0.0)
        result = advance_vessel(state, ROUTE, 1.0)
        assert result.energy_level == pytest.approx(42.383)
        assert result.status == VesselStatusEnum.CHARGING
        assert result.speed_knots == 0.0
        assert result.speed == STATION_KEEPING
        assert (result.latitude, result.longitude) == (state.latitude, state.longitude)

    def test_resumes_active_at_cruising_speed(self):
        state = _state(status=VesselStatusEnum.CHARGING, energy=74.95, speed=0.0, original=12.0, heading=0.0)
        result = advance_vessel(state, ROUTE, 1.0)
        assert result.status == VesselStatusEnum.ACTIVE
        assert result.energy_level == pytest.approx(75.033)
        assert result.speed_knots == 12.0
        assert result.speed == "12 knots"
        # re-pointed at waypoint 0, which is due north of the vessel
        assert result.heading == pytest.approx(0.0, abs=0.5)
        assert (result.latitude, result.longitude) == (state.latitude, state.longitude)

    def test_energy_clamped_at_100(self):
        state = _state(status=VesselStatusEnum.CHARGING, energy=99.99, speed=0.0)
        result = advance_vessel(state, ROUTE, 10.0)
        assert result.energy_level == 100.0

    def test_empty_route_is_untouched(self):
        state = _state(status=VesselStatusEnum.CHARGING, energy=50.0, speed=0.0)
        assert advance_vessel(state, (), 1.0) is state


class TestMaintenance:
    def test_is_a_noop_across_many_ticks(self):
        state = _state(status=VesselStatusEnum.MAINTENANCE, energy=15.7, speed=0.0, original=0.0)
        current = state
        for _ in range(200):
            current = advance_vessel(current, ROUTE, 10.0)
        assert current is state

    def test_low_energy_does_not_trigger_charging(self):
        state = _state(status=VesselStatusEnum.MAINTENANCE, energy=1.0, speed=0.0)
        assert advance_vessel(state, ROUTE, 1.0).status == VesselStatusEnum.MAINTENANCE


class TestFleetInvariants:
    """Run the demo fleet for many fast ticks and check the invariants after each one."""

    def _fleet(self):
        fleet = {}
        for vessel_id, (lat, lon, heading, speed_kn, energy, status, speed, conditions) in INITIAL_STATES.items():
            state = VesselStateSnapshot(
                vessel_id=vessel_id, latitude=lat, longitude=lon, heading=heading,
                speed_knots=speed_kn, original_speed_knots=speed_kn, energy_level=energy,
                status=status, speed=speed, conditions=conditions, area_covered=0.0,
                current_waypoint_index=0,
            )
            route = tuple(RoutePoint(la, lo, i) for i, (la, lo) in enumerate(ROUTES[vessel_id][1]))
            fleet[vessel_id] = (state, route)
        return fleet

    def test_invariants_hold_for_2000_ticks_at_10x(self):
        fleet = self._fleet()
        transitions = 0
        for _ in range(2000):
            for vessel_id, (state, route) in fleet.items():
                new = advance_vessel(state, route, 10.0)
                assert 0.0 <= new.energy_level <= 100.0
                assert 0.0 <= new.heading < 360.0
                assert 0 <= new.current_waypoint_index < len(route)
                assert new.current_waypoint_index in (
                    state.current_waypoint_index,
                    (state.current_waypoint_index + 1) % len(route),
                )
                assert new.area_covered >= state.area_covered
                if new.status == VesselStatusEnum.CHARGING:
                    assert new.speed_knots == 0.0
                if new.status != state.status:
                    transitions += 1
                fleet[vessel_id] = (new, route)
        # BOAT-001 drains to 20% and recharges at least once in this window
        assert transitions >= 2

    def test_maintenance_vessel_unchanged(self):
        state, route = self._fleet()["BOAT-004"]
        current = state
        for _ in range(500):
            current = advance_vessel(current, route, 10.0)
        assert current == state
