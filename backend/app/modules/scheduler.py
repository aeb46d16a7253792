"""Fleet scheduler: the single writer of vessel state.

The scheduler owns everything that changes between ticks:

  - the arena: vessel id -> latest committed VesselStateSnapshot
  - the SimulationClock (one anchor, never global)
  - the published FleetSnapshot readers get without taking any lock

A tick runs under the writer lock: advance every vessel, fan the changed rows
out to the store over a bounded thread pool, wait for each write with a
deadline, then commit successful results to the arena and publish a new
snapshot. A failed or timed-out write drops that vessel's update for this tick
only; the next tick recomputes from the previous state. A timed-out write that
is already running cannot be cancelled, so it is kept as in flight: its vessel
gets no new write until it finishes, and reset() waits for it (bounded by the
lock timeout) before touching the store.

reset() takes the same lock, so the background loop is suspended while the
store restores the InitialSnapshot in one transaction. The arena and the
published snapshot are replaced only after the reset has committed and been
re-read, so no reader ever sees a half-reset fleet.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from app.modules.energy import advance_vessel
from app.modules.errors import PersistenceError, SchedulerBusyError, SimulationError
from app.modules.fleet_types import FleetSnapshot, RoutePoint, VesselInfo, VesselStateSnapshot
from app.modules.sim_clock import SimulationClock, validate_speed_multiplier
from app.modules.state_store import VesselStateStore

logger = logging.getLogger(__name__)

TICK_MODE_SCHEDULER = "scheduler"
TICK_MODE_REQUEST = "request"
TICK_MODES = (TICK_MODE_SCHEDULER, TICK_MODE_REQUEST)


@dataclass(frozen=True)
class TickReport:
    tick: int
    simulated_seconds: float
    updated: tuple[str, ...] = field(default_factory=tuple)
    failed: tuple[str, ...] = field(default_factory=tuple)
    skipped: tuple[str, ...] = field(default_factory=tuple)


class FleetScheduler:
    def __init__(
        self,
        store: VesselStateStore,
        clock: Optional[SimulationClock] = None,
        *,
        interval_seconds: float = 2.0,
        speed_multiplier: float = 1.0,
        tick_mode: str = TICK_MODE_SCHEDULER,
        write_workers: int = 1,
        io_timeout: float = 10.0,
        lock_timeout: float = 15.0,
    ):
        if tick_mode not in TICK_MODES:
            raise ValueError(f"tick_mode must be one of {TICK_MODES}, got {tick_mode!r}")
        self._store = store
        self._clock = clock or SimulationClock()
        self.interval_seconds = interval_seconds
        self.tick_mode = tick_mode
        self._speed_multiplier = validate_speed_multiplier(speed_multiplier)
        self._io_timeout = io_timeout
        self._lock_timeout = lock_timeout

        self._writer_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor = ThreadPoolExecutor(max_workers=max(1, write_workers), thread_name_prefix="fleet-writer")

        self._vessels: dict[str, VesselInfo] = {}
        self._arena: dict[str, VesselStateSnapshot] = {}
        self._routes: dict[str, tuple[RoutePoint, ...]] = {}
        # Set when the store changed underneath the arena (reset committed, reload failed)
        self._stale = False
        # Timed-out writes still running in the pool; a vessel with one here gets no new write
        self._in_flight: dict[str, Future] = {}

        self._snapshot = FleetSnapshot(tick=0, taken_at=self._clock.now())
        self.tick_count = 0
        self.failed_writes = 0
        self.last_tick_at: Optional[datetime] = None

    # ── Reader side (lock-free) ────────────────────────────────────────────

    def snapshot(self) -> FleetSnapshot:
        return self._snapshot

    @property
    def speed_multiplier(self) -> float:
        return self._speed_multiplier

    @speed_multiplier.setter
    def speed_multiplier(self, value: float) -> None:
        self._speed_multiplier = validate_speed_multiplier(value)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "tick_mode": self.tick_mode,
            "speed_multiplier": self._speed_multiplier,
            "interval_seconds": self.interval_seconds,
            "tick_count": self.tick_count,
            "failed_writes": self.failed_writes,
            "writes_in_flight": sum(1 for f in list(self._in_flight.values()) if not f.done()),
            "last_tick_at": self.last_tick_at,
            "vessels": len(self._snapshot.entries),
        }

    # ── Writer side ────────────────────────────────────────────────────────

    def load(self) -> FleetSnapshot:
        """(Re)read the fleet from the store into the arena and publish it."""
        with self._acquire_writer():
            self._load_locked()
        return self._snapshot

    def tick(self, speed_multiplier: Optional[float] = None) -> TickReport:
        """Advance every vessel by one tick and persist the changes.

        Validation happens before the lock is taken, so an invalid multiplier
        never runs a tick.
        """
        multiplier = validate_speed_multiplier(
            self._speed_multiplier if speed_multiplier is None else speed_multiplier
        )
        with self._acquire_writer():
            return self._tick_locked(multiplier)

    def reset(self) -> int:
        """Restore every vessel to its InitialSnapshot. Returns the number of rows reset."""
        with self._acquire_writer():
            self._drain_in_flight(self._lock_timeout)
            count = self._store.reset_all(self._clock.now())
            self._stale = True
            self._load_locked()
            self._clock.reset_anchor()
        logger.info("Fleet reset: %d vessels restored", count)
        return count

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="fleet-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Fleet scheduler started (interval=%.2fs, speed=%.1fx)",
            self.interval_seconds, self._speed_multiplier,
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Fleet scheduler did not stop within %.1fs", timeout)
        self._thread = None

    def shutdown(self) -> None:
        self.stop()
        self._executor.shutdown(wait=True)

    # ── Internals ──────────────────────────────────────────────────────────

    def _acquire_writer(self) -> "_WriterGuard":
        return _WriterGuard(self._writer_lock, self._lock_timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.tick()
            except SimulationError as exc:
                logger.error("Scheduled tick failed: %s", exc)
            except Exception:
                logger.exception("Unexpected error in fleet scheduler loop")

    def _load_locked(self) -> None:
        rows = self._store.get_all_with_states()
        routes = self._store.get_routes()
        self._vessels = {info.id: info for info, _ in rows}
        self._arena = {info.id: state for info, state in rows}
        self._routes = routes
        self._stale = False
        self._publish(self._clock.now())
        logger.debug("Loaded %d vessels into the scheduler arena", len(rows))

    def _tick_locked(self, multiplier: float) -> TickReport:
        if self._stale:
            self._load_locked()

        simulated_seconds = self._clock.advance(multiplier)
        now = self._clock.last_update

        pending: dict[str, tuple[VesselStateSnapshot, Future]] = {}
        skipped: list[str] = []
        updated: list[str] = []
        failed: list[str] = []
        for vessel_id, state in self._arena.items():
            new_state = advance_vessel(state, self._routes.get(vessel_id, ()), simulated_seconds, now)
            if new_state is state:
                skipped.append(vessel_id)
                continue
            if self._write_in_flight(vessel_id):
                # An older write for this vessel may still land; never race it with a newer one
                logger.warning("Previous write for %s still running; dropping this tick's update", vessel_id)
                failed.append(vessel_id)
                continue
            pending[vessel_id] = (new_state, self._executor.submit(self._store.update_state, new_state))

        deadline = time.monotonic() + self._io_timeout
        for vessel_id, (new_state, future) in pending.items():
            try:
                future.result(timeout=max(0.0, deadline - time.monotonic()))
            except FutureTimeoutError:
                if not future.cancel():
                    self._in_flight[vessel_id] = future
                logger.error(
                    "State write for %s timed out after %.1fs; keeping previous state",
                    vessel_id, self._io_timeout,
                )
                failed.append(vessel_id)
            except PersistenceError as exc:
                logger.error("Dropped tick update for %s: %s", vessel_id, exc)
                failed.append(vessel_id)
            else:
                self._arena[vessel_id] = new_state
                updated.append(vessel_id)

        self.tick_count += 1
        self.failed_writes += len(failed)
        self.last_tick_at = now
        self._publish(now)
        return TickReport(
            tick=self.tick_count,
            simulated_seconds=simulated_seconds,
            updated=tuple(updated),
            failed=tuple(failed),
            skipped=tuple(skipped),
        )

    def _write_in_flight(self, vessel_id: str) -> bool:
        future = self._in_flight.get(vessel_id)
        if future is None:
            return False
        if not future.done():
            return True
        del self._in_flight[vessel_id]
        if future.exception() is not None:
            logger.warning("Late write for %s failed: %s", vessel_id, future.exception())
        return False

    def _drain_in_flight(self, timeout: float) -> None:
        """Wait for timed-out writes that are still running, so none can land after a reset."""
        if not self._in_flight:
            return
        _, not_done = wait(list(self._in_flight.values()), timeout=timeout)
        if not_done:
            raise SchedulerBusyError(
                f"{len(not_done)} vessel writes still running after {timeout:.1f}s; reset not started"
            )
        self._in_flight.clear()

    def _publish(self, now: datetime) -> None:
        entries = tuple(
            (self._vessels[vid], self._arena[vid])
            for vid in sorted(self._arena)
            if vid in self._vessels
        )
        # Single reference swap; readers holding the old snapshot keep a consistent view
        self._snapshot = FleetSnapshot(tick=self.tick_count, taken_at=now, entries=entries)


class _WriterGuard:
    """Context manager around the writer lock that fails instead of blocking forever."""

    def __init__(self, lock: threading.Lock, timeout: float):
        self._lock = lock
        self._timeout = timeout

    def __enter__(self) -> None:
        if not self._lock.acquire(timeout=self._timeout):
            raise SchedulerBusyError(f"Fleet writer busy for more than {self._timeout:.1f}s")

    def __exit__(self, exc_type, exc, tb) -> None:
        self._lock.release()
