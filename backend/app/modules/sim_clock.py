"""Simulation clock: turns a speed multiplier into simulated seconds per tick.

Each tick simulates exactly ``1.0 × speed_multiplier`` seconds regardless of
how much wall time passed since the previous tick, so movement follows tick
count rather than wall time. The wall-clock anchor is still tracked (and reset
with the fleet) for reporting.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from app.modules.errors import InvalidSpeedError

logger = logging.getLogger(__name__)

MIN_SPEED_MULTIPLIER: float = 0.1
MAX_SPEED_MULTIPLIER: float = 10.0
BASE_TICK_SECONDS: float = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_speed_multiplier(speed_multiplier: float) -> float:
    """Return the multiplier as float, or raise InvalidSpeedError."""
    try:
        value = float(speed_multiplier)
    except (TypeError, ValueError) as exc:
        raise InvalidSpeedError(f"speed must be a number, got {speed_multiplier!r}") from exc
    if math.isnan(value) or not MIN_SPEED_MULTIPLIER <= value <= MAX_SPEED_MULTIPLIER:
        raise InvalidSpeedError(
            f"speed must be between {MIN_SPEED_MULTIPLIER} and {MAX_SPEED_MULTIPLIER}, got {value}"
        )
    return value


class SimulationClock:
    """Owns the single "last update" anchor. Not thread-safe; the scheduler serializes access."""

    def __init__(self, now_fn: Optional[Callable[[], datetime]] = None):
        self._now_fn = now_fn or _utcnow
        self.last_update: datetime = self._now_fn()

    def now(self) -> datetime:
        return self._now_fn()

    def advance(self, speed_multiplier: float) -> float:
        """Validate the multiplier, move the anchor to now and return simulated seconds."""
        multiplier = validate_speed_multiplier(speed_multiplier)
        now = self._now_fn()
        wall_elapsed = (now - self.last_update).total_seconds()
        self.last_update = now
        simulated = BASE_TICK_SECONDS * multiplier
        logger.debug("clock advance: wall=%.3fs simulated=%.3fs", wall_elapsed, simulated)
        return simulated

    def reset_anchor(self) -> None:
        self.last_update = self._now_fn()
