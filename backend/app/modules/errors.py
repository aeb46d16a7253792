"""Failure taxonomy for the simulation engine and its state store.

main.py maps each class to an HTTP status; the CLI prints them as operator errors.
"""
from __future__ import annotations


class SimulationError(Exception):
    """Base class for all simulation-engine failures."""


class InvalidSpeedError(SimulationError, ValueError):
    """Speed multiplier outside the accepted range. Raised before any tick runs."""


class VesselNotFoundError(SimulationError, LookupError):
    def __init__(self, vessel_id: str):
        super().__init__(f"Vessel {vessel_id!r} not found")
        self.vessel_id = vessel_id


class PersistenceError(SimulationError, RuntimeError):
    """Store I/O failed or timed out. The previous state stays authoritative."""


class SchedulerBusyError(PersistenceError):
    """The tick writer could not be suspended in time for a fleet reset."""
