"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class VesselStatusEnum(str, enum.Enum):
    ACTIVE = "Active"
    CHARGING = "Charging"
    # Only entered and left through outside intervention (seed data or reset).
    MAINTENANCE = "Maintenance"


def vessel_status_column_type() -> SAEnum:
    """Store the human-readable value ("Active"), not the member name."""
    return SAEnum(
        VesselStatusEnum,
        name="vesselstatusenum",
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
