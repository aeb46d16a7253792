"""Mutable per-vessel simulation state plus the frozen InitialSnapshot used by reset.

Both tables share one column layout; ``vessel_initial_states`` is written once
when the fleet is seeded and never updated afterwards.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, VesselStatusEnum, vessel_status_column_type

# Columns copied verbatim by reset (everything except the key and timestamp)
STATE_FIELDS: tuple[str, ...] = (
    "latitude",
    "longitude",
    "heading",
    "speed_knots",
    "original_speed_knots",
    "energy_level",
    "status",
    "speed",
    "conditions",
    "area_covered",
    "current_waypoint_index",
)


def _range_checks(table: str) -> tuple:
    return (
        CheckConstraint("latitude BETWEEN -90 AND 90", name=f"ck_{table}_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name=f"ck_{table}_longitude"),
        CheckConstraint("heading >= 0 AND heading < 360", name=f"ck_{table}_heading"),
        CheckConstraint("speed_knots >= 0", name=f"ck_{table}_speed_knots"),
        CheckConstraint("original_speed_knots >= 0", name=f"ck_{table}_original_speed_knots"),
        CheckConstraint("energy_level BETWEEN 0 AND 100", name=f"ck_{table}_energy_level"),
        CheckConstraint("area_covered >= 0", name=f"ck_{table}_area_covered"),
        CheckConstraint("current_waypoint_index >= 0", name=f"ck_{table}_waypoint_index"),
    )


class _StateColumns:
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    heading: Mapped[float] = mapped_column(Float, nullable=False)
    speed_knots: Mapped[float] = mapped_column(Float, nullable=False)
    # Cruising speed restored when charging completes
    original_speed_knots: Mapped[float] = mapped_column(Float, nullable=False)
    energy_level: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    status: Mapped[VesselStatusEnum] = mapped_column(vessel_status_column_type(), nullable=False, index=True)
    # Human-readable, e.g. "12 knots", "Station keeping"
    speed: Mapped[str] = mapped_column(String(50), nullable=False)
    conditions: Mapped[str] = mapped_column(String(255), nullable=False)
    area_covered: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current_waypoint_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=func.now())


class VesselState(_StateColumns, Base):
    __tablename__ = "vessel_states"
    __table_args__ = _range_checks("vessel_states")

    vessel_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("vessels.id", ondelete="CASCADE"), primary_key=True
    )

    vessel = relationship("Vessel", back_populates="state")


class VesselInitialState(_StateColumns, Base):
    __tablename__ = "vessel_initial_states"
    __table_args__ = _range_checks("vessel_initial_states")

    vessel_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("vessels.id", ondelete="CASCADE"), primary_key=True
    )
