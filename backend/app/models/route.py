"""Route and Waypoint entities: ordered survey paths, read-only after seeding."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, Float, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Route(Base):
    __tablename__ = "routes"

    vessel_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("vessels.id", ondelete="CASCADE"), primary_key=True
    )
    route_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=func.now())

    vessel = relationship("Vessel", back_populates="route")


class Waypoint(Base):
    __tablename__ = "waypoints"
    __table_args__ = (
        UniqueConstraint("vessel_id", "sequence", name="uq_waypoints_vessel_sequence"),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_waypoints_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_waypoints_longitude"),
        CheckConstraint("sequence >= 0", name="ck_waypoints_sequence"),
        Index("ix_waypoints_vessel_sequence", "vessel_id", "sequence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("vessels.id", ondelete="CASCADE"), nullable=False
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    # 0-based order; vessels loop back to 0 after the last waypoint
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=func.now())

    vessel = relationship("Vessel", back_populates="waypoints")
