"""Vessel entity: static survey vessel metadata, immutable after seeding."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Text, DateTime, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"
    __table_args__ = (
        CheckConstraint("crew_count > 0", name="ck_vessels_crew_count_positive"),
    )

    # e.g. "BOAT-001"
    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    vessel_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    crew_count: Mapped[int] = mapped_column(Integer, nullable=False)
    equipment: Mapped[str] = mapped_column(Text, nullable=False)
    project: Mapped[str] = mapped_column(String(255), nullable=False)
    survey_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    # Relationships
    state: Mapped[Optional["VesselState"]] = relationship(
        "VesselState", back_populates="vessel", uselist=False, cascade="all, delete-orphan"
    )
    initial_state: Mapped[Optional["VesselInitialState"]] = relationship(
        "VesselInitialState", uselist=False, cascade="all, delete-orphan"
    )
    route: Mapped[Optional["Route"]] = relationship(
        "Route", back_populates="vessel", uselist=False, cascade="all, delete-orphan"
    )
    waypoints: Mapped[list] = relationship(
        "Waypoint", back_populates="vessel", cascade="all, delete-orphan",
        order_by="Waypoint.sequence",
    )
