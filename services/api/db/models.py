"""
SQLAlchemy DeclarativeBase models for the tables the Python service touches.

Column names are snake_case to match the hosted Postgres schema that the
web client also reads. The preference table predates the structured
accommodation shape: accommodation_type is a plain TEXT[] and the store
adapter converts it to and from AccommodationPreference entries.

IMPORTANT: These models are NOT used for migrations. The hosted schema is
owned by the database project; these are mirrors of the columns we use.
"""

import uuid as _uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UserPreferenceRow(Base):
    """One row per user. user_id is unique; id is assigned by the store on insert."""

    __tablename__ = "user_preferences"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True)

    budget_range: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    budget: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    budget_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    preferred_cuisines: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    activity_types: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    accommodation_type: Mapped[list[str]] = mapped_column(ARRAY(String), server_default="{}")
    travel_style: Mapped[list[str]] = mapped_column(ARRAY(String), server_default="{}")
    pace_preference: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    avg_trip_duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    frequent_destinations: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    seasonal_patterns: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    dietary_restrictions: Mapped[list[str]] = mapped_column(ARRAY(String), server_default="{}")
    accessibility_needs: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preferred_chains: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    avoided_chains: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    travel_archetype: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    dna_scores: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    dna_completeness: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dna_created_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    dna_updated_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    quiz_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    total_trips_analyzed: Mapped[int] = mapped_column(Integer, default=0)

    learning_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    data_retention_days: Mapped[int] = mapped_column(Integer, default=730)

    last_calculated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    calculation_version: Mapped[str] = mapped_column(String, default="v1.0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
