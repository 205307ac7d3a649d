"""
ScrubJay SQLAlchemy models.

Tables:
- locations / observations: eBird items, upserted by natural key
- rss_sources / rss_items: feed items, upserted by stable id
- channel_ebird_subscriptions / channel_rss_subscriptions: channel scopes
- filtered_species: per-channel exclusion keys
- deliveries: the delivery ledger, one row per (kind, alert id, channel)

The schema is dialect-neutral; PostgreSQL is the production target and
SQLite backs tests and single-host installs.

Usage:
    from scrubjay.storage.models import create_all_tables

    engine = create_engine("postgresql+psycopg://...")
    create_all_tables(engine)
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ScrubJay models."""


# =============================================================================
# eBird
# =============================================================================


class LocationModel(Base):
    """A reporting location in the country > state > county hierarchy."""

    __tablename__ = "locations"
    __table_args__ = (Index("ix_locations_state_county", "state_code", "county_code"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    county: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    county_code: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(128), nullable=False)
    state_code: Mapped[str] = mapped_column(String(32), nullable=False)
    country_code: Mapped[str] = mapped_column(String(8), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class ObservationModel(Base):
    """
    A notable observation.

    ``created_at`` is written once, on first ingestion, and is the dispatch
    watermark. Upserts refresh every other column.
    """

    __tablename__ = "observations"
    __table_args__ = (
        Index("ix_observations_created_at", "created_at"),
        Index("ix_observations_location_date", "location_id", "observed_at"),
        Index("ix_observations_reviewed_valid_date", "is_reviewed", "is_valid", "observed_at"),
    )

    species_code: Mapped[str] = mapped_column(String(32), primary_key=True)
    sub_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    common_name: Mapped[str] = mapped_column(String(256), nullable=False)
    common_name_key: Mapped[str] = mapped_column(String(256), nullable=False)
    scientific_name: Mapped[str] = mapped_column(String(256), nullable=False)
    location_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("locations.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    # wall-clock time at the observation site, as eBird reports it
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    how_many: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_reviewed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    presence_noted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_comments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    photo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    audio_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    video_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# =============================================================================
# RSS
# =============================================================================


class RssSourceModel(Base):
    __tablename__ = "rss_sources"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)


class RssItemModel(Base):
    __tablename__ = "rss_items"
    __table_args__ = (Index("ix_rss_items_created_at", "created_at"),)

    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    source_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("rss_sources.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    content_html: Mapped[str | None] = mapped_column(Text)
    link: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# =============================================================================
# Subscriptions and filters
# =============================================================================


class EBirdSubscriptionModel(Base):
    """
    Channel subscription to a state or county.

    ``county_code == "*"`` subscribes to every county in the state.
    """

    __tablename__ = "channel_ebird_subscriptions"
    __table_args__ = (
        Index("ix_ebird_subs_state_county", "state_code", "county_code"),
        Index("ix_ebird_subs_active_state_county", "active", "state_code", "county_code"),
    )

    channel_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    state_code: Mapped[str] = mapped_column(String(32), primary_key=True)
    county_code: Mapped[str] = mapped_column(String(32), primary_key=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class RssSubscriptionModel(Base):
    __tablename__ = "channel_rss_subscriptions"

    channel_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("rss_sources.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class FilteredSpeciesModel(Base):
    """Species a channel never wants to hear about, keyed by normalized name."""

    __tablename__ = "filtered_species"

    channel_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    common_name_key: Mapped[str] = mapped_column(String(256), primary_key=True)
    common_name: Mapped[str] = mapped_column(String(256), nullable=False)


# =============================================================================
# Delivery ledger
# =============================================================================


class DeliveryModel(Base):
    """
    Proof that a channel already received an item.

    Existence of a row is the deduplication primitive; rows are only ever
    inserted (if absent) or pruned by age.
    """

    __tablename__ = "deliveries"
    __table_args__ = (
        Index("ix_deliveries_channel", "channel_id"),
        Index("ix_deliveries_sent_at", "sent_at"),
    )

    alert_kind: Mapped[str] = mapped_column(String(16), primary_key=True)
    alert_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    channel_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_all_tables(engine: Engine) -> None:
    """Create all tables (no-op for tables that already exist)."""
    Base.metadata.create_all(engine)


def drop_all_tables(engine: Engine) -> None:
    """Drop all tables. USE WITH CAUTION!"""
    Base.metadata.drop_all(engine)
