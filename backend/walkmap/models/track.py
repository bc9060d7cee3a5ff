from sqlalchemy import Column, DateTime, Float, Index, JSON, String
from sqlalchemy.sql import func
from walkmap.db import Base


class Track(Base):
    __tablename__ = "tracks"

    # Opaque id, derived from source_file at ingestion
    id = Column(String, primary_key=True)

    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    summary = Column(String, nullable=True)  # narrative summary, filled best-effort

    # Effective start time of the track
    date = Column(DateTime(timezone=True), nullable=False)

    distance_km = Column(Float, nullable=False)
    duration_minutes = Column(Float, nullable=False)
    elevation_gain_m = Column(Float, nullable=True)
    elevation_loss_m = Column(Float, nullable=True)

    # Geometry LODs, stored as JSON lists of [lng, lat]
    coordinates_simplified = Column(JSON, nullable=False)
    coordinates_full = Column(JSON, nullable=False)
    # [{longitude, latitude, elevation, time}]
    points = Column(JSON, nullable=False)

    color = Column(JSON, nullable=True)  # [r, g, b, a]

    # Bounds of coordinates_full (not of the simplified LOD)
    bounds_min_lng = Column(Float, nullable=True)
    bounds_max_lng = Column(Float, nullable=True)
    bounds_min_lat = Column(Float, nullable=True)
    bounds_max_lat = Column(Float, nullable=True)

    # Provenance key for incremental runs (file basename)
    source_file = Column(String, nullable=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index(
            "ix_tracks_bounds",
            "bounds_min_lng",
            "bounds_max_lng",
            "bounds_min_lat",
            "bounds_max_lat",
        ),
        Index("ix_tracks_date", "date"),
    )
