"""Keyed track store on top of a SQLAlchemy session.

Each write method commits its own transaction, so a concurrent reader sees
either the previous version of a record or the new one.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, defer

from walkmap.models.track import Track
from walkmap.schemas.track import (
    Bounds,
    TrackDetail,
    TrackRecord,
    TrackStats,
    TrackSummary,
)

logger = logging.getLogger(__name__)


def _row_bounds(row: Track) -> Optional[Bounds]:
    values = (row.bounds_min_lng, row.bounds_max_lng, row.bounds_min_lat, row.bounds_max_lat)
    if any(v is None for v in values):
        return None
    return Bounds(
        min_lng=row.bounds_min_lng,
        max_lng=row.bounds_max_lng,
        min_lat=row.bounds_min_lat,
        max_lat=row.bounds_max_lat,
    )


def _summary_fields(row: Track) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "summary": row.summary,
        "date": row.date,
        "distance_km": row.distance_km,
        "duration_minutes": row.duration_minutes,
        "elevation_gain_m": row.elevation_gain_m,
        "elevation_loss_m": row.elevation_loss_m,
        "coordinates_simplified": row.coordinates_simplified or [],
        "bounds": _row_bounds(row),
        "color": row.color,
        "source_file": row.source_file,
    }


def _to_summary(row: Track) -> TrackSummary:
    return TrackSummary(**_summary_fields(row))


def _to_detail(row: Track) -> TrackDetail:
    return TrackDetail(
        **_summary_fields(row),
        coordinates_full=row.coordinates_full or [],
        points_full=row.points or [],
    )


class TrackStore:
    """Insert-or-replace and LOD-aware queries over the ``tracks`` table."""

    def __init__(self, db: Session):
        self.db = db

    def _summary_query(self):
        # Summary LOD: leave the heavy geometry columns unloaded
        return self.db.query(Track).options(defer(Track.coordinates_full), defer(Track.points))

    # --------- Writes --------- #

    def upsert(self, record: TrackRecord) -> None:
        """Insert ``record`` or fully replace the row with the same id.

        Any other row carrying the same ``source_file`` is removed in the
        same transaction so a source is never represented twice.
        """
        bounds = None if record.bounds.is_empty else record.bounds
        try:
            (
                self.db.query(Track)
                .filter(Track.source_file == record.source_file, Track.id != record.id)
                .delete(synchronize_session=False)
            )
            existing = self.db.get(Track, record.id)
            if existing is not None:
                self.db.delete(existing)
                self.db.flush()
            self.db.add(
                Track(
                    id=record.id,
                    name=record.name,
                    description=record.description,
                    summary=record.summary,
                    date=record.date,
                    distance_km=record.distance_km,
                    duration_minutes=record.duration_minutes,
                    elevation_gain_m=record.elevation_gain_m,
                    elevation_loss_m=record.elevation_loss_m,
                    coordinates_simplified=[list(c) for c in record.coordinates_simplified],
                    coordinates_full=[list(c) for c in record.coordinates_full],
                    points=[p.model_dump(mode="json") for p in record.points_full],
                    color=record.color,
                    bounds_min_lng=bounds.min_lng if bounds else None,
                    bounds_max_lng=bounds.max_lng if bounds else None,
                    bounds_min_lat=bounds.min_lat if bounds else None,
                    bounds_max_lat=bounds.max_lat if bounds else None,
                    source_file=record.source_file,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def update_summary(self, track_id: str, summary: str) -> bool:
        """Set only the narrative summary. Returns False if the id is unknown."""
        updated = (
            self.db.query(Track)
            .filter(Track.id == track_id)
            .update({Track.summary: summary}, synchronize_session=False)
        )
        self.db.commit()
        return bool(updated)

    def clear(self) -> int:
        deleted = self.db.query(Track).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Cleared %s tracks from store", deleted)
        return deleted

    # --------- Reads --------- #

    def count(self) -> int:
        return self.db.query(func.count(Track.id)).scalar() or 0

    def list_summaries(self) -> list[TrackSummary]:
        """All tracks, simplified geometry only, most recent first."""
        rows = self._summary_query().order_by(Track.date.desc()).all()
        return [_to_summary(r) for r in rows]

    def list_in_bounds(self, viewport: Bounds) -> list[TrackSummary]:
        """Tracks whose bounds overlap ``viewport``; tracks without bounds are included."""
        overlap = (
            (Track.bounds_max_lng >= viewport.min_lng)
            & (Track.bounds_min_lng <= viewport.max_lng)
            & (Track.bounds_max_lat >= viewport.min_lat)
            & (Track.bounds_min_lat <= viewport.max_lat)
        )
        missing = or_(
            Track.bounds_min_lng.is_(None),
            Track.bounds_max_lng.is_(None),
            Track.bounds_min_lat.is_(None),
            Track.bounds_max_lat.is_(None),
        )
        rows = (
            self._summary_query()
            .filter(or_(overlap, missing))
            .order_by(Track.date.desc())
            .all()
        )
        return [_to_summary(r) for r in rows]

    def get_full(self, track_id: str) -> Optional[TrackDetail]:
        row = self.db.get(Track, track_id)
        return _to_detail(row) if row is not None else None

    def get_by_source_file(self, source_file: str) -> Optional[TrackDetail]:
        row = self.db.query(Track).filter(Track.source_file == source_file).first()
        return _to_detail(row) if row is not None else None

    def source_files(self) -> set[str]:
        rows = (
            self.db.query(Track.source_file)
            .filter(Track.source_file.isnot(None))
            .distinct()
            .all()
        )
        return {sf for (sf,) in rows}

    def missing_summary(self) -> list[TrackSummary]:
        rows = (
            self._summary_query()
            .filter(or_(Track.summary.is_(None), Track.summary == ""))
            .order_by(Track.source_file.asc())
            .all()
        )
        return [_to_summary(r) for r in rows]

    def stats(self) -> TrackStats:
        total, distance, duration = self.db.query(
            func.count(Track.id),
            func.coalesce(func.sum(Track.distance_km), 0.0),
            func.coalesce(func.sum(Track.duration_minutes), 0.0),
        ).one()
        total = int(total or 0)
        distance = float(distance or 0.0)
        duration = float(duration or 0.0)
        return TrackStats(
            total_tracks=total,
            total_distance_km=distance,
            total_duration_minutes=duration,
            average_distance_km=distance / total if total else 0.0,
            average_duration_minutes=duration / total if total else 0.0,
        )
