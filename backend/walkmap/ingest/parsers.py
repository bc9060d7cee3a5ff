"""Readers that turn raw GPX / FIT files into ordered track points."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import gpxpy
import gpxpy.gpx
from fitparse import FitFile
from fitparse.utils import FitParseError

from walkmap.core.errors import NoGeometryError, TrackParseError
from walkmap.core.time_utils import ensure_utc
from walkmap.schemas.track import TrackPoint

logger = logging.getLogger(__name__)


@dataclass
class ParsedTrack:
    """Raw contents of one source file before any derived metrics."""

    source_file: str
    points: list[TrackPoint] = field(default_factory=list)
    name: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None  # from file metadata, if any


def parse_source(path: str) -> ParsedTrack:
    """Dispatch on extension. Raises TrackParseError / NoGeometryError."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".gpx":
        parsed = parse_gpx_file(path)
    elif ext == ".fit":
        parsed = parse_fit_file(path)
    else:
        raise TrackParseError(os.path.basename(path), f"unsupported file type '{ext}'")
    if not parsed.points:
        raise NoGeometryError(parsed.source_file, "no track or route points found")
    return parsed


# --------- GPX --------- #

def _gpx_point(p) -> TrackPoint:
    return TrackPoint(
        longitude=p.longitude,
        latitude=p.latitude,
        elevation=p.elevation,
        time=ensure_utc(p.time) if p.time else None,
    )


def parse_gpx_file(path: str) -> ParsedTrack:
    """Parse a GPX file.

    - Points: every segment of every track, flattened in file order.
      Route points are used only when the file has no track points.
    - Name/description: metadata first, then first track, then first route.
    """
    source_file = os.path.basename(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            gpx = gpxpy.parse(f)
    except (gpxpy.gpx.GPXException, OSError, ValueError) as e:
        raise TrackParseError(source_file, f"invalid GPX: {e}") from e

    points: list[TrackPoint] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for p in segment.points:
                points.append(_gpx_point(p))
    if not points:
        for route in gpx.routes:
            for p in route.points:
                points.append(_gpx_point(p))

    name = gpx.name
    description = gpx.description
    for owner in list(gpx.tracks) + list(gpx.routes):
        if not name and owner.name:
            name = owner.name
        if not description and owner.description:
            description = owner.description

    return ParsedTrack(
        source_file=source_file,
        points=points,
        name=name.strip() if name else None,
        description=description.strip() if description else None,
        start_time=ensure_utc(gpx.time) if gpx.time else None,
    )


# --------- FIT --------- #

def _semicircles_to_degrees(val):
    return val * (180 / 2**31) if val is not None else None


def parse_fit_file(path: str) -> ParsedTrack:
    """Parse a FIT activity file from its ``record`` messages.

    Records without a GPS fix (indoor samples, warm-up before lock) are
    skipped. Prefers ``enhanced_altitude`` over ``altitude``.
    """
    source_file = os.path.basename(path)
    points: list[TrackPoint] = []
    try:
        ff = FitFile(path)
        for record in ff.get_messages("record"):
            fields = {f.name: f.value for f in record}
            lat = _semicircles_to_degrees(fields.get("position_lat"))
            lon = _semicircles_to_degrees(fields.get("position_long"))
            if lat is None or lon is None:
                continue
            ele = fields.get("enhanced_altitude")
            if ele is None:
                ele = fields.get("altitude")
            ts = fields.get("timestamp")
            points.append(
                TrackPoint(
                    longitude=lon,
                    latitude=lat,
                    elevation=float(ele) if ele is not None else None,
                    time=ensure_utc(ts) if isinstance(ts, datetime) else None,
                )
            )
    except (FitParseError, OSError, ValueError) as e:
        raise TrackParseError(source_file, f"invalid FIT: {e}") from e

    # FIT activities carry no title; the file name stands in for one
    return ParsedTrack(
        source_file=source_file,
        points=points,
        name=os.path.splitext(source_file)[0] or None,
    )
