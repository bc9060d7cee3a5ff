"""Trip-level metrics derived from an ordered point sequence.

All functions accept any sequence of objects exposing ``latitude``,
``longitude``, ``elevation`` and ``time`` (normally ``TrackPoint``).
Empty or single-point input yields zero-valued results, never an error.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

from walkmap.core.constants import EARTH_RADIUS_KM, WALKING_SPEED_KMH
from walkmap.schemas.track import TrackPoint


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return great-circle distance in kilometers between two WGS84 points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def path_distance_km(points: Sequence[TrackPoint]) -> float:
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        total += haversine_km(prev.latitude, prev.longitude, curr.latitude, curr.longitude)
    return total


def duration_minutes(points: Sequence[TrackPoint]) -> float:
    """Elapsed minutes between the first and last timestamped points.

    Returns 0 when fewer than two points carry a timestamp. Points are
    assumed to be in recorded order; an out-of-order stream can produce a
    negative value.
    """
    if len(points) < 2:
        return 0.0
    first = next((p.time for p in points if p.time is not None), None)
    last = next((p.time for p in reversed(points) if p.time is not None), None)
    if first is None or last is None:
        return 0.0
    return (last - first).total_seconds() / 60.0


def elevation_gain_loss(points: Sequence[TrackPoint]) -> Tuple[float, float]:
    """Return (gain, loss) in meters; pairs missing an elevation are skipped."""
    gain = 0.0
    loss = 0.0
    for prev, curr in zip(points, points[1:]):
        if prev.elevation is None or curr.elevation is None:
            continue
        de = curr.elevation - prev.elevation
        if de > 0:
            gain += de
        else:
            loss += -de
    return gain, loss


def estimated_duration_minutes(distance_km: float) -> float:
    """Fallback duration assuming a constant walking pace."""
    return distance_km / WALKING_SPEED_KMH * 60
