"""Douglas-Peucker polyline simplification.

Distances are measured in raw coordinate (degree) space, so tolerances are
in degrees too: 0.0001 deg is about 11 m at NYC latitude. Callers that need
a metric tolerance must convert it themselves.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence

from walkmap.core.config import settings
from walkmap.core.constants import (
    TARGET_BAND_HIGH,
    TARGET_BAND_LOW,
    TOLERANCE_SEARCH_HIGH,
    TOLERANCE_SEARCH_LOW,
    TOLERANCE_SEARCH_MAX_ITERATIONS,
)
from walkmap.schemas.track import Coordinate

logger = logging.getLogger(__name__)


def perpendicular_distance(point: Coordinate, line_start: Coordinate, line_end: Coordinate) -> float:
    """Distance from ``point`` to the infinite line through start and end."""
    x, y = point[0], point[1]
    x1, y1 = line_start[0], line_start[1]
    x2, y2 = line_end[0], line_end[1]
    dx = x2 - x1
    dy = y2 - y1
    if dx == 0 and dy == 0:
        return math.hypot(x - x1, y - y1)
    numerator = abs(dy * x - dx * y + x2 * y1 - y2 * x1)
    return numerator / math.sqrt(dx * dx + dy * dy)


def simplify(coordinates: Sequence[Coordinate], tolerance: float) -> List[Coordinate]:
    """Reduce a polyline, always keeping its first and last coordinate.

    Works on index ranges over the input buffer with an explicit stack, so
    long tracks neither copy sub-lists per level nor hit the recursion limit.
    The result matches the textbook recursive formulation: a range is split
    at its farthest interior point when that distance is strictly greater
    than ``tolerance``, otherwise it collapses to its two endpoints.
    """
    if len(coordinates) <= 2:
        return list(coordinates)
    return [coordinates[i] for i in _kept_indices(coordinates, tolerance)]


def _kept_indices(coordinates: Sequence[Coordinate], tolerance: float) -> List[int]:
    n = len(coordinates)
    if n <= 2:
        return list(range(n))

    keep = [False] * n
    keep[0] = keep[n - 1] = True
    stack = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue
        first, last = coordinates[start], coordinates[end]
        d_max = 0.0
        i_max = start
        for i in range(start + 1, end):
            d = perpendicular_distance(coordinates[i], first, last)
            if d > d_max:
                d_max = d
                i_max = i
        if d_max > tolerance and i_max > start:
            keep[i_max] = True
            stack.append((i_max, end))
            stack.append((start, i_max))

    return [i for i in range(n) if keep[i]]


def simplify_to_target_count(
    coordinates: Sequence[Coordinate],
    target_count: int | None = None,
    min_points: int | None = None,
) -> List[Coordinate]:
    """Binary-search a tolerance that lands near ``target_count`` points.

    Accepts any result within [0.5x, 1.5x] of the target. Never returns
    fewer than ``min_points`` coordinates when the input has at least that
    many. Deterministic for a given input.
    """
    if target_count is None:
        target_count = settings.target_simplified_points
    if min_points is None:
        min_points = settings.min_simplified_points
    if len(coordinates) <= target_count:
        return list(coordinates)

    low = TOLERANCE_SEARCH_LOW
    high = TOLERANCE_SEARCH_HIGH
    result = list(coordinates)

    for _ in range(TOLERANCE_SEARCH_MAX_ITERATIONS):
        mid = (low + high) / 2
        result = simplify(coordinates, mid)
        if len(result) < min_points:
            high = mid
        elif len(result) > target_count * TARGET_BAND_HIGH:
            low = mid
        elif len(result) < target_count * TARGET_BAND_LOW:
            high = mid
        else:
            break
    else:
        logger.debug(
            "Tolerance search did not converge (target=%s, got=%s, low=%s, high=%s)",
            target_count,
            len(result),
            low,
            high,
        )

    if len(result) < min_points:
        indices = _kept_indices(coordinates, low)
        if len(indices) < min_points:
            # Near-straight tracks collapse at any tolerance; top up with
            # evenly spaced original vertices.
            indices = sorted(set(indices) | set(_even_indices(len(coordinates), min_points)))
        return [coordinates[i] for i in indices]
    return result


def _even_indices(n: int, count: int) -> List[int]:
    if count <= 1 or n <= 1:
        return [0] if n else []
    step = (n - 1) / (count - 1)
    return [round(k * step) for k in range(count)]


def reduction_ratio(original: Sequence[Coordinate], simplified: Sequence[Coordinate]) -> float:
    """Percentage of points removed by simplification (0 for empty input)."""
    if not original:
        return 0.0
    return (len(original) - len(simplified)) / len(original) * 100
