from typing import Iterable, Optional

from walkmap.schemas.track import Bounds, Coordinate


def compute_bounds(coordinates: Iterable[Coordinate]) -> Bounds:
    """Exact lon/lat box of ``coordinates``.

    Empty input returns ``Bounds.empty()`` (infinite seed values).
    """
    inf = float("inf")
    min_lng, max_lng, min_lat, max_lat = inf, -inf, inf, -inf
    for coord in coordinates:
        lng, lat = coord[0], coord[1]
        min_lng = min(min_lng, lng)
        max_lng = max(max_lng, lng)
        min_lat = min(min_lat, lat)
        max_lat = max(max_lat, lat)
    return Bounds(min_lng=min_lng, max_lng=max_lng, min_lat=min_lat, max_lat=max_lat)


def combined_bounds(boxes: Iterable[Optional[Bounds]]) -> Bounds:
    """Union of several boxes; missing or empty boxes are ignored."""
    result = Bounds.empty()
    for b in boxes:
        if b is None or b.is_empty:
            continue
        result = Bounds(
            min_lng=min(result.min_lng, b.min_lng),
            max_lng=max(result.max_lng, b.max_lng),
            min_lat=min(result.min_lat, b.min_lat),
            max_lat=max(result.max_lat, b.max_lat),
        )
    return result
