"""Viewport culling and level-of-detail selection for the map renderer.

Everything here is a pure function of its inputs: no I/O, no caching, safe
to call from a UI event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from walkmap.core.config import settings
from walkmap.schemas.track import Bounds, Coordinate, TrackSummary


@dataclass(frozen=True)
class RenderItem:
    """One visible track as handed to the renderer."""

    track_id: str
    coordinates: Sequence[Coordinate]
    selected: bool = False
    hovered: bool = False
    color: Optional[list[int]] = None


def overlaps(record_bounds: Optional[Bounds], viewport: Optional[Bounds]) -> bool:
    """True unless the two boxes are separated on either axis.

    Missing or empty bounds on either side count as overlapping (fail-open),
    which keeps the test symmetric.
    """
    if record_bounds is None or viewport is None:
        return True
    if record_bounds.is_empty or viewport.is_empty:
        return True
    return not (
        record_bounds.max_lng < viewport.min_lng
        or record_bounds.min_lng > viewport.max_lng
        or record_bounds.max_lat < viewport.min_lat
        or record_bounds.min_lat > viewport.max_lat
    )


def select_lod(
    record: TrackSummary,
    is_selected: bool,
    zoom_level: float,
    high_detail_zoom_threshold: float,
) -> Sequence[Coordinate]:
    """Full geometry for the selected track or when zoomed in far enough.

    Falls back to the simplified LOD whenever full geometry has not been
    loaded for the record.
    """
    full = record.coordinates_full
    if full and (is_selected or zoom_level >= high_detail_zoom_threshold):
        return full
    return record.coordinates_simplified


def derive_viewport_bounds(center: Coordinate, zoom: float, aspect_ratio: float = 1.0) -> Bounds:
    """Rough viewport box from a web-map zoom level.

    Not a projection: half-range of 180/2^zoom degrees latitude and
    (360/2^zoom)*aspect degrees longitude around ``center``. Good enough for
    coarse culling only.
    """
    lng, lat = center[0], center[1]
    lat_range = 180 / 2**zoom
    lng_range = (360 / 2**zoom) * aspect_ratio
    return Bounds(
        min_lng=lng - lng_range / 2,
        max_lng=lng + lng_range / 2,
        min_lat=lat - lat_range / 2,
        max_lat=lat + lat_range / 2,
    )


def _near(coord: Coordinate, point: Coordinate, threshold: float) -> bool:
    return abs(coord[0] - point[0]) < threshold and abs(coord[1] - point[1]) < threshold


class ViewportQueryEngine:
    """Decides which tracks to draw, and at which LOD, for a camera state."""

    def __init__(
        self,
        low_zoom_threshold: float | None = None,
        high_detail_zoom_threshold: float | None = None,
        near_point_threshold: float | None = None,
    ):
        self.low_zoom_threshold = (
            settings.low_zoom_threshold if low_zoom_threshold is None else low_zoom_threshold
        )
        self.high_detail_zoom_threshold = (
            settings.high_detail_zoom_threshold
            if high_detail_zoom_threshold is None
            else high_detail_zoom_threshold
        )
        self.near_point_threshold = (
            settings.near_point_threshold if near_point_threshold is None else near_point_threshold
        )

    def visible_tracks(
        self,
        tracks: Iterable[TrackSummary],
        viewport: Bounds,
        zoom: float,
    ) -> list[TrackSummary]:
        """Tracks overlapping ``viewport``; everything when zoomed far out."""
        tracks = list(tracks)
        if zoom < self.low_zoom_threshold:
            return tracks
        return [t for t in tracks if overlaps(t.bounds, viewport)]

    def select_lod(self, record: TrackSummary, is_selected: bool, zoom: float) -> Sequence[Coordinate]:
        return select_lod(record, is_selected, zoom, self.high_detail_zoom_threshold)

    def tracks_near_point(
        self,
        tracks: Iterable[TrackSummary],
        point: Coordinate,
        threshold: float | None = None,
    ) -> list[TrackSummary]:
        """Tracks with a vertex within ``threshold`` degrees of a click point.

        Used to offer a choice when several routes overlap under the cursor.
        """
        thr = self.near_point_threshold if threshold is None else threshold
        hits = []
        for t in tracks:
            coords = t.coordinates_full or t.coordinates_simplified
            if any(_near(c, point, thr) for c in coords):
                hits.append(t)
        return hits

    def render_layers(
        self,
        tracks: Iterable[TrackSummary],
        viewport: Bounds,
        zoom: float,
        selected_id: Optional[str] = None,
        hovered_id: Optional[str] = None,
    ) -> list[RenderItem]:
        """Visible tracks paired with the LOD to draw.

        The selected track is drawn last so it sits on top.
        """
        items = []
        selected_item = None
        for t in self.visible_tracks(tracks, viewport, zoom):
            is_selected = t.id == selected_id
            item = RenderItem(
                track_id=t.id,
                coordinates=self.select_lod(t, is_selected, zoom),
                selected=is_selected,
                hovered=t.id == hovered_id,
                color=t.color,
            )
            if is_selected:
                selected_item = item
            else:
                items.append(item)
        if selected_item is not None:
            items.append(selected_item)
        return items
