from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


# (longitude, latitude) in degrees
Coordinate = Tuple[float, float]


class TrackPoint(BaseModel):
    """One recorded sample. Sequence order is the recorded trajectory order."""

    longitude: float
    latitude: float
    elevation: Optional[float] = None  # meters
    time: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def coordinate(self) -> Coordinate:
        return (self.longitude, self.latitude)


class Bounds(BaseModel):
    """Axis-aligned lon/lat box.

    The infinite seed produced by folding an empty coordinate list is kept
    as an explicit "no bounds" value; check `is_empty` before using it.
    """

    min_lng: float
    max_lng: float
    min_lat: float
    max_lat: float

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls) -> "Bounds":
        inf = float("inf")
        return cls(min_lng=inf, max_lng=-inf, min_lat=inf, max_lat=-inf)

    @property
    def is_empty(self) -> bool:
        return self.min_lng > self.max_lng or self.min_lat > self.max_lat

    def contains(self, coord: Coordinate) -> bool:
        lng, lat = coord
        return self.min_lng <= lng <= self.max_lng and self.min_lat <= lat <= self.max_lat


class TrackRecord(BaseModel):
    """A fully processed track, ready to be written to the store."""

    id: str
    name: str
    description: Optional[str] = None
    summary: Optional[str] = None
    date: datetime

    distance_km: float
    duration_minutes: float
    elevation_gain_m: Optional[float] = None
    elevation_loss_m: Optional[float] = None

    points_full: list[TrackPoint]
    coordinates_full: list[Coordinate]
    coordinates_simplified: list[Coordinate]
    bounds: Bounds

    color: Optional[list[int]] = None  # RGBA
    source_file: str


class TrackSummary(BaseModel):
    """Summary-LOD view of a stored track (no full geometry)."""

    id: str
    name: str
    description: Optional[str] = None
    summary: Optional[str] = None
    date: datetime
    distance_km: float
    duration_minutes: float
    elevation_gain_m: Optional[float] = None
    elevation_loss_m: Optional[float] = None
    coordinates_simplified: list[Coordinate]
    bounds: Optional[Bounds] = None
    color: Optional[list[int]] = None
    source_file: Optional[str] = None

    # Only populated on full-LOD fetches
    coordinates_full: Optional[list[Coordinate]] = None


class TrackDetail(TrackSummary):
    """Full-LOD view of a stored track, fetched for the selected record."""

    coordinates_full: list[Coordinate]
    points_full: list[TrackPoint]


class TrackStats(BaseModel):
    total_tracks: int
    total_distance_km: float
    total_duration_minutes: float
    average_distance_km: float
    average_duration_minutes: float


class SummaryRequest(BaseModel):
    """Inputs handed to the narrative-summary service."""

    name: str
    distance_km: float
    duration_minutes: float
    elevation_gain_m: Optional[float] = None
    elevation_loss_m: Optional[float] = None
    date: datetime
