"""Central error types used across the ingestion pipeline."""

from __future__ import annotations


class TrackSourceError(RuntimeError):
    """Base error for a single source track that cannot be ingested."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class TrackParseError(TrackSourceError):
    """Raised when a source file is not a readable GPX/FIT document."""


class NoGeometryError(TrackSourceError):
    """Raised when a source file parses but contains no track points."""


class SummaryServiceError(RuntimeError):
    """Raised when the narrative-summary service is unreachable or fails."""


class SourceEnumerationError(RuntimeError):
    """Raised when the source directory cannot be listed at all."""


__all__ = [
    "TrackSourceError",
    "TrackParseError",
    "NoGeometryError",
    "SummaryServiceError",
    "SourceEnumerationError",
]
