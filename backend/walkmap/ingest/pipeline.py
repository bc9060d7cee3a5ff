"""Batch ingestion of source track files into the track store.

One source is processed completely (parse, metrics, simplify, bounds,
summary, upsert) before the next one starts. A bad file is logged, counted
and skipped; only a source directory that cannot be listed, or a store
failure, stops the batch.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from walkmap.core.config import settings
from walkmap.core.constants import SOURCE_EXTENSIONS, TRACK_COLORS
from walkmap.core.errors import SourceEnumerationError, SummaryServiceError, TrackSourceError
from walkmap.core.time_utils import to_local_datetime
from walkmap.geo.bounds import compute_bounds
from walkmap.geo.metrics import (
    duration_minutes,
    elevation_gain_loss,
    estimated_duration_minutes,
    path_distance_km,
)
from walkmap.geo.simplify import reduction_ratio, simplify
from walkmap.ingest.parsers import ParsedTrack, parse_source
from walkmap.schemas.track import SummaryRequest, TrackRecord
from walkmap.services.summary import Summarizer
from walkmap.store import TrackStore

logger = logging.getLogger(__name__)

# Namespace for source-derived track ids
TRACK_ID_NAMESPACE = uuid.UUID("5b0f3c1e-8a4d-4e53-9c57-6f1d2a7b9e04")


class PipelineMode(str, Enum):
    incremental = "incremental"  # only sources not yet in the store
    force = "force"              # clear the store, rebuild everything
    status = "status"            # report only, no writes
    summaries = "summaries"      # fill in missing narrative summaries


@dataclass
class SourceFailure:
    source_file: str
    reason: str


@dataclass
class BatchReport:
    mode: PipelineMode
    sources_total: int = 0
    already_processed: int = 0
    attempted: int = 0
    processed: int = 0
    failed: int = 0
    summaries_generated: int = 0
    summaries_failed: int = 0
    summaries_omitted: int = 0
    original_points: int = 0
    simplified_points: int = 0
    store_count: Optional[int] = None  # unknown when the store failed mid-batch
    failures: list[SourceFailure] = field(default_factory=list)

    @property
    def overall_reduction(self) -> float:
        if self.original_points == 0:
            return 0.0
        return (1 - self.simplified_points / self.original_points) * 100

    def lines(self) -> list[str]:
        if self.mode == PipelineMode.summaries:
            out = [
                f"Summaries generated: {self.summaries_generated}",
                f"Summaries failed:    {self.summaries_failed}",
                f"Summaries omitted:   {self.summaries_omitted}",
            ]
        else:
            out = [
                f"Files processed:   {self.attempted}",
                f"Successful:        {self.processed}",
                f"Failed:            {self.failed}",
                f"Summaries:         {self.summaries_generated} generated, "
                f"{self.summaries_failed} failed, {self.summaries_omitted} omitted",
                f"Original points:   {self.original_points:,}",
                f"Simplified points: {self.simplified_points:,}",
            ]
            if self.original_points > 0:
                out.append(f"Overall reduction: {self.overall_reduction:.1f}%")
        for failure in self.failures:
            out.append(f"  failed: {failure.source_file} ({failure.reason})")
        if self.store_count is not None:
            out.append(f"Total store entries: {self.store_count}")
        return out


@dataclass
class StatusReport:
    mode: PipelineMode
    sources_total: int
    processed: list[str]
    pending: list[str]
    orphaned: list[str]
    missing_summary: list[str]

    def lines(self) -> list[str]:
        out = [
            f"Total source files:  {self.sources_total}",
            f"Already processed:   {len(self.processed)}",
            f"Need processing:     {len(self.pending)}",
        ]
        if self.orphaned:
            out.append(f"Orphaned entries:    {len(self.orphaned)} (in store, file deleted)")
        if self.missing_summary:
            out.append(f"Missing summaries:   {len(self.missing_summary)}")
        for name in self.pending:
            out.append(f"  pending: {name}")
        for name in self.missing_summary:
            out.append(f"  no summary: {name}")
        return out


# --------- Discovery / work selection --------- #

def discover_sources(source_dir: str, create: bool = True) -> list[str]:
    """Return paths of readable track files in ``source_dir``, sorted by name.

    A missing directory yields no sources and is created unless ``create``
    is false. A path that exists but cannot be listed raises
    SourceEnumerationError.
    """
    if not os.path.exists(source_dir):
        if not create:
            logger.warning("Source directory %s not found", source_dir)
            return []
        logger.warning("Source directory %s not found; creating it", source_dir)
        try:
            os.makedirs(source_dir, exist_ok=True)
        except OSError as e:
            raise SourceEnumerationError(f"cannot create {source_dir}: {e}") from e
        return []
    try:
        names = os.listdir(source_dir)
    except OSError as e:
        raise SourceEnumerationError(f"cannot list {source_dir}: {e}") from e
    return [
        os.path.join(source_dir, n)
        for n in sorted(names)
        if os.path.splitext(n)[1].lower() in SOURCE_EXTENSIONS
    ]


def source_key(path: str) -> str:
    return os.path.basename(path)


def select_work(mode: PipelineMode, sources: Sequence[str], existing_keys: Iterable[str]) -> list[str]:
    """Sources to (re)build for ``mode``; report-only modes build nothing."""
    if mode == PipelineMode.force:
        return list(sources)
    if mode == PipelineMode.incremental:
        existing = set(existing_keys)
        return [s for s in sources if source_key(s) not in existing]
    if mode in (PipelineMode.status, PipelineMode.summaries):
        return []
    raise ValueError(f"Unknown pipeline mode: {mode!r}")


def track_id_for(source_file: str) -> str:
    """Stable id per source file, so rebuilds keep external references valid."""
    return uuid.uuid5(TRACK_ID_NAMESPACE, source_file).hex[:12]


def color_for(index: int) -> list[int]:
    return list(TRACK_COLORS[index % len(TRACK_COLORS)])


# --------- Per-source processing --------- #

def build_track_record(
    parsed: ParsedTrack,
    index: int,
    tolerance: float | None = None,
) -> TrackRecord:
    """Derive metrics, simplified geometry and bounds for one parsed source."""
    tol = settings.simplify_tolerance if tolerance is None else tolerance
    points = parsed.points
    coordinates_full = [p.coordinate for p in points]

    distance = path_distance_km(points)
    duration = duration_minutes(points)
    if duration == 0:
        duration = estimated_duration_minutes(distance)
    gain, loss = elevation_gain_loss(points)

    date = parsed.start_time
    if date is None:
        date = next((p.time for p in points if p.time is not None), None)
    if date is None:
        date = datetime.now(timezone.utc)

    return TrackRecord(
        id=track_id_for(parsed.source_file),
        name=parsed.name or f"Walk {index + 1}",
        description=parsed.description,
        date=date,
        distance_km=distance,
        duration_minutes=duration,
        elevation_gain_m=gain,
        elevation_loss_m=loss,
        points_full=points,
        coordinates_full=coordinates_full,
        coordinates_simplified=simplify(coordinates_full, tol),
        bounds=compute_bounds(coordinates_full),
        color=color_for(index),
        source_file=parsed.source_file,
    )


def summary_request_for(track) -> SummaryRequest:
    # The narrative talks about the walker's local day, not UTC
    return SummaryRequest(
        name=track.name,
        distance_km=track.distance_km,
        duration_minutes=track.duration_minutes,
        elevation_gain_m=track.elevation_gain_m,
        elevation_loss_m=track.elevation_loss_m,
        date=to_local_datetime(track.date, settings.timezone),
    )


# --------- Pipeline --------- #

class IngestionPipeline:
    """Runs one batch in a given mode against an open store."""

    def __init__(
        self,
        store: TrackStore,
        summarizer: Optional[Summarizer] = None,
        tolerance: float | None = None,
    ):
        self.store = store
        self.summarizer = summarizer
        self.tolerance = settings.simplify_tolerance if tolerance is None else tolerance
        # Report of the batch in progress, kept readable if the store fails
        self.report: Optional[BatchReport] = None

    def run(
        self,
        mode: PipelineMode,
        sources: Sequence[str],
        existing_keys: Optional[Iterable[str]] = None,
    ) -> BatchReport | StatusReport:
        """Run one batch.

        ``existing_keys`` is the set of source keys already in the store;
        when omitted it is queried once here.
        """
        existing = set(self.store.source_files() if existing_keys is None else existing_keys)
        if mode == PipelineMode.status:
            return self._status(sources, existing)
        if mode == PipelineMode.summaries:
            return self._refresh_summaries(len(sources), existing)
        if mode in (PipelineMode.force, PipelineMode.incremental):
            return self._build(mode, sources, existing)
        raise ValueError(f"Unknown pipeline mode: {mode!r}")

    def _summaries_available(self) -> bool:
        if self.summarizer is None:
            return False
        available = self.summarizer.is_available()
        if not available:
            logger.warning("Summary service not available; summaries will be omitted")
        return available

    def _build(self, mode: PipelineMode, sources: Sequence[str], existing: set[str]) -> BatchReport:
        work = select_work(mode, sources, existing)
        report = BatchReport(
            mode=mode,
            sources_total=len(sources),
            already_processed=0 if mode == PipelineMode.force else len(existing),
            attempted=len(work),
        )
        self.report = report

        if mode == PipelineMode.force:
            logger.info("Force rebuild: clearing store")
            self.store.clear()
            start_index = 0
        else:
            start_index = len(existing)
            logger.info("Already processed: %s; new sources: %s", len(existing), len(work))

        if not work:
            report.store_count = self.store.count()
            return report

        summaries_on = self._summaries_available()

        for offset, path in enumerate(work):
            name = source_key(path)
            try:
                parsed = parse_source(path)
                record = build_track_record(parsed, start_index + offset, self.tolerance)
            except TrackSourceError as e:
                logger.error("Skipping %s: %s", name, e)
                report.failed += 1
                report.failures.append(SourceFailure(name, str(e)))
                continue

            if summaries_on:
                try:
                    record.summary = self.summarizer.generate(summary_request_for(record))
                    report.summaries_generated += 1
                except SummaryServiceError as e:
                    logger.warning("Summary generation failed for %s: %s", name, e)
                    report.summaries_failed += 1
            else:
                report.summaries_omitted += 1

            try:
                self.store.upsert(record)
            except SQLAlchemyError:
                report.failed += 1
                report.failures.append(SourceFailure(name, "store write failed"))
                raise
            report.processed += 1

            original = len(record.coordinates_full)
            simplified = len(record.coordinates_simplified)
            report.original_points += original
            report.simplified_points += simplified
            logger.info(
                "%s: %s -> %s pts (%.1f%% reduction)%s",
                name,
                original,
                simplified,
                reduction_ratio(record.coordinates_full, record.coordinates_simplified),
                " +summary" if record.summary else "",
            )

        report.store_count = self.store.count()
        return report

    def _status(self, sources: Sequence[str], existing: set[str]) -> StatusReport:
        names = [source_key(s) for s in sources]
        on_disk = set(names)
        missing = self.store.missing_summary()
        return StatusReport(
            mode=PipelineMode.status,
            sources_total=len(names),
            processed=[n for n in names if n in existing],
            pending=[n for n in names if n not in existing],
            orphaned=sorted(k for k in existing if k not in on_disk),
            missing_summary=[t.source_file or t.id for t in missing],
        )

    def _refresh_summaries(self, sources_total: int, existing: set[str]) -> BatchReport:
        report = BatchReport(
            mode=PipelineMode.summaries,
            sources_total=sources_total,
            already_processed=len(existing),
        )
        self.report = report
        missing = self.store.missing_summary()
        report.attempted = len(missing)

        if missing and not self._summaries_available():
            report.summaries_omitted = len(missing)
        else:
            for track in missing:
                label = track.source_file or track.id
                try:
                    text = self.summarizer.generate(summary_request_for(track))
                except SummaryServiceError as e:
                    logger.warning("Summary generation failed for %s: %s", label, e)
                    report.summaries_failed += 1
                    report.failures.append(SourceFailure(label, str(e)))
                    continue
                self.store.update_summary(track.id, text)
                report.summaries_generated += 1
                logger.info("%s: summary stored", label)

        report.store_count = self.store.count()
        return report
