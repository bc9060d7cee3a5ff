"""Command-line entry point for the track ingestion pipeline.

Run:
    walkmap-ingest               # incremental (new files only)
    walkmap-ingest --force       # clear the store and rebuild everything
    walkmap-ingest --status      # show what needs processing
    walkmap-ingest --summaries   # generate missing narrative summaries
"""

import argparse
import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from walkmap.core.config import settings
from walkmap.core.errors import SourceEnumerationError
from walkmap.db import open_store
from walkmap.ingest.pipeline import IngestionPipeline, PipelineMode, discover_sources
from walkmap.services.summary import OllamaSummarizer

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="walkmap-ingest",
        description="Parse, simplify and store GPS tracks for map display.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-f", "--force", action="store_true", help="Clear the store and rebuild everything")
    mode.add_argument("-s", "--status", action="store_true", help="Report what needs processing; no writes")
    mode.add_argument(
        "--summaries",
        "--generate-summaries",
        dest="summaries",
        action="store_true",
        help="Generate narrative summaries for stored tracks that lack one",
    )
    parser.add_argument("--source-dir", default=settings.source_dir, help="Directory of .gpx/.fit files")
    parser.add_argument("--database-url", default=settings.database_url, help="SQLAlchemy database URL")
    parser.add_argument(
        "--no-summaries",
        action="store_true",
        help="Skip narrative summaries while ingesting",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args(argv)


def _mode_from_args(args) -> PipelineMode:
    if args.force:
        return PipelineMode.force
    if args.status:
        return PipelineMode.status
    if args.summaries:
        return PipelineMode.summaries
    return PipelineMode.incremental


def main(argv=None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.log_level)
    mode = _mode_from_args(args)
    logger.info("Running in %s mode", mode.value)

    use_summaries = settings.summaries_enabled and not args.no_summaries and mode != PipelineMode.status
    summarizer = OllamaSummarizer() if use_summaries else None

    # Status mode only reads: no source directory, store file or schema is created
    read_only = mode == PipelineMode.status
    source_missing = not os.path.exists(args.source_dir)
    pipeline = None
    try:
        sources = discover_sources(args.source_dir, create=not read_only)
        logger.info("Found %s source files in %s", len(sources), args.source_dir)
        with open_store(args.database_url, read_only=read_only) as store:
            pipeline = IngestionPipeline(store, summarizer=summarizer)
            report = pipeline.run(mode, sources)
    except SourceEnumerationError as e:
        logger.error("Cannot enumerate sources: %s", e)
        return 1
    except SQLAlchemyError as e:
        logger.error("Store failure: %s", e)
        if pipeline is not None and pipeline.report is not None:
            for line in pipeline.report.lines():
                print(line)
        return 1
    finally:
        if summarizer is not None:
            summarizer.close()

    if read_only and source_missing:
        print(f"Source directory not found: {args.source_dir}")
    for line in report.lines():
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
