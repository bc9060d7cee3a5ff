import pytest

from conftest import simple_walk, write_gpx
from walkmap.core.errors import SourceEnumerationError, SummaryServiceError
from walkmap.ingest.parsers import parse_source
from walkmap.ingest.pipeline import (
    BatchReport,
    IngestionPipeline,
    PipelineMode,
    StatusReport,
    build_track_record,
    discover_sources,
    select_work,
    track_id_for,
)


class FakeSummarizer:
    def __init__(self, available=True, fail_for=()):
        self.available = available
        self.fail_for = set(fail_for)
        self.calls = []

    def is_available(self):
        return self.available

    def generate(self, request):
        self.calls.append(request.name)
        if request.name in self.fail_for:
            raise SummaryServiceError("model crashed")
        return f"A walk called {request.name}."


def _sources(tmp_path, count, start=0):
    for i in range(start, start + count):
        write_gpx(tmp_path, f"walk_{i:02d}.gpx", segments=simple_walk(offset=i * 0.01), name=f"Walk {i}")
    return discover_sources(str(tmp_path))


def test_discover_sources_filters_and_sorts(tmp_path):
    write_gpx(tmp_path, "b.gpx", segments=simple_walk())
    write_gpx(tmp_path, "a.GPX", segments=simple_walk())
    (tmp_path / "c.fit").write_bytes(b"")
    (tmp_path / "readme.txt").write_text("x", encoding="utf-8")
    names = [p.rsplit("/", 1)[-1] for p in discover_sources(str(tmp_path))]
    assert names == ["a.GPX", "b.gpx", "c.fit"]


def test_missing_source_dir_is_created(tmp_path):
    target = tmp_path / "gpx"
    assert discover_sources(str(target)) == []
    assert target.is_dir()


def test_missing_source_dir_left_alone_when_not_creating(tmp_path):
    target = tmp_path / "gpx"
    assert discover_sources(str(target), create=False) == []
    assert not target.exists()


def test_unlistable_source_dir_is_fatal(tmp_path):
    not_a_dir = tmp_path / "file.gpx"
    not_a_dir.write_text("x", encoding="utf-8")
    with pytest.raises(SourceEnumerationError):
        discover_sources(str(not_a_dir))


def test_select_work():
    sources = ["/d/a.gpx", "/d/b.gpx", "/d/c.gpx"]
    assert select_work(PipelineMode.force, sources, {"a.gpx"}) == sources
    assert select_work(PipelineMode.incremental, sources, {"a.gpx"}) == ["/d/b.gpx", "/d/c.gpx"]
    assert select_work(PipelineMode.status, sources, set()) == []
    assert select_work(PipelineMode.summaries, sources, set()) == []


def test_build_track_record_invariants(tmp_path):
    path = write_gpx(tmp_path, "loop.gpx", segments=simple_walk(n=200), name="Loop")
    record = build_track_record(parse_source(str(path)), index=8, tolerance=0.0001)

    assert record.id == track_id_for("loop.gpx")
    assert record.name == "Loop"
    assert record.source_file == "loop.gpx"
    assert len(record.coordinates_full) == 200
    assert len(record.coordinates_simplified) <= len(record.coordinates_full)
    assert record.coordinates_simplified[0] == record.coordinates_full[0]
    assert record.coordinates_simplified[-1] == record.coordinates_full[-1]
    assert record.bounds.min_lng == pytest.approx(-74.0)
    assert record.bounds.max_lat == pytest.approx(40.7005)
    assert record.duration_minutes == pytest.approx(199)
    assert record.color == [200, 200, 255, 180]  # palette index 8 % 7


def test_duration_falls_back_to_walking_estimate(tmp_path):
    seg = [(-74.0, 40.70, None, None), (-74.0, 40.71, None, None)]
    path = write_gpx(tmp_path, "untimed.gpx", segments=[seg])
    record = build_track_record(parse_source(str(path)), index=0)
    assert record.name == "Walk 1"
    assert record.distance_km == pytest.approx(1.112, abs=0.001)
    assert record.duration_minutes == pytest.approx(record.distance_km / 5 * 60)


def test_incremental_run_processes_only_new_sources(tmp_path, store):
    summarizer = FakeSummarizer()
    sources = _sources(tmp_path, 3)
    IngestionPipeline(store, summarizer=summarizer).run(PipelineMode.force, sources)
    store.update_summary(track_id_for("walk_00.gpx"), "Hand written.")
    before = {t.id: t.summary for t in store.list_summaries()}

    sources = _sources(tmp_path, 2, start=3)
    summarizer.calls.clear()
    report = IngestionPipeline(store, summarizer=summarizer).run(PipelineMode.incremental, sources)

    assert isinstance(report, BatchReport)
    assert report.attempted == 2
    assert report.processed == 2
    assert report.failed == 0
    assert sorted(summarizer.calls) == ["Walk 3", "Walk 4"]
    assert store.count() == 5
    after = {t.id: t.summary for t in store.list_summaries()}
    for track_id, summary in before.items():
        assert after[track_id] == summary
    assert after[track_id_for("walk_00.gpx")] == "Hand written."


def test_incremental_run_with_nothing_new(tmp_path, store):
    sources = _sources(tmp_path, 2)
    IngestionPipeline(store).run(PipelineMode.incremental, sources)
    report = IngestionPipeline(store).run(PipelineMode.incremental, sources)
    assert report.attempted == 0
    assert report.store_count == 2


def test_force_rebuild_clears_and_repopulates(tmp_path, store):
    sources = _sources(tmp_path, 5)
    IngestionPipeline(store).run(PipelineMode.incremental, sources)
    store.update_summary(track_id_for("walk_01.gpx"), "Old summary.")

    report = IngestionPipeline(store).run(PipelineMode.force, sources)
    assert report.processed == 5
    assert store.count() == 5
    assert store.get_by_source_file("walk_01.gpx").summary is None
    # ids are stable across rebuilds
    assert {t.id for t in store.list_summaries()} == {track_id_for(f"walk_{i:02d}.gpx") for i in range(5)}


def test_bad_files_are_counted_and_skipped(tmp_path, store):
    sources = _sources(tmp_path, 2)
    (tmp_path / "zz_broken.gpx").write_text("<gpx><trk>", encoding="utf-8")
    write_gpx(tmp_path, "zz_empty.gpx", segments=None, name="No points")
    sources = discover_sources(str(tmp_path))

    report = IngestionPipeline(store).run(PipelineMode.incremental, sources)
    assert report.processed == 2
    assert report.failed == 2
    assert {f.source_file for f in report.failures} == {"zz_broken.gpx", "zz_empty.gpx"}
    assert store.count() == 2
    assert any("Failed:            2" in line for line in report.lines())


def test_totals_and_reduction(tmp_path, store):
    sources = _sources(tmp_path, 2)
    report = IngestionPipeline(store).run(PipelineMode.incremental, sources)
    assert report.original_points == 60
    assert 0 < report.simplified_points <= 60
    assert report.overall_reduction == pytest.approx(
        (1 - report.simplified_points / report.original_points) * 100
    )


def test_summary_failures_do_not_fail_records(tmp_path, store):
    sources = _sources(tmp_path, 3)
    summarizer = FakeSummarizer(fail_for={"Walk 1"})
    report = IngestionPipeline(store, summarizer=summarizer).run(PipelineMode.incremental, sources)
    assert report.processed == 3
    assert report.summaries_generated == 2
    assert report.summaries_failed == 1
    assert store.get_by_source_file("walk_01.gpx").summary is None
    assert store.get_by_source_file("walk_02.gpx").summary == "A walk called Walk 2."


def test_unavailable_summary_service_omits_summaries(tmp_path, store):
    sources = _sources(tmp_path, 2)
    summarizer = FakeSummarizer(available=False)
    report = IngestionPipeline(store, summarizer=summarizer).run(PipelineMode.incremental, sources)
    assert report.processed == 2
    assert report.summaries_omitted == 2
    assert summarizer.calls == []
    assert len(store.missing_summary()) == 2


def test_status_reports_without_writing(tmp_path, store):
    sources = _sources(tmp_path, 2)
    IngestionPipeline(store).run(PipelineMode.incremental, sources)
    (tmp_path / "walk_00.gpx").unlink()
    sources = _sources(tmp_path, 1, start=5)

    report = IngestionPipeline(store).run(PipelineMode.status, sources)
    assert isinstance(report, StatusReport)
    assert report.processed == ["walk_01.gpx"]
    assert report.pending == ["walk_05.gpx"]
    assert report.orphaned == ["walk_00.gpx"]
    assert sorted(report.missing_summary) == ["walk_00.gpx", "walk_01.gpx"]
    assert store.count() == 2


def test_refresh_summaries_only_touches_summary(tmp_path, store):
    sources = _sources(tmp_path, 3)
    IngestionPipeline(store).run(PipelineMode.incremental, sources)
    store.update_summary(track_id_for("walk_00.gpx"), "Already there.")
    before = store.get_full(track_id_for("walk_01.gpx"))

    summarizer = FakeSummarizer(fail_for={"Walk 2"})
    report = IngestionPipeline(store, summarizer=summarizer).run(PipelineMode.summaries, sources)

    assert report.attempted == 2
    assert report.summaries_generated == 1
    assert report.summaries_failed == 1
    assert sorted(summarizer.calls) == ["Walk 1", "Walk 2"]
    after = store.get_full(track_id_for("walk_01.gpx"))
    assert after.summary == "A walk called Walk 1."
    assert after.coordinates_full == before.coordinates_full
    assert after.distance_km == before.distance_km
    assert store.get_full(track_id_for("walk_00.gpx")).summary == "Already there."


def test_refresh_summaries_without_service(tmp_path, store):
    sources = _sources(tmp_path, 2)
    IngestionPipeline(store).run(PipelineMode.incremental, sources)
    report = IngestionPipeline(store, summarizer=None).run(PipelineMode.summaries, sources)
    assert report.summaries_omitted == 2
    assert len(store.missing_summary()) == 2
