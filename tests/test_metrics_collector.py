# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for suite metrics collection and JSONL export."""

import json
from pathlib import Path

import pytest

from context_insight.fingerprint import Fingerprint
from context_insight.metrics_collector import (
    LoadTimeStatistics,
    MetricsCollector,
    calculate_load_time_statistics,
    read_suite_metrics,
)
from context_insight.optimizer import OptimizationAnalyzer
from context_insight.tracker import ContextCacheTracker


def _populated_tracker(tracker: ContextCacheTracker) -> ContextCacheTracker:
    web = Fingerprint(sources={"WebConfig", "SecurityConfig"}, profiles={"test"})
    data = Fingerprint(sources={"WebConfig", "DataConfig"}, profiles={"test"})
    tracker.record_usage(web, "tests.web.UserControllerTest")
    tracker.record_usage_method(web, "tests.web.UserControllerTest", "lists_users")
    tracker.record_creation(web, 800)
    tracker.record_cache_hit(web)
    tracker.record_usage(data, "tests.data.UserRepositoryTest")
    tracker.record_creation(data, 1500)
    return tracker


class TestLoadTimeStatistics:
    """Tests for calculate_load_time_statistics()."""

    def test_empty(self) -> None:
        assert calculate_load_time_statistics([]) == LoadTimeStatistics()

    def test_single_value(self) -> None:
        stats = calculate_load_time_statistics([700])
        assert (stats.min, stats.max, stats.median, stats.p95) == (700, 700, 700, 700)
        assert stats.total_count == 1

    def test_distribution(self) -> None:
        stats = calculate_load_time_statistics(list(range(1, 101)))
        assert stats.min == 1
        assert stats.max == 100
        assert stats.median == 50
        assert stats.p95 == 96
        assert stats.total_count == 100


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.mark.parametrize("log_file", ["../escape.jsonl", "a/b.jsonl", "c:\\x.jsonl"])
    def test_log_file_must_be_plain_name(self, tmp_path: Path, log_file: str) -> None:
        with pytest.raises(ValueError):
            MetricsCollector(log_dir=tmp_path, log_file=log_file)

    def test_session_id(self, tmp_path: Path) -> None:
        assert MetricsCollector(log_dir=tmp_path, session_id="run-1").get_session_id() == "run-1"
        assert MetricsCollector(log_dir=tmp_path).get_session_id()

    def test_log_path(self, tmp_path: Path) -> None:
        collector = MetricsCollector(log_dir=tmp_path)
        assert collector.get_log_path() == tmp_path / "suite_metrics.jsonl"

    def test_collect_cache_metrics(self, tmp_path: Path, tracker: ContextCacheTracker) -> None:
        metrics = MetricsCollector(log_dir=tmp_path).collect_cache_metrics(
            _populated_tracker(tracker)
        )
        assert metrics.total_contexts_created == 2
        assert metrics.cache_hits == 1
        assert metrics.cache_misses == 2
        assert metrics.hit_ratio == pytest.approx(1 / 3)
        assert metrics.distinct_fingerprints == 2

    def test_build_suite_metrics(self, tmp_path: Path, tracker: ContextCacheTracker) -> None:
        collector = MetricsCollector(log_dir=tmp_path, session_id="run-1")
        collector.set_configuration({"max_opportunities": 5})

        metrics = collector.build_suite_metrics(_populated_tracker(tracker))

        assert metrics.session_id == "run-1"
        assert metrics.load_times.total_count == 2
        assert metrics.load_times.max == 1500
        assert metrics.optimization.total_creation_time_ms == 2300
        assert metrics.optimization.potential_savings_ms == 1500
        assert len(metrics.timeline["entries"]) == 2
        assert metrics.configuration == {"max_opportunities": 5}

        first = metrics.contexts[0]
        assert first["test_classes"] == ["tests.web.UserControllerTest"]
        assert first["test_methods"] == ["tests.web.UserControllerTest.lists_users"]
        assert first["summary"]["active_profiles"] == ["test"]
        # Nothing was written
        assert not collector.get_log_path().exists()

    def test_write_and_read_back(self, tmp_path: Path, tracker: ContextCacheTracker) -> None:
        collector = MetricsCollector(log_dir=tmp_path / "metrics", session_id="run-1")
        analyzer = OptimizationAnalyzer(tracker, acceptable_load_time_ms=500)

        written = collector.finalize_and_write(_populated_tracker(tracker), analyzer)
        [record] = read_suite_metrics(collector.get_log_path())

        assert record.session_id == "run-1"
        assert record.cache_performance.cache_hits == 1
        assert record.load_times == written.load_times
        assert record.optimization.wasted_time_ms == 300 + 1000
        assert record.optimization.top_opportunities == written.optimization.top_opportunities
        assert len(record.contexts) == 2

    def test_write_appends(self, tmp_path: Path, tracker: ContextCacheTracker) -> None:
        collector = MetricsCollector(log_dir=tmp_path)
        collector.finalize_and_write(tracker)
        collector.finalize_and_write(tracker)

        lines = collector.get_log_path().read_text().strip().split("\n")
        assert len(lines) == 2
        assert all(json.loads(line)["cache_performance"]["cache_hits"] == 0 for line in lines)


class TestReadSuiteMetrics:
    """Tests for read_suite_metrics()."""

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_suite_metrics(tmp_path / "missing.jsonl") == []

    def test_malformed_lines_skipped(self, tmp_path: Path) -> None:
        log_path = tmp_path / "suite_metrics.jsonl"
        log_path.write_text(
            '{"session_id": "good-1"}\n'
            "not json at all\n"
            "\n"
            '{"session_id": "bad", "optimization": {"top_opportunities": [{}]}}\n'
            '{"session_id": "good-2"}\n'
        )

        records = read_suite_metrics(log_path)

        assert [r.session_id for r in records] == ["good-1", "good-2"]

    def test_limit(self, tmp_path: Path) -> None:
        log_path = tmp_path / "suite_metrics.jsonl"
        log_path.write_text("".join(f'{{"session_id": "run-{i}"}}\n' for i in range(5)))

        records = read_suite_metrics(log_path, limit=2)

        assert [r.session_id for r in records] == ["run-0", "run-1"]
