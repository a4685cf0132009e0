# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for OptimizationAnalyzer."""

import pytest

from context_insight.fingerprint import Fingerprint
from context_insight.optimizer import UNKNOWN_TEST_CLASS, OptimizationAnalyzer
from context_insight.tracker import ContextCacheTracker


def _isolated(name: str) -> Fingerprint:
    """Fingerprint that scores zero against any other _isolated() fingerprint."""
    return Fingerprint(sources={name}, profiles={name}, initializers={name})


class TestTimeAggregates:
    """Total, wasted and potential savings."""

    def test_total_creation_time(self, tracker: ContextCacheTracker) -> None:
        tracker.record_creation(_isolated("A"), 300)
        tracker.record_creation(_isolated("B"), 1200)
        analyzer = OptimizationAnalyzer(tracker)
        assert analyzer.total_creation_time() == 1500

    def test_uncreated_entries_are_ignored(self, tracker: ContextCacheTracker) -> None:
        tracker.record_usage(_isolated("A"), "TestA")
        tracker.record_creation(_isolated("B"), 1200)
        analyzer = OptimizationAnalyzer(tracker)
        assert analyzer.total_creation_time() == 1200
        assert analyzer.analyze().total_contexts_created == 1

    def test_wasted_time_counts_only_time_above_threshold(
        self, tracker: ContextCacheTracker
    ) -> None:
        tracker.record_creation(_isolated("A"), 800)
        tracker.record_creation(_isolated("B"), 1000)
        tracker.record_creation(_isolated("C"), 1500)
        tracker.record_creation(_isolated("D"), 3000)
        analyzer = OptimizationAnalyzer(tracker)
        assert analyzer.wasted_time() == 500 + 2000

    def test_wasted_time_custom_threshold(self, tracker: ContextCacheTracker) -> None:
        tracker.record_creation(_isolated("A"), 800)
        analyzer = OptimizationAnalyzer(tracker, acceptable_load_time_ms=500)
        assert analyzer.wasted_time() == 300

    def test_potential_savings_counts_entries_with_neighbor(
        self, tracker: ContextCacheTracker
    ) -> None:
        tracker.record_creation(Fingerprint(sources={"Shared", "A"}), 700)
        tracker.record_creation(Fingerprint(sources={"Shared", "B"}), 900)
        tracker.record_creation(_isolated("C"), 400)
        analyzer = OptimizationAnalyzer(tracker)
        # Only the second context is linked to a neighbor
        assert analyzer.potential_savings() == 900

    def test_savings_percentage(self, tracker: ContextCacheTracker) -> None:
        tracker.record_creation(Fingerprint(sources={"Shared", "A"}), 1000)
        tracker.record_creation(Fingerprint(sources={"Shared", "B"}), 3000)
        stats = OptimizationAnalyzer(tracker).analyze()
        assert stats.total_creation_time_ms == 4000
        assert stats.potential_savings_ms == 3000
        assert stats.potential_savings_percentage == pytest.approx(75.0)


class TestRecommendations:
    """Recommendation rules apply in priority order."""

    def test_neighbor_rule_wins(self, tracker: ContextCacheTracker) -> None:
        first = Fingerprint(sources={"Shared", "A"})
        second = Fingerprint(sources={"Shared", "B"})
        tracker.record_creation(first, 600)
        tracker.record_creation(second, 2500)
        tracker.record_bean_definitions(second, [f"bean{i}" for i in range(150)])

        entry = tracker.get_entry(second)
        assert entry is not None
        text = OptimizationAnalyzer(tracker).recommend(entry)
        assert text == "Consider harmonizing with similar context to save 2500ms"

    def test_large_context_rule(self, tracker: ContextCacheTracker) -> None:
        fp = _isolated("A")
        tracker.record_creation(fp, 2500)
        tracker.record_bean_definitions(fp, [f"bean{i}" for i in range(101)])

        entry = tracker.get_entry(fp)
        assert entry is not None
        text = OptimizationAnalyzer(tracker).recommend(entry)
        assert text.startswith("Large context (101 beans)")

    def test_exactly_threshold_beans_is_not_large(self, tracker: ContextCacheTracker) -> None:
        fp = _isolated("A")
        tracker.record_creation(fp, 700)
        tracker.record_bean_definitions(fp, [f"bean{i}" for i in range(100)])

        entry = tracker.get_entry(fp)
        assert entry is not None
        text = OptimizationAnalyzer(tracker).recommend(entry)
        assert text == "Consider optimizing test setup to reduce context load time"

    def test_slow_load_rule(self, tracker: ContextCacheTracker) -> None:
        fp = _isolated("A")
        tracker.record_creation(fp, 2001)

        entry = tracker.get_entry(fp)
        assert entry is not None
        text = OptimizationAnalyzer(tracker).recommend(entry)
        assert text.startswith("Slow context load (2001ms)")

    def test_generic_rule(self, tracker: ContextCacheTracker) -> None:
        fp = _isolated("A")
        tracker.record_creation(fp, 2000)

        entry = tracker.get_entry(fp)
        assert entry is not None
        text = OptimizationAnalyzer(tracker).recommend(entry)
        assert text == "Consider optimizing test setup to reduce context load time"


class TestTopOpportunities:
    """Filtering, ordering and limiting of opportunities."""

    def test_filters_sorts_and_limits(self, tracker: ContextCacheTracker) -> None:
        load_times = [400, 500, 501, 3000, 900, 1500, 2200, 700]
        for i, load_time in enumerate(load_times):
            fp = _isolated(f"C{i}")
            tracker.record_usage(fp, f"tests.suite.Test{i}")
            tracker.record_creation(fp, load_time)

        opportunities = OptimizationAnalyzer(tracker).top_opportunities()

        assert [o.load_time_ms for o in opportunities] == [3000, 2200, 1500, 900, 700]
        assert opportunities[0].test_class == "tests.suite.Test3"

    def test_explicit_limit(self, tracker: ContextCacheTracker) -> None:
        for i in range(4):
            tracker.record_creation(_isolated(f"C{i}"), 1000 + i)
        assert len(OptimizationAnalyzer(tracker).top_opportunities(limit=2)) == 2

    def test_zero_limit(self, tracker: ContextCacheTracker) -> None:
        tracker.record_creation(_isolated("A"), 1000)
        assert OptimizationAnalyzer(tracker).top_opportunities(limit=0) == []

    def test_negative_limit_rejected(self, tracker: ContextCacheTracker) -> None:
        for i in range(3):
            tracker.record_creation(_isolated(f"C{i}"), 1000 + i)
        analyzer = OptimizationAnalyzer(tracker)

        with pytest.raises(ValueError):
            analyzer.top_opportunities(limit=-1)
        with pytest.raises(ValueError):
            analyzer.analyze(limit=-1)

    def test_equal_load_times_keep_creation_order(self, tracker: ContextCacheTracker) -> None:
        for name in ("First", "Second", "Third"):
            fp = _isolated(name)
            tracker.record_usage(fp, name)
            tracker.record_creation(fp, 800)

        opportunities = OptimizationAnalyzer(tracker).top_opportunities()
        assert [o.test_class for o in opportunities] == ["First", "Second", "Third"]

    def test_representative_class_is_first_recorded(
        self, tracker: ContextCacheTracker
    ) -> None:
        fp = _isolated("A")
        tracker.record_usage(fp, "tests.ZetaTest")
        tracker.record_usage(fp, "tests.AlphaTest")
        tracker.record_creation(fp, 900)

        [opportunity] = OptimizationAnalyzer(tracker).top_opportunities()
        assert opportunity.test_class == "tests.ZetaTest"

    def test_entry_without_test_class(self, tracker: ContextCacheTracker) -> None:
        tracker.record_creation(_isolated("A"), 900)
        [opportunity] = OptimizationAnalyzer(tracker).top_opportunities()
        assert opportunity.test_class == UNKNOWN_TEST_CLASS
        assert opportunity.bean_count == 0


class TestAnalyze:
    """Aggregate statistics."""

    def test_zero_activity(self, tracker: ContextCacheTracker) -> None:
        stats = OptimizationAnalyzer(tracker).analyze()
        assert stats.total_creation_time_ms == 0
        assert stats.potential_savings_ms == 0
        assert stats.wasted_time_ms == 0
        assert stats.total_contexts_created == 0
        assert stats.top_opportunities == ()
        assert stats.potential_savings_percentage == 0.0

    def test_to_dict(self, tracker: ContextCacheTracker) -> None:
        fp = _isolated("A")
        tracker.record_usage(fp, "TestA")
        tracker.record_creation(fp, 1200)

        data = OptimizationAnalyzer(tracker).analyze().to_dict()
        assert data["total_creation_time_ms"] == 1200
        assert data["wasted_time_ms"] == 200
        assert data["potential_savings_percentage"] == 0.0
        assert data["top_opportunities"][0]["test_class"] == "TestA"


class TestValidation:
    """Constructor argument validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"acceptable_load_time_ms": -1},
            {"opportunity_threshold_ms": -1},
            {"large_context_bean_threshold": -5},
            {"slow_load_threshold_ms": -10},
            {"max_opportunities": 0},
        ],
    )
    def test_invalid_arguments(self, tracker: ContextCacheTracker, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            OptimizationAnalyzer(tracker, **kwargs)
