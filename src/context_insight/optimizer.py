# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Optimization analytics over the contexts created during a run.

Works on a snapshot of the tracker's created entries and derives:
- total creation time
- wasted time above an acceptable per-context load time
- potential savings from harmonizing contexts with their nearest neighbor
- a ranked list of optimization opportunities with recommendations

Potential savings are optimistic: an entry with a nearest neighbor is
assumed to be avoidable entirely.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from context_insight.models import CacheEntry, OptimizationOpportunity, OptimizationStatistics
from context_insight.tracker import ContextCacheTracker

if TYPE_CHECKING:
    from context_insight.config import Config

logger = logging.getLogger(__name__)

UNKNOWN_TEST_CLASS = "<unknown>"


class OptimizationAnalyzer:
    """Read-only optimization analysis for a ContextCacheTracker.

    Usage:
        analyzer = OptimizationAnalyzer(tracker)
        stats = analyzer.analyze()
        for opportunity in stats.top_opportunities:
            print(opportunity.test_class, opportunity.recommendation)
    """

    def __init__(
        self,
        tracker: ContextCacheTracker,
        acceptable_load_time_ms: int = 1000,
        opportunity_threshold_ms: int = 500,
        max_opportunities: int = 5,
        large_context_bean_threshold: int = 100,
        slow_load_threshold_ms: int = 2000,
    ) -> None:
        """Initialize the analyzer.

        Args:
            tracker: Tracker to analyze.
            acceptable_load_time_ms: Load time considered reasonable; time
                above it counts as wasted.
            opportunity_threshold_ms: Contexts must load slower than this to
                be listed as opportunities.
            max_opportunities: Default number of opportunities to report.
            large_context_bean_threshold: Bean count above which a context is
                considered large.
            slow_load_threshold_ms: Load time above which a context is
                considered slow.

        Raises:
            ValueError: If a threshold is negative or max_opportunities < 1.
        """
        for name, value in (
            ("acceptable_load_time_ms", acceptable_load_time_ms),
            ("opportunity_threshold_ms", opportunity_threshold_ms),
            ("large_context_bean_threshold", large_context_bean_threshold),
            ("slow_load_threshold_ms", slow_load_threshold_ms),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if max_opportunities < 1:
            raise ValueError(f"max_opportunities must be >= 1, got {max_opportunities}")

        self._tracker = tracker
        self.acceptable_load_time_ms = acceptable_load_time_ms
        self.opportunity_threshold_ms = opportunity_threshold_ms
        self.max_opportunities = max_opportunities
        self.large_context_bean_threshold = large_context_bean_threshold
        self.slow_load_threshold_ms = slow_load_threshold_ms

    @classmethod
    def from_config(cls, tracker: ContextCacheTracker, config: "Config") -> "OptimizationAnalyzer":
        return cls(
            tracker,
            acceptable_load_time_ms=config.acceptable_load_time_ms,
            opportunity_threshold_ms=config.opportunity_threshold_ms,
            max_opportunities=config.max_opportunities,
            large_context_bean_threshold=config.large_context_bean_threshold,
            slow_load_threshold_ms=config.slow_load_threshold_ms,
        )

    def _snapshot(self, entries: Optional[Sequence[CacheEntry]]) -> Sequence[CacheEntry]:
        if entries is not None:
            return entries
        return self._tracker.created_entries()

    def total_creation_time(self, entries: Optional[Sequence[CacheEntry]] = None) -> int:
        """Sum of load times across created contexts."""
        return sum(e.load_time_ms for e in self._snapshot(entries))

    def wasted_time(self, entries: Optional[Sequence[CacheEntry]] = None) -> int:
        """Sum of load time above the acceptable load time."""
        return sum(
            max(0, e.load_time_ms - self.acceptable_load_time_ms) for e in self._snapshot(entries)
        )

    def potential_savings(self, entries: Optional[Sequence[CacheEntry]] = None) -> int:
        """Sum of load times of contexts linked to a created nearest neighbor."""
        snapshot = self._snapshot(entries)
        created = {e.fingerprint for e in snapshot}
        return sum(
            e.load_time_ms
            for e in snapshot
            if e.nearest_neighbor is not None and e.nearest_neighbor in created
        )

    def recommend(self, entry: CacheEntry) -> str:
        """Pick the recommendation for one entry; the first matching rule wins."""
        if entry.nearest_neighbor is not None:
            return (
                f"Consider harmonizing with similar context to save {entry.load_time_ms}ms"
            )
        if entry.bean_definition_count > self.large_context_bean_threshold:
            return (
                f"Large context ({entry.bean_definition_count} beans) - "
                f"consider narrowing the test configuration scope"
            )
        if entry.load_time_ms > self.slow_load_threshold_ms:
            return (
                f"Slow context load ({entry.load_time_ms}ms) - "
                f"review context construction and auto-configuration"
            )
        return "Consider optimizing test setup to reduce context load time"

    def top_opportunities(
        self,
        limit: Optional[int] = None,
        entries: Optional[Sequence[CacheEntry]] = None,
    ) -> List[OptimizationOpportunity]:
        """Slowest contexts above the visibility threshold, slowest first.

        Args:
            limit: Maximum number of opportunities (default: max_opportunities).
            entries: Entry snapshot to analyze (default: fresh tracker snapshot).

        Raises:
            ValueError: If limit is negative.
        """
        if limit is None:
            limit = self.max_opportunities
        elif limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        candidates = [
            e for e in self._snapshot(entries) if e.load_time_ms > self.opportunity_threshold_ms
        ]
        # sorted() is stable: equal load times keep creation order
        candidates = sorted(candidates, key=lambda e: e.load_time_ms, reverse=True)[:limit]
        return [
            OptimizationOpportunity(
                test_class=e.representative_test_class or UNKNOWN_TEST_CLASS,
                load_time_ms=e.load_time_ms,
                bean_count=e.bean_definition_count,
                recommendation=self.recommend(e),
            )
            for e in candidates
        ]

    def analyze(self, limit: Optional[int] = None) -> OptimizationStatistics:
        """Compute all optimization statistics from one consistent snapshot."""
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        entries = self._tracker.created_entries()
        if not entries:
            return OptimizationStatistics()

        stats = OptimizationStatistics(
            total_creation_time_ms=self.total_creation_time(entries),
            potential_savings_ms=self.potential_savings(entries),
            wasted_time_ms=self.wasted_time(entries),
            total_contexts_created=len(entries),
            top_opportunities=tuple(self.top_opportunities(limit, entries)),
        )
        logger.debug(
            f"Optimization analysis: {stats.total_contexts_created} contexts, "
            f"{stats.total_creation_time_ms}ms total, "
            f"{stats.potential_savings_ms}ms potential savings"
        )
        return stats
