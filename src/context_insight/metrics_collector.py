# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Suite metrics collection and JSONL export.

At the end of a suite run the collector snapshots the tracker, runs the
optimization analysis and timeline reconstruction, and appends one JSON line
describing the run. Report renderers and later tooling read these records
back with read_suite_metrics().

Log Location: .context_insight_logs/suite_metrics.jsonl
"""

import json
import logging
import statistics
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from context_insight.models import OptimizationOpportunity, OptimizationStatistics
from context_insight.optimizer import OptimizationAnalyzer
from context_insight.timeline import TimelineBuilder
from context_insight.tracker import ContextCacheTracker

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = ".context_insight_logs"
DEFAULT_METRICS_LOG_FILE = "suite_metrics.jsonl"


@dataclass
class LoadTimeStatistics:
    """Distribution of context load times in milliseconds."""

    min: int = 0
    max: int = 0
    median: int = 0
    p95: int = 0
    total_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "p95": self.p95,
            "total_count": self.total_count,
        }


@dataclass
class CachePerformanceMetrics:
    """Context cache hit/miss metrics for one run."""

    total_contexts_created: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_ratio: float = 0.0
    distinct_fingerprints: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_contexts_created": self.total_contexts_created,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_ratio": round(self.hit_ratio, 4),
            "distinct_fingerprints": self.distinct_fingerprints,
        }


@dataclass
class SuiteMetrics:
    """Complete metrics for a single suite run."""

    session_id: str = ""
    start_time: str = ""
    end_time: str = ""
    cache_performance: CachePerformanceMetrics = field(default_factory=CachePerformanceMetrics)
    load_times: LoadTimeStatistics = field(default_factory=LoadTimeStatistics)
    optimization: OptimizationStatistics = field(default_factory=OptimizationStatistics)
    timeline: Dict[str, Any] = field(default_factory=dict)
    contexts: List[Dict[str, Any]] = field(default_factory=list)
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "cache_performance": self.cache_performance.to_dict(),
            "load_times": self.load_times.to_dict(),
            "optimization": self.optimization.to_dict(),
            "timeline": self.timeline,
            "contexts": self.contexts,
            "configuration": self.configuration,
        }


def calculate_load_time_statistics(values: List[int]) -> LoadTimeStatistics:
    """Calculate min, max, median and p95 from a list of load times.

    Args:
        values: Load times in milliseconds.

    Returns:
        LoadTimeStatistics, all zero for an empty list.
    """
    if not values:
        return LoadTimeStatistics()

    sorted_values = sorted(values)
    n = len(sorted_values)

    # For n=100, p95_idx = 95 -> clamped to the last valid index
    p95_idx = min(int(n * 0.95), n - 1)

    return LoadTimeStatistics(
        min=sorted_values[0],
        max=sorted_values[-1],
        median=int(statistics.median(sorted_values)),
        p95=sorted_values[p95_idx],
        total_count=n,
    )


class MetricsCollector:
    """Collector that turns a finished run into one JSONL metrics record.

    Usage:
        collector = MetricsCollector(log_dir=Path(".context_insight_logs"))
        collector.set_configuration(config.to_dict())
        # ... run the suite, feeding the tracker ...
        collector.finalize_and_write(tracker, analyzer)
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        log_file: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize the metrics collector.

        Args:
            log_dir: Directory for log files. If None, uses current working
                    directory + .context_insight_logs/
            log_file: Log filename. If None, uses suite_metrics.jsonl.
                     Must be a simple filename without path separators.
            session_id: Optional session ID. If None, generates a UUID.

        Raises:
            ValueError: If log_file contains path separators.
        """
        if log_dir is None:
            log_dir = Path.cwd() / DEFAULT_LOG_DIR
        self._log_dir = Path(log_dir)

        log_file = log_file or DEFAULT_METRICS_LOG_FILE
        if "/" in log_file or "\\" in log_file or ":" in log_file:
            raise ValueError(f"log_file must be a filename only, not a path: {log_file}")
        self._log_file = log_file

        self._session_id = session_id or str(uuid.uuid4())
        self._start_time = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self._configuration: Dict[str, Any] = {}

        logger.debug(f"MetricsCollector initialized with session_id={self._session_id}")

    def set_configuration(self, config: Dict[str, Any]) -> None:
        """Set configuration values to capture in the metrics record."""
        self._configuration = config.copy()

    def get_log_path(self) -> Path:
        return self._log_dir / self._log_file

    def get_session_id(self) -> str:
        return self._session_id

    def collect_cache_metrics(self, tracker: ContextCacheTracker) -> CachePerformanceMetrics:
        """Collect hit/miss metrics from a tracker."""
        stats = tracker.get_statistics()
        return CachePerformanceMetrics(
            total_contexts_created=stats.total_contexts_created,
            cache_hits=stats.cache_hits,
            cache_misses=stats.cache_misses,
            hit_ratio=stats.hit_ratio,
            distinct_fingerprints=stats.entry_count,
        )

    def build_suite_metrics(
        self,
        tracker: ContextCacheTracker,
        analyzer: Optional[OptimizationAnalyzer] = None,
        timeline_builder: Optional[TimelineBuilder] = None,
    ) -> SuiteMetrics:
        """Build the metrics record for a finished run.

        Args:
            tracker: Tracker populated during the run.
            analyzer: Analyzer to use. If None, one with default thresholds.
            timeline_builder: Timeline builder to use. If None, a default one.

        Returns:
            SuiteMetrics with all collected data.
        """
        analyzer = analyzer or OptimizationAnalyzer(tracker)
        timeline_builder = timeline_builder or TimelineBuilder(tracker)
        end_time = datetime.now(timezone.utc).isoformat(timespec="milliseconds")

        created = tracker.created_entries()
        contexts = []
        for entry in tracker.all_entries():
            context = entry.to_dict()
            context["summary"] = entry.configuration_summary()
            context["test_methods"] = tracker.get_test_methods(entry.fingerprint)
            contexts.append(context)

        return SuiteMetrics(
            session_id=self._session_id,
            start_time=self._start_time,
            end_time=end_time,
            cache_performance=self.collect_cache_metrics(tracker),
            load_times=calculate_load_time_statistics([e.load_time_ms for e in created]),
            optimization=analyzer.analyze(),
            timeline=timeline_builder.build().to_dict(),
            contexts=contexts,
            configuration=self._configuration,
        )

    def write_metrics(self, metrics: SuiteMetrics) -> None:
        """Append suite metrics as one JSON line."""
        self._log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.get_log_path()

        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(metrics.to_dict(), separators=(",", ":")) + "\n")

        logger.info(f"Suite metrics written to {log_path}")

    def finalize_and_write(
        self,
        tracker: ContextCacheTracker,
        analyzer: Optional[OptimizationAnalyzer] = None,
        timeline_builder: Optional[TimelineBuilder] = None,
    ) -> SuiteMetrics:
        """Build and write metrics in one call.

        Returns:
            The SuiteMetrics that were written.
        """
        metrics = self.build_suite_metrics(tracker, analyzer, timeline_builder)
        self.write_metrics(metrics)
        return metrics


def _optimization_from_dict(data: Dict[str, Any]) -> OptimizationStatistics:
    return OptimizationStatistics(
        total_creation_time_ms=data.get("total_creation_time_ms", 0),
        potential_savings_ms=data.get("potential_savings_ms", 0),
        wasted_time_ms=data.get("wasted_time_ms", 0),
        total_contexts_created=data.get("total_contexts_created", 0),
        top_opportunities=tuple(
            OptimizationOpportunity(
                test_class=o["test_class"],
                load_time_ms=o["load_time_ms"],
                bean_count=o["bean_count"],
                recommendation=o["recommendation"],
            )
            for o in data.get("top_opportunities", [])
        ),
    )


def read_suite_metrics(log_path: Path, limit: Optional[int] = None) -> List[SuiteMetrics]:
    """Read suite metrics from a JSONL log file.

    Args:
        log_path: Path to the suite_metrics.jsonl file.
        limit: Optional maximum number of records to read.

    Returns:
        List of SuiteMetrics; empty if the file does not exist.
    """
    if not log_path.exists():
        return []

    metrics_list: List[SuiteMetrics] = []

    with open(log_path, encoding="utf-8") as f:
        for line in f:
            if limit is not None and len(metrics_list) >= limit:
                break

            line = line.strip()
            if not line:
                continue

            try:
                data = json.loads(line)
                metrics = SuiteMetrics(
                    session_id=data.get("session_id", ""),
                    start_time=data.get("start_time", ""),
                    end_time=data.get("end_time", ""),
                    timeline=data.get("timeline", {}),
                    contexts=data.get("contexts", []),
                    configuration=data.get("configuration", {}),
                )

                if "cache_performance" in data:
                    cp = data["cache_performance"]
                    metrics.cache_performance = CachePerformanceMetrics(
                        total_contexts_created=cp.get("total_contexts_created", 0),
                        cache_hits=cp.get("cache_hits", 0),
                        cache_misses=cp.get("cache_misses", 0),
                        hit_ratio=cp.get("hit_ratio", 0.0),
                        distinct_fingerprints=cp.get("distinct_fingerprints", 0),
                    )

                if "load_times" in data:
                    lt = data["load_times"]
                    metrics.load_times = LoadTimeStatistics(
                        min=lt.get("min", 0),
                        max=lt.get("max", 0),
                        median=lt.get("median", 0),
                        p95=lt.get("p95", 0),
                        total_count=lt.get("total_count", 0),
                    )

                if "optimization" in data:
                    metrics.optimization = _optimization_from_dict(data["optimization"])

                metrics_list.append(metrics)
            except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed metrics entry: {e}")
                continue

    return metrics_list
