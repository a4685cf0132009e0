# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Wiring of tracker, analytics and metrics export for one suite run."""

import logging
from pathlib import Path
from typing import Optional

from context_insight.config import Config
from context_insight.metrics_collector import MetricsCollector, SuiteMetrics
from context_insight.models import OptimizationStatistics, TimelineData
from context_insight.optimizer import OptimizationAnalyzer
from context_insight.timeline import TimelineBuilder
from context_insight.tracker import Clock, ContextCacheTracker

logger = logging.getLogger(__name__)


class InsightSession:
    """Owns the tracker for one suite execution and the analytics over it.

    The lifecycle glue receives ``session.tracker`` and feeds it; reporting
    calls ``optimization()``, ``timeline()`` or ``finish()`` at the end.

    Usage:
        session = InsightSession(Config())
        glue = MyLifecycleGlue(session.tracker)
        ...
        session.finish()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        base_dir: Optional[Path] = None,
        clock: Optional[Clock] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Configuration (default: loaded from the working directory).
            base_dir: Directory a relative metrics_log_dir is resolved against
                (default: working directory).
            clock: Timestamp source for the tracker.
            session_id: Optional session ID for the metrics record.
        """
        self.config = config or Config()
        self.tracker = ContextCacheTracker(weights=self.config.similarity_weights(), clock=clock)
        self.analyzer = OptimizationAnalyzer.from_config(self.tracker, self.config)
        self.timeline_builder = TimelineBuilder(self.tracker)

        log_dir = self.config.metrics_log_dir
        if not log_dir.is_absolute():
            log_dir = (base_dir or Path.cwd()) / log_dir
        self.collector = MetricsCollector(log_dir=log_dir, session_id=session_id)
        self.collector.set_configuration(self.config.to_dict())

    def optimization(self) -> OptimizationStatistics:
        return self.analyzer.analyze()

    def timeline(self) -> TimelineData:
        return self.timeline_builder.build()

    def finish(self) -> SuiteMetrics:
        """Build the suite metrics and write them if metrics logging is enabled."""
        if not self.config.enable_metrics_logging:
            logger.debug("Metrics logging disabled, not writing suite metrics")
            return self.collector.build_suite_metrics(
                self.tracker, self.analyzer, self.timeline_builder
            )
        return self.collector.finalize_and_write(
            self.tracker, self.analyzer, self.timeline_builder
        )
