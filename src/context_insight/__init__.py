# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Context cache tracking and optimization analytics for test suites."""

from .config import Config, ConfigurationError
from .fingerprint import Fingerprint
from .metrics_collector import (
    MetricsCollector,
    SuiteMetrics,
    calculate_load_time_statistics,
    read_suite_metrics,
)
from .models import (
    CacheEntry,
    OptimizationOpportunity,
    OptimizationStatistics,
    TimelineData,
    TimelineEntry,
    TimelineEvent,
    TrackerStatistics,
)
from .optimizer import OptimizationAnalyzer
from .session import InsightSession
from .similarity import DEFAULT_WEIGHTS, SimilarityWeights, similarity_score
from .timeline import TimelineBuilder
from .tracker import ContextCacheTracker

__version__ = "0.1.0"

__all__ = [
    "Fingerprint",
    "CacheEntry",
    "TrackerStatistics",
    "OptimizationOpportunity",
    "OptimizationStatistics",
    "TimelineData",
    "TimelineEntry",
    "TimelineEvent",
    "SimilarityWeights",
    "DEFAULT_WEIGHTS",
    "similarity_score",
    "ContextCacheTracker",
    "OptimizationAnalyzer",
    "TimelineBuilder",
    "Config",
    "ConfigurationError",
    "MetricsCollector",
    "SuiteMetrics",
    "calculate_load_time_statistics",
    "read_suite_metrics",
    "InsightSession",
]
