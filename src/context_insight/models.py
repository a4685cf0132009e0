# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for context cache tracking.

This module defines the data structures shared by the tracker and the
analytics built on top of it:
- CacheEntry: Per-fingerprint usage history, timing and nearest neighbor
- TrackerStatistics: Snapshot of the aggregate hit/miss counters
- OptimizationOpportunity: One ranked, explained suggestion
- OptimizationStatistics: Aggregate result of an optimization analysis
- TimelineEntry / TimelineEvent / TimelineData: Timeline visualization model

CacheEntry is mutable and is only mutated by ContextCacheTracker while it
holds its lock. Everything handed out to readers is either a snapshot copy
or a frozen record.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from context_insight.fingerprint import Fingerprint

_ONE_MS = timedelta(milliseconds=1)


def millis_between(start: datetime, end: datetime) -> int:
    """Whole milliseconds from start to end (floored)."""
    return (end - start) // _ONE_MS


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="milliseconds") if value is not None else None


@dataclass
class CacheEntry:
    """Usage record for one distinct fingerprint.

    An entry exists as soon as a test class declares the fingerprint, but is
    only ``created`` once the context was actually constructed (a miss).

    Invariants:
    - ``created`` goes False -> True at most once; ``creation_time`` and
      ``load_time_ms`` are fixed from then on.
    - ``hit_count`` only grows, once per cache hit.
    - ``nearest_neighbor`` is set at most once and never to the entry itself.
    - ``access_times`` gains one timestamp at creation and one per hit, in
      recording order, and is never trimmed. Every ``snapshot()`` copies it,
      so its size is bounded only by the number of hits in the run.
    - Bean definitions can only be attached once the entry is created.
    """

    fingerprint: Fingerprint
    created: bool = False
    creation_time: Optional[datetime] = None
    first_used_time: Optional[datetime] = None
    last_used_time: Optional[datetime] = None
    hit_count: int = 0
    load_time_ms: int = 0
    bean_definition_count: int = 0
    bean_definition_names: FrozenSet[str] = frozenset()
    nearest_neighbor: Optional[Fingerprint] = None
    access_times: List[datetime] = field(default_factory=list)

    # Insertion-ordered set of test class names
    _test_classes: Dict[str, None] = field(default_factory=dict, init=False, repr=False)
    _bean_definitions_recorded: bool = field(default=False, init=False, repr=False)

    @property
    def test_classes(self) -> Tuple[str, ...]:
        """Test classes using this entry, in first-seen order."""
        return tuple(self._test_classes)

    @property
    def representative_test_class(self) -> Optional[str]:
        """First test class recorded for this entry, if any."""
        return next(iter(self._test_classes), None)

    def add_test_class(self, test_class_name: str) -> bool:
        """Add a consuming test class. Returns False if already known."""
        if test_class_name in self._test_classes:
            return False
        self._test_classes[test_class_name] = None
        return True

    def mark_created(self, now: datetime, load_time_ms: int) -> bool:
        """Record construction of the context.

        Returns:
            True if this call performed the creation, False if the entry was
            already created (the caller treats that as a hit).
        """
        if self.created:
            return False
        self.created = True
        self.load_time_ms = load_time_ms
        self.creation_time = now
        self.first_used_time = now
        self.last_used_time = now
        self.access_times.append(now)
        return True

    def record_hit(self, now: datetime) -> None:
        """Record reuse of the constructed context."""
        self.hit_count += 1
        self.last_used_time = now
        self.access_times.append(now)
        if self.first_used_time is None:
            self.first_used_time = now

    def set_nearest_neighbor(self, neighbor: Fingerprint) -> bool:
        """Link to the most similar previously created context (once)."""
        if self.nearest_neighbor is not None or neighbor == self.fingerprint:
            return False
        self.nearest_neighbor = neighbor
        return True

    def set_bean_definitions(self, names: Iterable[str]) -> bool:
        """Attach descriptive bean metadata (once)."""
        if self._bean_definitions_recorded:
            return False
        name_list = list(names)
        self.bean_definition_names = frozenset(name_list)
        self.bean_definition_count = len(name_list)
        self._bean_definitions_recorded = True
        return True

    def age_ms(self, now: datetime) -> int:
        """Milliseconds since creation, or -1 if not created."""
        if self.creation_time is None:
            return -1
        return millis_between(self.creation_time, now)

    def lifespan_ms(self) -> int:
        """Milliseconds between first and last use, 0 if never used."""
        if self.first_used_time is None or self.last_used_time is None:
            return 0
        return millis_between(self.first_used_time, self.last_used_time)

    def time_since_last_use_ms(self, now: datetime) -> int:
        """Milliseconds since last access, or -1 if never used."""
        if self.last_used_time is None:
            return -1
        return millis_between(self.last_used_time, now)

    def configuration_summary(self) -> Dict[str, Any]:
        summary = self.fingerprint.describe()
        summary["bean_definition_count"] = self.bean_definition_count
        return summary

    def snapshot(self) -> "CacheEntry":
        """Detached copy safe to read while the tracker keeps mutating."""
        clone = replace(self, access_times=list(self.access_times))
        clone._test_classes = dict(self._test_classes)
        clone._bean_definitions_recorded = self._bean_definitions_recorded
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "fingerprint": self.fingerprint.to_dict(),
            "test_classes": list(self._test_classes),
            "created": self.created,
            "creation_time": _iso(self.creation_time),
            "first_used_time": _iso(self.first_used_time),
            "last_used_time": _iso(self.last_used_time),
            "hit_count": self.hit_count,
            "load_time_ms": self.load_time_ms,
            "bean_definition_count": self.bean_definition_count,
            "nearest_neighbor": (
                self.nearest_neighbor.to_dict() if self.nearest_neighbor is not None else None
            ),
        }


@dataclass(frozen=True)
class TrackerStatistics:
    """Snapshot of the tracker's aggregate counters."""

    total_contexts_created: int
    cache_hits: int
    cache_misses: int
    entry_count: int

    @property
    def hit_ratio(self) -> float:
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "total_contexts_created": self.total_contexts_created,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "entry_count": self.entry_count,
            "hit_ratio": round(self.hit_ratio, 4),
        }


@dataclass(frozen=True)
class OptimizationOpportunity:
    """A single optimization suggestion for a slow context."""

    test_class: str
    load_time_ms: int
    bean_count: int
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_class": self.test_class,
            "load_time_ms": self.load_time_ms,
            "bean_count": self.bean_count,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class OptimizationStatistics:
    """Aggregate result of OptimizationAnalyzer.analyze()."""

    total_creation_time_ms: int = 0
    potential_savings_ms: int = 0
    wasted_time_ms: int = 0
    total_contexts_created: int = 0
    top_opportunities: Tuple[OptimizationOpportunity, ...] = ()

    @property
    def potential_savings_percentage(self) -> float:
        if self.total_creation_time_ms <= 0:
            return 0.0
        return self.potential_savings_ms * 100.0 / self.total_creation_time_ms

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "total_creation_time_ms": self.total_creation_time_ms,
            "potential_savings_ms": self.potential_savings_ms,
            "potential_savings_percentage": round(self.potential_savings_percentage, 2),
            "wasted_time_ms": self.wasted_time_ms,
            "total_contexts_created": self.total_contexts_created,
            "top_opportunities": [o.to_dict() for o in self.top_opportunities],
        }


@dataclass(frozen=True)
class TimelineEntry:
    """One bar on the timeline, offsets relative to the earliest creation."""

    label: str
    phase: str
    start_ms: int
    end_ms: int
    color: str
    tooltip: str
    context_id: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "phase": self.phase,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "color": self.color,
            "tooltip": self.tooltip,
            "context_id": self.context_id,
        }


@dataclass(frozen=True)
class TimelineEvent:
    """Chart-oriented summary of a context creation."""

    label: str
    color: str
    creation_offset_seconds: int
    load_time_ms: int
    test_class_count: int
    hit_count: int
    bean_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "color": self.color,
            "creation_offset_seconds": self.creation_offset_seconds,
            "load_time_ms": self.load_time_ms,
            "test_class_count": self.test_class_count,
            "hit_count": self.hit_count,
            "bean_count": self.bean_count,
        }


@dataclass(frozen=True)
class TimelineData:
    """Timeline visualization model.

    ``start_time``/``end_time`` are None when no context was created; the
    total duration is then 0.
    """

    entries: Tuple[TimelineEntry, ...] = ()
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    events: Tuple[TimelineEvent, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def total_duration_ms(self) -> int:
        if self.start_time is None or self.end_time is None:
            return 0
        return millis_between(self.start_time, self.end_time)

    @property
    def total_duration_seconds(self) -> int:
        return self.total_duration_ms // 1000

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "total_duration_ms": self.total_duration_ms,
            "entries": [e.to_dict() for e in self.entries],
            "events": [e.to_dict() for e in self.events],
        }
