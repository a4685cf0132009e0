# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Context cache tracker: the ledger of every test context seen in a run.

The tracker records which test classes and methods use which context
fingerprint, when each context was constructed (a miss) or reused (a hit),
and links every newly constructed context to its most similar predecessor.
It tracks contexts independently of whatever cache the test framework keeps,
so it is not bound by that cache's size limit.

Key Features:
- One CacheEntry per distinct fingerprint, created on first sight
- Exactly-once creation per fingerprint, even under racing threads
- Nearest-neighbor linking via similarity scoring at creation time
- Aggregate hit/miss counters and hit ratio
- Never raises for unknown fingerprints

Thread Safety:
- Single _tracker_lock protects: _entries, _class_to_fingerprint,
  _test_methods, _creation_order and the counters
- Readers receive snapshot copies; no reader holds the lock while computing
- The nearest-neighbor scan runs outside the lock on a candidate snapshot
  taken at creation time

Usage:
    tracker = ContextCacheTracker()
    tracker.record_usage(fingerprint, "tests.test_users.TestUsers")
    tracker.record_creation(fingerprint, load_time_ms=850)
    tracker.record_cache_hit(fingerprint)
    ratio = tracker.cache_hit_ratio()
"""

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional

from context_insight.fingerprint import Fingerprint
from context_insight.models import CacheEntry, TrackerStatistics, millis_between
from context_insight.similarity import DEFAULT_WEIGHTS, SimilarityWeights, similarity_score

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContextCacheTracker:
    """Thread-safe ledger of test context usage for one suite execution.

    Construct one tracker per suite run and pass it to whatever drives the
    test lifecycle; there is no module-level instance.
    """

    def __init__(
        self,
        weights: SimilarityWeights = DEFAULT_WEIGHTS,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize an empty tracker.

        Args:
            weights: Similarity weights used for nearest-neighbor linking.
            clock: Source of timestamps (default: current UTC time). Called
                while the tracker lock is held, so it must not call back into
                the tracker.
        """
        self._weights = weights
        self._clock = clock or utc_now

        # Insertion-ordered: iteration order is first-sight order, which makes
        # nearest-neighbor tie-breaking deterministic.
        self._entries: Dict[Fingerprint, CacheEntry] = {}
        self._class_to_fingerprint: Dict[str, Fingerprint] = {}
        self._test_methods: Dict[Fingerprint, List[str]] = {}
        self._creation_order: List[Fingerprint] = []

        self._total_contexts_created = 0
        self._cache_hits = 0
        self._cache_misses = 0

        self._tracker_lock = Lock()

    @property
    def weights(self) -> SimilarityWeights:
        return self._weights

    def _get_or_create_entry(self, fingerprint: Fingerprint) -> CacheEntry:
        # Caller holds _tracker_lock
        entry = self._entries.get(fingerprint)
        if entry is None:
            entry = CacheEntry(fingerprint=fingerprint)
            self._entries[fingerprint] = entry
            logger.debug(f"Registered new context cache entry: {fingerprint}")
        return entry

    def record_usage(self, fingerprint: Fingerprint, test_class_name: str) -> None:
        """Record that a test class depends on a context fingerprint.

        Creates the entry if needed, without marking it created. Idempotent
        per class.
        """
        with self._tracker_lock:
            self._class_to_fingerprint[test_class_name] = fingerprint
            self._get_or_create_entry(fingerprint).add_test_class(test_class_name)

    def record_usage_method(
        self, fingerprint: Fingerprint, test_class_name: str, method_name: str
    ) -> None:
        """Record that a test method ran against a context fingerprint.

        Appends "ClassName.method_name"; no uniqueness is enforced.
        """
        identifier = f"{test_class_name}.{method_name}"
        with self._tracker_lock:
            self._test_methods.setdefault(fingerprint, []).append(identifier)
        logger.debug(f"Recorded test method {identifier} for context {fingerprint}")

    def record_creation(self, fingerprint: Fingerprint, load_time_ms: int = 0) -> bool:
        """Record that a context was constructed (cache miss).

        The first call for a fingerprint creates it, updates the counters and
        links it to its nearest previously created neighbor. Any later call
        for the same fingerprint is counted as a cache hit instead.

        Args:
            fingerprint: Fingerprint of the constructed context.
            load_time_ms: Time taken to construct the context.

        Returns:
            True if this call created the context, False if it counted as a hit.
        """
        with self._tracker_lock:
            # Read under the lock so timestamps follow recording order
            now = self._clock()
            entry = self._get_or_create_entry(fingerprint)
            if not entry.mark_created(now, load_time_ms):
                entry.record_hit(now)
                self._cache_hits += 1
                logger.debug(f"Late creation report for {fingerprint} counted as cache hit")
                return False

            self._creation_order.append(fingerprint)
            self._total_contexts_created += 1
            self._cache_misses += 1
            candidates = [
                fp for fp, other in self._entries.items() if other.created and fp != fingerprint
            ]

        nearest = self._find_nearest(fingerprint, candidates)
        if nearest is not None:
            with self._tracker_lock:
                entry.set_nearest_neighbor(nearest)
            logger.info(
                f"New context {fingerprint} is most similar to existing context {nearest} "
                f"(load time: {load_time_ms}ms)"
            )
        return True

    def _find_nearest(
        self, target: Fingerprint, candidates: Iterable[Fingerprint]
    ) -> Optional[Fingerprint]:
        """Return the highest-scoring candidate; ties keep the first seen.

        A candidate needs a positive score to count as a neighbor.
        """
        nearest: Optional[Fingerprint] = None
        highest_score = 0
        for candidate in candidates:
            score = similarity_score(target, candidate, self._weights)
            if score > highest_score:
                highest_score = score
                nearest = candidate
        return nearest

    def record_cache_hit(self, fingerprint: Fingerprint) -> bool:
        """Record that a context was reused (cache hit).

        Unknown fingerprints are ignored.

        Returns:
            True if the hit was recorded.
        """
        with self._tracker_lock:
            now = self._clock()
            entry = self._entries.get(fingerprint)
            if entry is None:
                logger.debug(f"Ignoring cache hit for unknown context {fingerprint}")
                return False
            entry.record_hit(now)
            self._cache_hits += 1
        return True

    def record_bean_definitions(self, fingerprint: Fingerprint, names: Iterable[str]) -> bool:
        """Attach bean definition names to a created context (once).

        Unknown fingerprints and entries that were only declared by
        record_usage() are ignored.

        Returns:
            True if the names were recorded.
        """
        name_list = list(names)
        with self._tracker_lock:
            entry = self._entries.get(fingerprint)
            if entry is None or not entry.created:
                return False
            recorded = entry.set_bean_definitions(name_list)
        if recorded:
            logger.debug(f"Recorded {len(name_list)} bean definitions for context {fingerprint}")
        return recorded

    # Queries. Every query returns copies so callers never observe
    # in-flight mutation.

    def get_entry(self, fingerprint: Fingerprint) -> Optional[CacheEntry]:
        with self._tracker_lock:
            entry = self._entries.get(fingerprint)
            return entry.snapshot() if entry is not None else None

    def all_entries(self) -> List[CacheEntry]:
        """Snapshots of every entry, in first-sight order."""
        with self._tracker_lock:
            return [entry.snapshot() for entry in self._entries.values()]

    def created_entries(self) -> List[CacheEntry]:
        """Snapshots of created entries, in creation order."""
        with self._tracker_lock:
            return [self._entries[fp].snapshot() for fp in self._creation_order]

    def get_fingerprint_for_class(self, test_class_name: str) -> Optional[Fingerprint]:
        with self._tracker_lock:
            return self._class_to_fingerprint.get(test_class_name)

    def get_test_methods(self, fingerprint: Fingerprint) -> List[str]:
        with self._tracker_lock:
            return list(self._test_methods.get(fingerprint, ()))

    def all_test_methods(self) -> Dict[Fingerprint, List[str]]:
        with self._tracker_lock:
            return {fp: list(methods) for fp, methods in self._test_methods.items()}

    def creation_order(self) -> List[Fingerprint]:
        with self._tracker_lock:
            return list(self._creation_order)

    @property
    def total_contexts_created(self) -> int:
        return self._total_contexts_created

    @property
    def cache_hits(self) -> int:
        return self._cache_hits

    @property
    def cache_misses(self) -> int:
        return self._cache_misses

    def cache_hit_ratio(self) -> float:
        """Hits / (hits + misses), or 0.0 before any activity."""
        with self._tracker_lock:
            total = self._cache_hits + self._cache_misses
            if total == 0:
                return 0.0
            return self._cache_hits / total

    def get_statistics(self) -> TrackerStatistics:
        with self._tracker_lock:
            return TrackerStatistics(
                total_contexts_created=self._total_contexts_created,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                entry_count=len(self._entries),
            )

    def entries_by_creation_time(self) -> List[CacheEntry]:
        """Created entries sorted by creation time.

        Entries without a creation time sort last; equal times keep
        creation order.
        """
        entries = self.created_entries()
        entries.sort(key=lambda e: (e.creation_time is None, e.creation_time or datetime.min))
        return entries

    def earliest_creation_time(self) -> Optional[datetime]:
        times = [e.creation_time for e in self.created_entries() if e.creation_time is not None]
        return min(times, default=None)

    def latest_access_time(self) -> Optional[datetime]:
        times = [e.last_used_time for e in self.all_entries() if e.last_used_time is not None]
        return max(times, default=None)

    def timeline_span_ms(self) -> int:
        """Milliseconds from first creation to last access, 0 without activity."""
        earliest = self.earliest_creation_time()
        latest = self.latest_access_time()
        if earliest is None or latest is None:
            return 0
        return millis_between(earliest, latest)

    def clear(self) -> None:
        """Reset all tracking data. Used between independent suite runs."""
        with self._tracker_lock:
            self._entries.clear()
            self._class_to_fingerprint.clear()
            self._test_methods.clear()
            self._creation_order.clear()
            self._total_contexts_created = 0
            self._cache_hits = 0
            self._cache_misses = 0
        logger.debug("Context cache tracker cleared")
