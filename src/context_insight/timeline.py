# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Timeline reconstruction of context creation during a run.

All offsets are relative to the earliest context creation. The end of the
timeline is the latest access (creation or hit) of any context.
"""

import logging
from typing import List, Sequence

from context_insight.format_utils import short_name
from context_insight.models import (
    CacheEntry,
    TimelineData,
    TimelineEntry,
    TimelineEvent,
    millis_between,
)
from context_insight.tracker import ContextCacheTracker

logger = logging.getLogger(__name__)

DEFAULT_PALETTE = (
    "#e74c3c",
    "#3498db",
    "#27ae60",
    "#f39c12",
    "#9b59b6",
    "#e67e22",
    "#1abc9c",
    "#34495e",
    "#e91e63",
    "#ff5722",
)

CREATION_PHASE = "Creation"


def context_label(entry: CacheEntry, position: int) -> str:
    """Short name of the first consuming test class, or "Context N" (1-based)."""
    representative = entry.representative_test_class
    if representative is None:
        return f"Context {position + 1}"
    return short_name(representative)


class TimelineBuilder:
    """Builds a TimelineData model from a tracker snapshot."""

    def __init__(
        self, tracker: ContextCacheTracker, palette: Sequence[str] = DEFAULT_PALETTE
    ) -> None:
        if not palette:
            raise ValueError("palette must contain at least one color")
        self._tracker = tracker
        self._palette = tuple(palette)

    def build(self) -> TimelineData:
        """Build the timeline.

        Returns:
            TimelineData with one entry and one event per created context,
            or an empty TimelineData with no bounds when nothing was created.
        """
        entries = [
            e for e in self._tracker.entries_by_creation_time() if e.creation_time is not None
        ]
        if not entries:
            return TimelineData()

        earliest = entries[0].creation_time
        assert earliest is not None
        latest = max(e.last_used_time or earliest for e in entries)

        timeline_entries: List[TimelineEntry] = []
        events: List[TimelineEvent] = []
        for position, entry in enumerate(entries):
            assert entry.creation_time is not None
            label = context_label(entry, position)
            color = self._palette[position % len(self._palette)]
            start_ms = millis_between(earliest, entry.creation_time)

            timeline_entries.append(
                TimelineEntry(
                    label=label,
                    phase=CREATION_PHASE,
                    start_ms=start_ms,
                    end_ms=start_ms + entry.load_time_ms,
                    color=color,
                    tooltip=f"{entry.load_time_ms}ms load time",
                    context_id=position,
                )
            )
            events.append(
                TimelineEvent(
                    label=label,
                    color=color,
                    creation_offset_seconds=start_ms // 1000,
                    load_time_ms=entry.load_time_ms,
                    test_class_count=len(entry.test_classes),
                    hit_count=entry.hit_count,
                    bean_count=entry.bean_definition_count,
                )
            )

        logger.debug(f"Built timeline with {len(timeline_entries)} contexts")
        return TimelineData(
            entries=tuple(timeline_entries),
            start_time=earliest,
            end_time=latest,
            events=tuple(events),
        )
