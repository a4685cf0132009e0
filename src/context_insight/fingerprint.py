# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Fingerprint value type identifying a reusable test context.

Two test classes can share one constructed context exactly when their
fingerprints are equal. Every attribute is stored as a frozenset so that
equality and hashing are order-independent.

Fingerprints are built by the caller (the lifecycle glue); the engine only
compares and stores them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from context_insight.format_utils import short_name, to_sorted_strings

PropertyOverrides = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _freeze_properties(properties: Any) -> FrozenSet[Tuple[str, str]]:
    if isinstance(properties, Mapping):
        pairs = properties.items()
    else:
        pairs = properties
    frozen = set()
    for pair in pairs:
        key, value = pair
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError(f"Property overrides must be str pairs, got {pair!r}")
        frozen.add((key, value))
    return frozenset(frozen)


@dataclass(frozen=True)
class Fingerprint:
    """Identity of a test context configuration.

    Attributes:
        sources: Configuration-source identifiers (classes, modules or files).
        profiles: Active named profiles.
        loader: Identifier of the loading strategy, if any.
        properties: Property overrides as (key, value) pairs.
        initializers: Initializer identifiers.
        customizers: Customizer identifiers.

    Any iterable is accepted on construction; values are normalized to
    frozensets. ``properties`` also accepts a mapping.
    """

    sources: FrozenSet[str] = field(default_factory=frozenset)
    profiles: FrozenSet[str] = field(default_factory=frozenset)
    loader: Optional[str] = None
    properties: FrozenSet[Tuple[str, str]] = field(default_factory=frozenset)
    initializers: FrozenSet[str] = field(default_factory=frozenset)
    customizers: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "sources", frozenset(self.sources))
        object.__setattr__(self, "profiles", frozenset(self.profiles))
        object.__setattr__(self, "properties", _freeze_properties(self.properties))
        object.__setattr__(self, "initializers", frozenset(self.initializers))
        object.__setattr__(self, "customizers", frozenset(self.customizers))

    @property
    def property_map(self) -> Dict[str, str]:
        """Property overrides as a plain dict, sorted by key."""
        return dict(sorted(self.properties))

    def describe(self) -> Dict[str, Any]:
        """Summarize the configuration for reporting.

        Only non-empty attributes are included, in a fixed key order.
        """
        summary: Dict[str, Any] = {}
        if self.sources:
            summary["configuration_sources"] = [
                short_name(s) for s in to_sorted_strings(self.sources)
            ]
        if self.profiles:
            summary["active_profiles"] = to_sorted_strings(self.profiles)
        if self.loader is not None:
            summary["loader"] = short_name(self.loader)
        if self.properties:
            summary["properties"] = f"{len(self.properties)} properties"
        if self.initializers:
            summary["initializers"] = [
                short_name(i) for i in to_sorted_strings(self.initializers)
            ]
        if self.customizers:
            summary["customizers"] = [short_name(c) for c in to_sorted_strings(self.customizers)]
        return summary

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict with sorted lists."""
        return {
            "sources": to_sorted_strings(self.sources),
            "profiles": to_sorted_strings(self.profiles),
            "loader": self.loader,
            "properties": self.property_map,
            "initializers": to_sorted_strings(self.initializers),
            "customizers": to_sorted_strings(self.customizers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fingerprint":
        """Deserialize from the dict produced by ``to_dict``."""
        return cls(
            sources=data.get("sources", ()),
            profiles=data.get("profiles", ()),
            loader=data.get("loader"),
            properties=data.get("properties", {}),
            initializers=data.get("initializers", ()),
            customizers=data.get("customizers", ()),
        )

    def __str__(self) -> str:
        parts = ", ".join(f"{k}={v}" for k, v in self.describe().items())
        return f"Fingerprint({parts})"
