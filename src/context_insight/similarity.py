# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Similarity scoring between context fingerprints.

The score is an additive sum of independent contributions:
- sources:      weight x number of configuration sources shared
- profiles:     weight if the active profile sets are exactly equal
- loader:       weight if both loaders are set and equal
- properties:   weight x number of identical (key, value) overrides
- initializers: weight if the initializer sets are exactly equal

Profiles and initializers are all-or-nothing: one differing profile or
initializer already produces different runtime wiring, so partial overlap
earns nothing.

The function is pure and symmetric. Self-comparison is never requested by
the tracker.
"""

from dataclasses import dataclass

from context_insight.fingerprint import Fingerprint


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights for each similarity contribution. All must be non-negative."""

    source: int = 10
    profiles: int = 5
    loader: int = 3
    property: int = 1
    initializers: int = 2

    def __post_init__(self) -> None:
        for name in ("source", "profiles", "loader", "property", "initializers"):
            if getattr(self, name) < 0:
                raise ValueError(f"Similarity weight '{name}' must be >= 0")


DEFAULT_WEIGHTS = SimilarityWeights()


def similarity_score(
    a: Fingerprint, b: Fingerprint, weights: SimilarityWeights = DEFAULT_WEIGHTS
) -> int:
    """Score how similar two fingerprints are. Higher means more similar.

    Args:
        a: First fingerprint.
        b: Second fingerprint.
        weights: Contribution weights (default: 10/5/3/1/2).

    Returns:
        Non-negative integer score, with score(a, b) == score(b, a).
    """
    score = len(a.sources & b.sources) * weights.source

    if a.profiles == b.profiles:
        score += weights.profiles

    if a.loader is not None and a.loader == b.loader:
        score += weights.loader

    score += len(a.properties & b.properties) * weights.property

    if a.initializers == b.initializers:
        score += weights.initializers

    return score
