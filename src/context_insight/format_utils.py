# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Small formatting helpers for report-friendly collection output."""

from typing import Iterable, List


def to_sorted_strings(elements: Iterable[object]) -> List[str]:
    """Convert elements to a sorted list of unique strings.

    Useful for visually comparable representations of unordered sets.
    """
    return sorted({str(e) for e in elements})


def short_name(qualified_name: str) -> str:
    """Reduce a dotted qualified name to its last component.

    "tests.api.test_users.TestUsers" -> "TestUsers"
    """
    return qualified_name.rsplit(".", 1)[-1]
