"""
FileClassifier — reduces a set of loaded files to categorized relative paths.
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, List, Sequence, Set, Tuple

__all__ = ["FileClassifier", "DEFAULT_CATEGORY_RULES", "FALLBACK_CATEGORY"]

FALLBACK_CATEGORY = "other"


def _segment(name: str) -> str:
    return f"{os.sep}{name}{os.sep}"


# Evaluated in order; the first matching fragment wins.
DEFAULT_CATEGORY_RULES: Tuple[Tuple[str, str], ...] = (
    (_segment("Controllers"), "controllers"),
    (_segment("Models"), "models"),
    (_segment("Policies"), "policies"),
    (_segment("Requests"), "requests"),
    (_segment("Resources"), "resources"),
    (_segment("Middleware"), "middleware"),
    (_segment("Services"), "services"),
    (_segment("migrations"), "migrations"),
)


class FileClassifier:
    """
    Filters paths to the application base directory and groups them
    into named categories by path fragment.
    """

    __slots__ = ("rules",)

    def __init__(self, rules: Sequence[Tuple[str, str]] = DEFAULT_CATEGORY_RULES) -> None:
        self.rules = tuple((fragment, category) for fragment, category in rules)

    def filter(
        self,
        paths: Iterable[str],
        base_dir: str,
        exclude_patterns: Sequence[str] = (),
    ) -> Set[str]:
        """Keep paths under ``base_dir`` that match none of ``exclude_patterns``."""
        kept = set()
        for path in paths:
            if not path.startswith(base_dir):
                continue
            if any(pattern in path for pattern in exclude_patterns):
                continue
            kept.add(path)
        return kept

    def category_of(self, path: str) -> str:
        for fragment, category in self.rules:
            if fragment in path:
                return category
        return FALLBACK_CATEGORY

    def classify(self, paths: Iterable[str], base_dir: str) -> Dict[str, List[str]]:
        """
        Group paths by category as paths relative to ``base_dir``.

        Categories appear in rule order, ``other`` last; empty ones are
        omitted and each bucket is sorted.
        """
        buckets: Dict[str, List[str]] = {}
        for path in paths:
            buckets.setdefault(self.category_of(path), []).append(
                _relative(path, base_dir)
            )

        order = [category for _, category in self.rules] + [FALLBACK_CATEGORY]
        result: Dict[str, List[str]] = {}
        for category in order:
            if category in buckets and category not in result:
                result[category] = sorted(buckets[category])
        return result


def _relative(path: str, base_dir: str) -> str:
    prefix = base_dir.rstrip(os.sep) + os.sep
    if path.startswith(prefix):
        return path[len(prefix):]
    return path
