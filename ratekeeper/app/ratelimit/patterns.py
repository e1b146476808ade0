"""Glob-style path patterns for per-path rate limit rules.

``*`` matches within one path segment, ``**`` matches across segments, and
every other character is literal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

WILDCARD = "*"


@dataclass(frozen=True)
class PathPattern:
    """A compiled path pattern.

    Literal patterns (no ``*``) are compared by equality and never hit the
    regex engine.
    """

    raw: str
    regex: re.Pattern | None = None

    def test(self, path: str) -> bool:
        if self.regex is None:
            return path == self.raw
        return self.regex.fullmatch(path) is not None


def _segment_to_regex(segment: str) -> str:
    return "[^/]*".join(re.escape(part) for part in segment.split(WILDCARD))


def compile_pattern(pattern: str) -> PathPattern:
    """Compile a raw pattern string into a PathPattern."""
    if WILDCARD not in pattern:
        return PathPattern(raw=pattern)
    regex_str = ".*".join(_segment_to_regex(s) for s in pattern.split("**"))
    return PathPattern(raw=pattern, regex=re.compile(regex_str))


class PatternCache:
    """Compiled patterns keyed by raw pattern string.

    Owned by a single rule table. Its size is bounded by the number of
    configured patterns, so nothing is ever evicted.
    """

    def __init__(self) -> None:
        self._compiled: dict[str, PathPattern] = {}

    def __len__(self) -> int:
        return len(self._compiled)

    def get(self, pattern: str) -> PathPattern:
        compiled = self._compiled.get(pattern)
        if compiled is None:
            compiled = compile_pattern(pattern)
            self._compiled[pattern] = compiled
        return compiled

    def matches(self, pattern: str, path: str) -> bool:
        return self.get(pattern).test(path)
