"""Per-path rule resolution."""

from __future__ import annotations

from typing import Mapping, Optional

from ratekeeper.app.ratelimit.models import RateLimitRule, RuleValue
from ratekeeper.app.ratelimit.patterns import PatternCache


class RuleResolver:
    """Resolves the custom rule for a request path.

    Patterns are tried in declaration order and the first match wins. Each
    resolver owns its pattern cache, so independently configured limiters in
    one process never share compiled state.
    """

    def __init__(self, custom_rules: Optional[Mapping[str, RuleValue]] = None):
        self._rules: dict[str, RuleValue] = dict(custom_rules or {})
        self._patterns = PatternCache()

    def __len__(self) -> int:
        return len(self._rules)

    def resolve(self, path: str) -> Optional[RuleValue]:
        """Find the custom rule for path.

        Returns:
            The matching RateLimitRule, False when limiting is disabled for
            the path, or None when no pattern matches.
        """
        for pattern, value in self._rules.items():
            if self._patterns.matches(pattern, path):
                return value
        return None

    def rule_for(self, path: str, default: RateLimitRule) -> RuleValue:
        """Effective rule for path: the custom match, else default."""
        rule = self.resolve(path)
        return default if rule is None else rule

    def max_window_seconds(self, default: RateLimitRule) -> int:
        """Largest window across the default and every enabled custom rule."""
        windows = [
            rule.window_seconds for rule in self._rules.values() if rule is not False
        ]
        return max([default.window_seconds, *windows])
