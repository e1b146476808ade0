"""Tests for per-path rule resolution."""

import pytest
from pydantic import ValidationError

from ratekeeper.app.ratelimit.models import RateLimitRule
from ratekeeper.app.ratelimit.options import RateLimiterOptions
from ratekeeper.app.ratelimit.rules import RuleResolver

DEFAULT = RateLimitRule(window_seconds=60, max_requests=100)


class TestRuleResolver:
    """Tests for RuleResolver."""

    def test_no_rules_resolves_to_none(self):
        resolver = RuleResolver()
        assert resolver.resolve("/api/anything") is None
        assert resolver.rule_for("/api/anything", DEFAULT) == DEFAULT

    def test_exact_match(self):
        strict = RateLimitRule(window_seconds=60, max_requests=1)
        resolver = RuleResolver({"/api/strict": strict})
        assert resolver.resolve("/api/strict") == strict
        assert resolver.resolve("/api/other") is None

    def test_wildcard_match(self):
        ai = RateLimitRule(window_seconds=60, max_requests=2)
        resolver = RuleResolver({"/api/ai/*": ai})
        assert resolver.rule_for("/api/ai/chat", DEFAULT) == ai

    def test_disabled_rule(self):
        resolver = RuleResolver({"/api/health": False})
        assert resolver.resolve("/api/health") is False
        assert resolver.rule_for("/api/health", DEFAULT) is False

    def test_first_declared_match_wins(self):
        specific = RateLimitRule(window_seconds=60, max_requests=1)
        broad = RateLimitRule(window_seconds=60, max_requests=50)
        resolver = RuleResolver({"/api/ai/chat": specific, "/api/**": broad})
        assert resolver.resolve("/api/ai/chat") == specific
        assert resolver.resolve("/api/ai/other") == broad

        reversed_order = RuleResolver({"/api/**": broad, "/api/ai/chat": specific})
        assert reversed_order.resolve("/api/ai/chat") == broad

    def test_disabled_before_override(self):
        resolver = RuleResolver({
            "/api/internal/*": False,
            "/api/**": RateLimitRule(window_seconds=10, max_requests=5),
        })
        assert resolver.resolve("/api/internal/metrics") is False

    def test_max_window_seconds(self):
        resolver = RuleResolver({
            "/slow": RateLimitRule(window_seconds=3600, max_requests=5),
            "/off": False,
        })
        assert resolver.max_window_seconds(DEFAULT) == 3600
        assert RuleResolver().max_window_seconds(DEFAULT) == 60


class TestRateLimiterOptions:
    """Tests for option parsing and validation."""

    def test_defaults(self):
        options = RateLimiterOptions()
        assert options.window_seconds == 60
        assert options.max_requests == 100
        assert options.storage == "memory"
        assert options.detection == "ip"
        assert options.custom_rules == {}

    def test_rule_short_aliases(self):
        options = RateLimiterOptions(custom_rules={
            "/api/ai/*": {"window": 30, "max": 10},
            "/api/health": False,
        })
        assert options.custom_rules["/api/ai/*"] == RateLimitRule(
            window_seconds=30, max_requests=10
        )
        assert options.custom_rules["/api/health"] is False

    def test_rule_order_preserved(self):
        options = RateLimiterOptions(custom_rules={
            "/b": {"window": 1, "max": 1},
            "/a": False,
            "/c": {"window_seconds": 1, "max_requests": 1},
        })
        assert list(options.custom_rules) == ["/b", "/a", "/c"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"window_seconds": 0},
            {"max_requests": 0},
            {"storage": "disk"},
            {"detection": "cookie"},
            {"custom_rules": {"/x": {"window": 0, "max": 1}}},
            {"custom_rules": {"/x": True}},
        ],
    )
    def test_invalid_options_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            RateLimiterOptions(**kwargs)
