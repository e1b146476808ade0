"""Tests for glob-style path patterns."""

import pytest

from ratekeeper.app.ratelimit.patterns import PatternCache, compile_pattern


class TestCompilePattern:
    """Tests for compile_pattern and PathPattern.test."""

    def test_literal_matches_only_identical_path(self):
        pattern = compile_pattern("/api/health")
        assert pattern.regex is None
        assert pattern.test("/api/health") is True
        assert pattern.test("/api/health/") is False
        assert pattern.test("/api/healthz") is False

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/api/ai/chat", True),
            ("/api/ai/", True),
            ("/api/ai/chat/stream", False),
            ("/api/aix/chat", False),
        ],
    )
    def test_single_star_matches_one_segment(self, path, expected):
        assert compile_pattern("/api/ai/*").test(path) is expected

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/api/ai/chat", True),
            ("/api/ai/chat/stream", True),
            ("/api/ai/", True),
            ("/api/other", False),
        ],
    )
    def test_double_star_spans_segments(self, path, expected):
        assert compile_pattern("/api/ai/**").test(path) is expected

    def test_star_in_middle_of_path(self):
        pattern = compile_pattern("/users/*/posts")
        assert pattern.test("/users/42/posts") is True
        assert pattern.test("/users/42/7/posts") is False

    def test_double_star_in_middle_of_path(self):
        pattern = compile_pattern("/files/**/raw")
        assert pattern.test("/files/a/b/c/raw") is True
        assert pattern.test("/files/a/raw") is True
        assert pattern.test("/files/a/raw/x") is False

    def test_regex_metacharacters_are_literal(self):
        pattern = compile_pattern("/v1.0/items(+)/*")
        assert pattern.test("/v1.0/items(+)/x") is True
        assert pattern.test("/v1x0/items(+)/x") is False
        assert pattern.test("/v1.0/itemss/x") is False

    def test_empty_pattern_matches_only_empty_path(self):
        pattern = compile_pattern("")
        assert pattern.test("") is True
        assert pattern.test("/") is False

    def test_match_is_anchored(self):
        pattern = compile_pattern("/api/*")
        assert pattern.test("/prefix/api/x") is False


class TestPatternCache:
    """Tests for PatternCache."""

    def test_reuses_compiled_pattern(self):
        cache = PatternCache()
        first = cache.get("/api/*")
        second = cache.get("/api/*")
        assert first is second
        assert len(cache) == 1

    def test_matches_compiles_once_per_pattern(self):
        cache = PatternCache()
        for path in ("/api/a", "/api/b", "/other"):
            cache.matches("/api/*", path)
        cache.matches("/health", "/health")
        assert len(cache) == 2

    def test_caches_are_independent(self):
        a, b = PatternCache(), PatternCache()
        a.get("/api/*")
        assert len(a) == 1
        assert len(b) == 0
