"""Unit tests for URL/method request matching."""
import re
from types import SimpleNamespace

import pytest

from login_e2e.matcher import MatchKind, RequestMatcher, glob_to_regex


def _request(url, method="GET"):
    return SimpleNamespace(url=url, method=method)


class TestPatternKinds:
    def test_plain_string_is_substring(self):
        matcher = RequestMatcher("/api/login")
        assert matcher.kind is MatchKind.SUBSTRING
        assert matcher.matches(_request("http://localhost:5310/api/login?x=1"))
        assert not matcher.matches(_request("http://localhost:5310/api/logout"))

    def test_wildcard_string_is_glob(self):
        matcher = RequestMatcher("**/api/login")
        assert matcher.kind is MatchKind.GLOB
        assert matcher.matches(_request("http://localhost:5310/api/login"))
        # globs are anchored: a query string is not swallowed
        assert not matcher.matches(_request("http://localhost:5310/api/login?x=1"))

    def test_compiled_pattern_is_searched(self):
        matcher = RequestMatcher(re.compile(r"/api/(login|signin)"))
        assert matcher.kind is MatchKind.REGEX
        assert matcher.matches(_request("https://example.com/api/signin?next=/"))
        assert not matcher.matches(_request("https://example.com/login"))

    def test_explicit_constructors(self):
        assert RequestMatcher.substring("*").kind is MatchKind.SUBSTRING
        assert RequestMatcher.substring("*").matches(_request("http://h/a*b"))
        assert RequestMatcher.glob("http://h/login").kind is MatchKind.GLOB
        assert RequestMatcher.regex(r"login$").matches(_request("http://h/login"))


class TestGlob:
    @pytest.mark.parametrize(
        "glob, url, expected",
        [
            ("**/api/*", "http://h/api/login", True),
            ("**/api/*", "http://h/api/v1/login", False),
            ("**/api/**", "http://h/api/v1/login", True),
            ("**/api/log?n", "http://h/api/login", True),
            ("**/api/log?n", "http://h/api/log/n", False),
            ("**/*.{png,jpg}", "http://h/static/logo.jpg", True),
            ("**/*.{png,jpg}", "http://h/static/logo.gif", False),
            ("http://h/a.b", "http://h/aXb", False),
        ],
    )
    def test_translation(self, glob, url, expected):
        assert bool(glob_to_regex(glob).match(url)) is expected

    def test_unbalanced_brace_is_rejected(self):
        with pytest.raises(ValueError):
            glob_to_regex("**/{a,b")


class TestMethod:
    def test_method_is_case_insensitive(self):
        matcher = RequestMatcher("/api/login", "post")
        assert matcher.method == "POST"
        assert matcher.matches(_request("http://h/api/login", "POST"))
        assert matcher.matches(_request("http://h/api/login", "post"))
        assert not matcher.matches(_request("http://h/api/login", "GET"))

    @pytest.mark.parametrize("method", [None, "*"])
    def test_any_method(self, method):
        matcher = RequestMatcher("/api/login", method)
        assert matcher.method is None
        assert matcher.matches(_request("http://h/api/login", "DELETE"))


class TestTotality:
    @pytest.mark.parametrize(
        "request_obj",
        [
            None,
            object(),
            SimpleNamespace(url=None, method="POST"),
            SimpleNamespace(url=b"http://h/api/login", method="POST"),
            SimpleNamespace(url="http://h/api/login", method=None),
            SimpleNamespace(url="http://h/api/login", method=42),
        ],
    )
    def test_malformed_requests_never_match(self, request_obj):
        assert RequestMatcher("/api/login", "POST").matches(request_obj) is False

    def test_property_access_errors_are_a_miss(self):
        class Detached:
            @property
            def url(self):
                raise RuntimeError("page closed")

            method = "POST"

        assert RequestMatcher("/api/login").matches(Detached()) is False


def test_matchers_are_immutable_values():
    matcher = RequestMatcher("**/api/login", "POST")
    assert matcher == RequestMatcher("**/api/login", "post")
    with pytest.raises(AttributeError):
        matcher.method = "GET"
    assert matcher.describe() == "POST **/api/login (glob)"
