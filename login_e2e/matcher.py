"""Request matching for scripted interception.

A ``RequestMatcher`` answers one question: does this outgoing request belong
to a scripted route? URL patterns come in three flavours:

- literal substring: ``"/api/login"`` matches any URL containing it,
- glob: ``"**/api/login"``; ``*`` matches a run of characters without ``/``,
  ``**`` matches any run, ``?`` matches one character other than ``/`` and
  ``{a,b}`` matches either alternative. Globs are anchored to the whole URL,
- regular expression: a compiled ``re.Pattern``, searched anywhere in the URL.

A plain string is treated as a glob when it contains ``*``, ``?`` or ``{``
and as a substring otherwise. Use the ``substring``/``glob``/``regex``
constructors to be explicit.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Pattern, Union

UrlPattern = Union[str, Pattern[str]]

ANY_METHOD = "*"
_GLOB_CHARS = ("*", "?", "{")


class MatchKind(str, enum.Enum):
    SUBSTRING = "substring"
    GLOB = "glob"
    REGEX = "regex"


def glob_to_regex(glob: str) -> Pattern[str]:
    """Translate a URL glob into an anchored regular expression."""
    parts = ["^"]
    in_group = False
    i = 0
    while i < len(glob):
        char = glob[i]
        if char == "*":
            if glob[i + 1:i + 2] == "*":
                parts.append(".*")
                i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "{" and not in_group:
            in_group = True
            parts.append("(?:")
        elif char == "}" and in_group:
            in_group = False
            parts.append(")")
        elif char == "," and in_group:
            parts.append("|")
        else:
            parts.append(re.escape(char))
        i += 1
    if in_group:
        raise ValueError(f"Unbalanced '{{' in URL glob: {glob!r}")
    parts.append("$")
    return re.compile("".join(parts))


def _read(obj: Any, attr: str) -> Any:
    # Request wrappers may raise from property access once their page is gone.
    try:
        return getattr(obj, attr, None)
    except Exception:
        return None


@dataclass(frozen=True)
class RequestMatcher:
    """Immutable (URL pattern, method) pair."""

    url_pattern: UrlPattern
    method: Optional[str] = None
    kind: MatchKind | None = None
    _regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        kind = self.kind
        if kind is None:
            if isinstance(self.url_pattern, re.Pattern):
                kind = MatchKind.REGEX
            elif any(char in self.url_pattern for char in _GLOB_CHARS):
                kind = MatchKind.GLOB
            else:
                kind = MatchKind.SUBSTRING
        object.__setattr__(self, "kind", kind)

        if kind is MatchKind.REGEX:
            pattern = self.url_pattern
            regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        elif kind is MatchKind.GLOB:
            if not isinstance(self.url_pattern, str):
                raise TypeError("Glob patterns must be strings")
            regex = glob_to_regex(self.url_pattern)
        else:
            if not isinstance(self.url_pattern, str):
                raise TypeError("Substring patterns must be strings")
            regex = None
        object.__setattr__(self, "_regex", regex)

        method = self.method
        if method is not None:
            method = method.upper()
            if method == ANY_METHOD:
                method = None
        object.__setattr__(self, "method", method)

    # ---- constructors -----------------------------------------------------------
    @classmethod
    def substring(cls, text: str, method: Optional[str] = None) -> "RequestMatcher":
        return cls(text, method, MatchKind.SUBSTRING)

    @classmethod
    def glob(cls, pattern: str, method: Optional[str] = None) -> "RequestMatcher":
        return cls(pattern, method, MatchKind.GLOB)

    @classmethod
    def regex(cls, pattern: UrlPattern, method: Optional[str] = None) -> "RequestMatcher":
        return cls(pattern, method, MatchKind.REGEX)

    # ---- matching ---------------------------------------------------------------
    def matches(self, request: Any) -> bool:
        """Return True when ``request`` (anything with ``url``/``method``) matches."""
        return self.matches_url(_read(request, "url"), _read(request, "method"))

    def matches_url(self, url: Any, method: Any = None) -> bool:
        if not isinstance(url, str):
            return False
        if self.method is not None:
            if not isinstance(method, str) or method.upper() != self.method:
                return False
        if self.kind is MatchKind.SUBSTRING:
            return self.url_pattern in url
        if self.kind is MatchKind.GLOB:
            return self._regex.match(url) is not None
        return self._regex.search(url) is not None

    def describe(self) -> str:
        pattern = self.url_pattern.pattern if isinstance(self.url_pattern, re.Pattern) else self.url_pattern
        return f"{self.method or ANY_METHOD} {pattern} ({self.kind.value})"
