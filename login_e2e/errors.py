"""Failure taxonomy for the login scenario harness.

Every way a scenario can end badly maps onto one of these classes so the
report can tell a real regression (``AssertionFailure``) apart from a slow
page (``TimeoutExceeded``), harness misuse (``InvariantViolation``) and
broken infrastructure (``DriverError``).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


class HarnessError(Exception):
    """Base class for all harness failures."""

    kind = "error"


class AssertionFailure(HarnessError, AssertionError):
    """Expected UI or network state did not materialize."""

    kind = "assertion"

    def __init__(self, description: str, expected: Any = None, actual: Any = None) -> None:
        self.description = description
        self.expected = expected
        self.actual = actual
        message = description
        if expected is not None or actual is not None:
            message = f"{description} (expected={expected!r}, actual={actual!r})"
        super().__init__(message)


class TimeoutExceeded(HarnessError):
    """A bounded wait ran past its configured limit."""

    kind = "timeout"

    def __init__(self, description: str, timeout_s: float) -> None:
        self.description = description
        self.timeout_s = timeout_s
        super().__init__(f"{description} did not complete within {timeout_s:g}s")


class InvariantViolation(HarnessError):
    """The harness was used in a way it does not allow."""

    kind = "invariant"


@dataclass(eq=False)
class DriverError(HarnessError):
    """Raised when the browser driver fails independently of test logic."""

    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    message: str = ""

    kind = "driver"

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def __str__(self) -> str:  # pragma: no cover - human readable helper
        return f"{self.name} failed ({self.message}) with payload={self.payload}"
