"""Playwright end-to-end suite for a login flow, with a scripted interception harness."""

from login_e2e.config import SuiteConfig
from login_e2e.errors import AssertionFailure, DriverError, HarnessError, InvariantViolation, TimeoutExceeded
from login_e2e.matcher import RequestMatcher
from login_e2e.registry import InterceptionRegistry
from login_e2e.script import Abort, Fulfill, Hang, ResponseScript

__all__ = [
    "Abort",
    "AssertionFailure",
    "DriverError",
    "Fulfill",
    "Hang",
    "HarnessError",
    "InterceptionRegistry",
    "InvariantViolation",
    "RequestMatcher",
    "ResponseScript",
    "SuiteConfig",
    "TimeoutExceeded",
]

__version__ = "1.0.0"
