"""Configuration for one run of the login scenario suite.

A ``SuiteConfig`` is built once per run (``SuiteConfig.from_env()``) and passed
explicitly to every runner. Nothing here is module-level mutable state: two
runs with different settings can coexist in the same process.

Lookup order for every setting: process environment, then ``.env.defaults``
at the repository root, then the defaults below.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Pattern, Tuple
from urllib.parse import urljoin

from login_e2e.env_defaults import get_setting

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:5310"


@dataclass(frozen=True)
class ViewportProfile:
    """Named viewport a scenario can request."""

    name: str
    width: int
    height: int

    def as_playwright(self) -> dict:
        return {"width": self.width, "height": self.height}


DESKTOP = ViewportProfile("desktop", 1920, 1080)
TABLET = ViewportProfile("tablet", 768, 1024)
MOBILE = ViewportProfile("mobile", 375, 812)


@dataclass(frozen=True)
class TestCredentials:
    """Accounts and inputs the scenarios type into the login form."""

    __test__ = False  # not a pytest test class

    valid_username: str = "testuser"
    valid_email: str = "test@example.com"
    valid_password: str = "Password123!"
    incorrect_password: str = "WrongPassword!"
    unregistered_username: str = "nonexistentuser"
    sql_injection: str = "' OR 1=1 --"


@dataclass(frozen=True)
class MessagePatterns:
    """Case-insensitive regular expressions for the texts the UI must show."""

    username_required: str = r"(username|email).*required"
    password_required: str = r"password is required"
    invalid_credentials: str = r"invalid username or password"
    lockout: str = r"account locked"
    max_length: str = r"exceeds max(imum)? length"
    login_failure: str = r"unable to login|network"
    server_error: str = r"unable to login at this time|internal server error"
    injection_rejected: str = r"invalid username or password|failed to login"
    forgot_password_title: str = r"forgot password|reset password"
    signup_title: str = r"sign up|create account"

    def regex(self, name: str) -> Pattern[str]:
        return re.compile(getattr(self, name), re.IGNORECASE)


@dataclass(frozen=True)
class SuiteConfig:
    """Everything a scenario needs to know about the application under test."""

    base_url: str = DEFAULT_BASE_URL
    login_api_pattern: str = "**/api/login"
    login_path: str = "/login"
    dashboard_path: str = "/dashboard"
    forgot_password_path: str = "/forgot-password"
    signup_path: str = "/signup"
    dashboard_url_pattern: str = r"dashboard|home"
    login_url_pattern: str = r"/login"
    session_cookie: str = "session"
    lockout_threshold: int = 3
    max_input_length: int = 254
    credentials: TestCredentials = field(default_factory=TestCredentials)
    messages: MessagePatterns = field(default_factory=MessagePatterns)
    viewports: Tuple[ViewportProfile, ...] = (DESKTOP, TABLET, MOBILE)
    default_viewport: str = "desktop"
    action_timeout_ms: int = 5000
    navigation_timeout_ms: int = 15000
    scenario_timeout_s: float = 90.0
    headless: bool = True
    browser_type: str = "chromium"

    # ---- derived values ---------------------------------------------------------
    @property
    def action_timeout_s(self) -> float:
        return self.action_timeout_ms / 1000

    @property
    def max_length_username(self) -> str:
        return "a" * self.max_input_length

    @property
    def max_length_password(self) -> str:
        return "p" * self.max_input_length

    @property
    def over_length_username(self) -> str:
        return "a" * (self.max_input_length + 2)

    @property
    def over_length_password(self) -> str:
        return "p" * (self.max_input_length + 2)

    def viewport(self, name: str | None = None) -> ViewportProfile:
        wanted = name or self.default_viewport
        for profile in self.viewports:
            if profile.name == wanted:
                return profile
        raise KeyError(f"Unknown viewport profile: {wanted}")

    def url(self, path: str) -> str:
        """Return an absolute URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))

    def url_regex(self, name: str) -> Pattern[str]:
        return re.compile(getattr(self, f"{name}_url_pattern"))

    def with_base_url(self, base_url: str) -> "SuiteConfig":
        return replace(self, base_url=base_url)

    # ---- construction -----------------------------------------------------------
    @classmethod
    def from_env(cls) -> "SuiteConfig":
        """Build a config from the environment and ``.env.defaults``."""
        defaults = cls()
        creds = defaults.credentials

        credentials = TestCredentials(
            valid_username=get_setting("UI_VALID_USERNAME", creds.valid_username),
            valid_email=get_setting("UI_VALID_EMAIL", creds.valid_email),
            valid_password=get_setting("UI_VALID_PASSWORD", creds.valid_password),
            incorrect_password=get_setting("UI_INCORRECT_PASSWORD", creds.incorrect_password),
            unregistered_username=get_setting("UI_UNREGISTERED_USERNAME", creds.unregistered_username),
            sql_injection=creds.sql_injection,
        )

        config = cls(
            base_url=get_setting("UI_BASE_URL", defaults.base_url),
            login_api_pattern=get_setting("UI_LOGIN_API_PATTERN", defaults.login_api_pattern),
            session_cookie=get_setting("UI_SESSION_COOKIE", defaults.session_cookie),
            lockout_threshold=_int_setting("UI_LOCKOUT_THRESHOLD", defaults.lockout_threshold),
            max_input_length=_int_setting("UI_MAX_INPUT_LENGTH", defaults.max_input_length),
            credentials=credentials,
            action_timeout_ms=_int_setting("UI_ACTION_TIMEOUT_MS", defaults.action_timeout_ms),
            navigation_timeout_ms=_int_setting("UI_NAVIGATION_TIMEOUT_MS", defaults.navigation_timeout_ms),
            scenario_timeout_s=_float_setting("UI_SCENARIO_TIMEOUT_S", defaults.scenario_timeout_s),
            headless=get_setting("PLAYWRIGHT_HEADLESS", "true").lower() in {"true", "1"},
            browser_type=get_setting("PLAYWRIGHT_BROWSER", defaults.browser_type),
        )
        if config.lockout_threshold < 1:
            raise ValueError("UI_LOCKOUT_THRESHOLD must be at least 1")
        logger.info(
            f"Suite config: base_url={config.base_url} browser={config.browser_type} "
            f"headless={config.headless} lockout_threshold={config.lockout_threshold}"
        )
        return config


def _int_setting(key: str, default: int) -> int:
    raw = get_setting(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _float_setting(key: str, default: float) -> float:
    raw = get_setting(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
