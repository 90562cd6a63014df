"""The login scenario catalogue (TC001 - TC020).

Scenarios are plain async functions registered under a stable name such as
``"TC007: Account lockout after multiple failed login attempts"``. Each one
receives a fresh ``ScenarioRunner`` and talks to the page only through it, so
failures are classified and logged the same way everywhere.

Message texts, the lockout threshold and the session cookie name differ between
deployments, so they come from ``SuiteConfig`` instead of being hard-coded here.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from playwright.async_api import expect

from login_e2e.errors import AssertionFailure
from login_e2e.matcher import RequestMatcher
from login_e2e.pages import TAB_ORDER
from login_e2e.runner import ScenarioRunner
from login_e2e.script import ResponseScript

logger = logging.getLogger(__name__)

ScenarioBody = Callable[[ScenarioRunner], Awaitable[None]]


@dataclass(frozen=True)
class Scenario:
    name: str
    body: ScenarioBody
    viewport: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @property
    def case_id(self) -> str:
        return self.name.split(":", 1)[0].strip()


class ScenarioRegistry:
    """Insertion-ordered catalogue of named scenarios."""

    def __init__(self) -> None:
        self._scenarios: Dict[str, Scenario] = {}

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self._scenarios.values())

    def __len__(self) -> int:
        return len(self._scenarios)

    def add(self, scenario: Scenario) -> Scenario:
        if scenario.name in self._scenarios:
            raise ValueError(f"Scenario already registered: {scenario.name}")
        if any(existing.case_id == scenario.case_id for existing in self):
            raise ValueError(f"Case id already registered: {scenario.case_id}")
        self._scenarios[scenario.name] = scenario
        return scenario

    def scenario(self, name: str, viewport: Optional[str] = None, tags: Tuple[str, ...] = ()) -> Callable[[ScenarioBody], ScenarioBody]:
        """Decorator registering ``body`` under ``name``."""

        def decorator(body: ScenarioBody) -> ScenarioBody:
            self.add(Scenario(name=name, body=body, viewport=viewport, tags=tags))
            return body

        return decorator

    def names(self) -> List[str]:
        return list(self._scenarios)

    def get(self, key: str) -> Scenario:
        """Look a scenario up by full name or by case id (``"TC007"``)."""
        if key in self._scenarios:
            return self._scenarios[key]
        wanted = key.strip().upper()
        for scenario in self:
            if scenario.case_id.upper() == wanted:
                return scenario
        raise KeyError(f"Unknown scenario: {key}")

    def select(self, keys: Optional[List[str]] = None, tag: Optional[str] = None) -> List[Scenario]:
        chosen = [self.get(key) for key in keys] if keys else list(self)
        if tag:
            chosen = [scenario for scenario in chosen if tag in scenario.tags]
        return chosen


SCENARIOS = ScenarioRegistry()
scenario = SCENARIOS.scenario


def _ci(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


# ---- shared steps -----------------------------------------------------------------

def _login_api(run: ScenarioRunner) -> RequestMatcher:
    return RequestMatcher(run.config.login_api_pattern, "POST")


async def _expect_url(run: ScenarioRunner, which: str, description: str) -> None:
    await run.check(
        description,
        lambda: expect(run.page).to_have_url(run.config.url_regex(which), timeout=run.config.navigation_timeout_ms),
    )


async def _expect_session_cookie(run: ScenarioRunner) -> None:
    cookie = run.config.session_cookie
    if not cookie:
        return

    async def _has_cookie() -> None:
        names = await run.cookie_names()
        if cookie not in names:
            raise AssertionFailure("session cookie is set", expected=cookie, actual=names)

    await run.check(f"{cookie!r} cookie is set", _has_cookie)


async def _login_to_dashboard(run: ScenarioRunner, identity: str, remember: Optional[bool] = None) -> None:
    creds = run.config.credentials
    await run.navigate(run.config.login_path)
    await run.act("submit valid credentials", lambda: run.login_page.submit(identity, creds.valid_password, remember))
    await run.check("dashboard is loaded", run.dashboard_page.expect_loaded)


async def _expect_banner(run: ScenarioRunner, pattern: str, description: str) -> None:
    await run.wait_visible("error banner appears", run.login_page, "generic_error")
    await run.check(description, lambda: run.login_page.expect_text("generic_error", run.config.messages.regex(pattern)))


# ---- TC001 - TC006: credentials and validation ------------------------------------

@scenario("TC001: Successful login with valid username and password", tags=("smoke",))
async def login_with_username(run: ScenarioRunner) -> None:
    username = run.config.credentials.valid_username
    await _login_to_dashboard(run, username)
    await run.check("welcome message names the user", lambda: run.dashboard_page.expect_text("welcome_message", username))
    await _expect_url(run, "dashboard", "URL is the dashboard")
    await _expect_session_cookie(run)


@scenario("TC002: Successful login with valid email and password", tags=("smoke",))
async def login_with_email(run: ScenarioRunner) -> None:
    email = run.config.credentials.valid_email
    await _login_to_dashboard(run, email)
    await run.check("welcome message names the user", lambda: run.dashboard_page.expect_text("welcome_message", email))
    await _expect_url(run, "dashboard", "URL is the dashboard")
    await _expect_session_cookie(run)


@scenario("TC003: Login attempt with empty username/email field", tags=("validation",))
async def empty_username(run: ScenarioRunner) -> None:
    login = run.login_page
    await run.navigate(run.config.login_path)
    await run.act("clear username", lambda: login.enter_username(""))
    await run.act("enter password", lambda: login.enter_password(run.config.credentials.valid_password))
    await run.act("press login", login.click_login)
    await run.wait_visible("username error appears", login, "username_error")
    await run.check(
        "username error says the field is required",
        lambda: login.expect_text("username_error", run.config.messages.regex("username_required")),
    )
    await _expect_url(run, "login", "still on the login page")


@scenario("TC004: Login attempt with empty password field", tags=("validation",))
async def empty_password(run: ScenarioRunner) -> None:
    login = run.login_page
    await run.navigate(run.config.login_path)
    await run.act("enter username only", lambda: login.submit(run.config.credentials.valid_username, ""))
    await run.wait_visible("password error appears", login, "password_error")
    await run.check(
        "password error says the field is required",
        lambda: login.expect_text("password_error", run.config.messages.regex("password_required")),
    )
    await _expect_url(run, "login", "still on the login page")


@scenario("TC005: Login attempt with invalid username/email", tags=("negative",))
async def unregistered_username(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    await run.navigate(run.config.login_path)
    await run.act("submit unknown account", lambda: run.login_page.submit(creds.unregistered_username, creds.valid_password))
    await _expect_banner(run, "invalid_credentials", "banner reports invalid credentials")
    await _expect_url(run, "login", "still on the login page")


@scenario("TC006: Login attempt with incorrect password", tags=("negative",))
async def incorrect_password(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    await run.navigate(run.config.login_path)
    await run.act("submit wrong password", lambda: run.login_page.submit(creds.valid_username, creds.incorrect_password))
    await _expect_banner(run, "invalid_credentials", "banner reports invalid credentials")
    await _expect_url(run, "login", "still on the login page")


# ---- TC007: lockout ----------------------------------------------------------------

@scenario("TC007: Account lockout after multiple failed login attempts", tags=("negative", "scripted"))
async def lockout_after_failed_attempts(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    threshold = run.config.lockout_threshold
    login_api = _login_api(run)
    script = run.intercept(login_api, ResponseScript.lockout(threshold))

    await run.navigate(run.config.login_path)
    for attempt in range(1, threshold + 1):
        await run.act_and_wait_response(
            f"failed attempt {attempt}",
            lambda: run.login_page.submit(creds.valid_username, creds.incorrect_password),
            login_api,
        )
        await _expect_banner(run, "invalid_credentials", f"attempt {attempt} reports invalid credentials")

    await run.act_and_wait_response(
        "attempt with the correct password",
        lambda: run.login_page.submit(creds.valid_username, creds.valid_password),
        login_api,
    )
    await _expect_banner(run, "lockout", "banner reports the account is locked")
    await run.check(
        "correct password does not reach the dashboard",
        lambda: expect(run.page).not_to_have_url(run.config.url_regex("dashboard"), timeout=run.config.action_timeout_ms),
    )

    async def _every_attempt_hit_the_script() -> None:
        if script.calls != threshold + 1:
            raise AssertionFailure("login API consulted once per attempt", expected=threshold + 1, actual=script.calls)

    await run.check("each attempt was answered by the lockout script", _every_attempt_hit_the_script)


# ---- TC008 - TC012: form behaviour and session ------------------------------------

@scenario("TC008: Login with password visibility toggle")
async def password_visibility_toggle(run: ScenarioRunner) -> None:
    login = run.login_page
    password = run.config.credentials.valid_password
    await run.navigate(run.config.login_path)
    await run.act("enter password", lambda: login.enter_password(password))
    await run.check("password is masked", lambda: login.expect_attribute("password", "type", "password"))

    await run.act("show password", login.toggle_password_visibility)
    await run.check("password is shown as text", lambda: login.expect_attribute("password", "type", "text"))
    await run.check("value survives the toggle", lambda: login.expect_value("password", password))

    await run.act("hide password", login.toggle_password_visibility)
    await run.check("password is masked again", lambda: login.expect_attribute("password", "type", "password"))
    await run.check("value survives the second toggle", lambda: login.expect_value("password", password))


@scenario("TC009: Login with 'Remember Me' functionality enabled", tags=("session",))
async def remember_me_enabled(run: ScenarioRunner) -> None:
    await _login_to_dashboard(run, run.config.credentials.valid_username, remember=True)
    await run.restart_context(keep_persistent_cookies=True)
    await run.navigate(run.config.dashboard_path, "reopen the dashboard after a browser restart")
    await run.check("still signed in", run.dashboard_page.expect_loaded)


@scenario("TC010: Login with 'Remember Me' functionality disabled", tags=("session",))
async def remember_me_disabled(run: ScenarioRunner) -> None:
    await _login_to_dashboard(run, run.config.credentials.valid_username, remember=False)
    await run.restart_context(keep_persistent_cookies=True)
    await run.navigate(run.config.dashboard_path, "reopen the dashboard after a browser restart")
    await _expect_url(run, "login", "redirected to the login page")
    await run.check("login form is shown", lambda: run.login_page.expect_visible("login_button"))


@scenario("TC011: Session invalidation after logout", tags=("session",))
async def logout_invalidates_session(run: ScenarioRunner) -> None:
    await _login_to_dashboard(run, run.config.credentials.valid_username)
    await run.act("log out", run.dashboard_page.logout)
    await _expect_url(run, "login", "redirected to the login page")

    await run.act("press the back button", run.page.go_back)
    await _expect_url(run, "login", "back button does not reopen the dashboard")
    await run.check("login form is shown", lambda: run.login_page.expect_visible("login_button"))

    await run.navigate(run.config.dashboard_path, "open the dashboard directly")
    await _expect_url(run, "login", "protected page redirects to login")


@scenario("TC012: Loading indicator appears and login button disabled during login processing", tags=("scripted",))
async def loading_state_during_login(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    login = run.login_page
    delay_ms = 1000
    run.intercept(_login_api(run), ResponseScript.delayed_success(delay_ms, {"success": True, "user": creds.valid_username}))

    await run.navigate(run.config.login_path)
    await run.act("enter username", lambda: login.enter_username(creds.valid_username))
    await run.act("enter password", lambda: login.enter_password(creds.valid_password))
    await run.act("press login", login.click_login)

    # Both checks must land inside the scripted delay.
    window_ms = delay_ms // 2
    await run.check(
        "login button is disabled while the request is pending",
        lambda: expect(login.primary("login_button")).to_be_disabled(timeout=window_ms),
    )
    await run.check(
        "loading indicator is visible while the request is pending",
        lambda: expect(login.primary("loading_indicator")).to_be_visible(timeout=window_ms),
    )

    async def _control_released() -> None:
        for _ in range(int((delay_ms + run.config.action_timeout_ms) / 100)):
            if await login.login_control_released():
                return
            await run.page.wait_for_timeout(100)
        raise AssertionFailure("login control is released after the response", expected="enabled or navigated", actual=run.page.url)

    await run.check("login control is released once the response arrives", _control_released)


# ---- TC013: responsive layout -------------------------------------------------------

async def _layout_is_usable(run: ScenarioRunner) -> None:
    login = run.login_page
    await run.navigate(run.config.login_path)
    for name in ("username", "password", "login_button"):
        await run.check(f"{name} is visible", lambda name=name: login.expect_visible(name))

    async def _no_overlap() -> None:
        username, password, button = await login.field_boxes(["username", "password", "login_button"])
        for upper, lower, label in ((username, password, "username/password"), (password, button, "password/login button")):
            separated = upper["y"] + upper["height"] <= lower["y"] or lower["y"] + lower["height"] <= upper["y"]
            if not separated:
                raise AssertionFailure(f"{label} do not overlap", expected="disjoint rows", actual=(upper, lower))

    await run.check(f"form controls do not overlap at {run.viewport.width}x{run.viewport.height}", _no_overlap)


@scenario("TC013a: Responsive layout on desktop", viewport="desktop", tags=("responsive",))
async def responsive_desktop(run: ScenarioRunner) -> None:
    await _layout_is_usable(run)


@scenario("TC013b: Responsive layout on tablet", viewport="tablet", tags=("responsive",))
async def responsive_tablet(run: ScenarioRunner) -> None:
    await _layout_is_usable(run)


@scenario("TC013c: Responsive layout on mobile", viewport="mobile", tags=("responsive",))
async def responsive_mobile(run: ScenarioRunner) -> None:
    await _layout_is_usable(run)


# ---- TC014 - TC015: accessibility ---------------------------------------------------

@scenario("TC014: Tab keyboard navigation through all interactive elements on login page", tags=("a11y",))
async def tab_navigation(run: ScenarioRunner) -> None:
    login = run.login_page
    visited: List[str] = []
    await run.navigate(run.config.login_path)
    for name in TAB_ORDER:
        await run.act("press Tab", lambda: run.page.keyboard.press("Tab"))
        await run.check(f"{name} has focus", lambda name=name: login.expect_focused(name))
        visited.append(await run.act("read focused element", login.focused_identity))

    async def _each_once() -> None:
        if len(set(visited)) != len(visited):
            raise AssertionFailure("no element is focused twice", expected=len(visited), actual=visited)

    await run.check("every control was visited exactly once", _each_once)


@scenario("TC015: Screen reader announces labels and error messages correctly", tags=("a11y",))
async def screen_reader_labels(run: ScenarioRunner) -> None:
    login = run.login_page
    await run.navigate(run.config.login_path)
    await run.check("username has an accessible label", lambda: login.expect_attribute("username", "aria-label", _ci(r"username|email")))
    await run.check("password has an accessible label", lambda: login.expect_attribute("password", "aria-label", _ci(r"password")))
    await run.check("remember me has an accessible label", lambda: login.expect_attribute("remember_me", "aria-label", _ci(r"remember me")))

    await run.act("submit the empty form", login.click_login)
    await run.wait_visible("username error appears", login, "username_error")
    await run.wait_visible("password error appears", login, "password_error")
    await run.check("username error is an alert", lambda: login.expect_attribute("username_error", "role", "alert"))
    await run.check("password error is an alert", lambda: login.expect_attribute("password_error", "role", "alert"))
    await run.check("username input is described by its error", lambda: login.expect_described_by("username", "username_error"))
    await run.check("password input is described by its error", lambda: login.expect_described_by("password", "password_error"))
    await run.check("live region announces the problem", lambda: login.expect_text("live_region", _ci(r"required|error")))


# ---- TC016 - TC018: hostile and boundary input --------------------------------------

@scenario("TC016: Login attempt with special characters and SQL injection attempts", tags=("negative", "security"))
async def sql_injection(run: ScenarioRunner) -> None:
    payload = run.config.credentials.sql_injection
    await run.navigate(run.config.login_path)
    await run.act("submit injection payload", lambda: run.login_page.submit(payload, payload))
    await _expect_banner(run, "injection_rejected", "payload is rejected like any bad credential")
    await _expect_url(run, "login", "still on the login page")


@scenario("TC017: Login with maximum length input values", tags=("boundary",))
async def maximum_length_input(run: ScenarioRunner) -> None:
    login = run.login_page
    await run.navigate(run.config.login_path)
    await run.act(
        "submit maximum length credentials",
        lambda: login.submit(run.config.max_length_username, run.config.max_length_password),
    )
    await run.check(
        "no length validation error for the username",
        lambda: expect(login.primary("username_error")).to_be_hidden(timeout=run.config.action_timeout_ms),
        optional=True,
    )
    await run.check("dashboard is loaded", run.dashboard_page.expect_loaded)


@scenario("TC018: Login attempt with inputs exceeding maximum allowed lengths", tags=("boundary", "validation"))
async def over_length_input(run: ScenarioRunner) -> None:
    login = run.login_page
    pattern = run.config.messages.regex("max_length")
    await run.navigate(run.config.login_path)
    await run.act(
        "submit over-long credentials",
        lambda: login.submit(run.config.over_length_username, run.config.over_length_password),
    )
    await run.wait_visible("username error appears", login, "username_error")
    await run.check("username error mentions the length limit", lambda: login.expect_text("username_error", pattern))
    await run.wait_visible("password error appears", login, "password_error")
    await run.check("password error mentions the length limit", lambda: login.expect_text("password_error", pattern))
    await _expect_url(run, "login", "still on the login page")


# ---- TC019: navigation links ----------------------------------------------------------

@scenario("TC019: Verify that forgot password and sign up navigation links work correctly")
async def navigation_links(run: ScenarioRunner) -> None:
    login = run.login_page
    messages = run.config.messages
    await run.navigate(run.config.login_path)

    await run.act("follow the forgot password link", login.navigate_to_forgot_password)
    await run.check("forgot password URL", lambda: expect(run.page).to_have_url(_ci(r"forgot|reset")))
    await run.check("forgot password title", lambda: expect(run.page).to_have_title(messages.regex("forgot_password_title")))

    await run.act("press the back button", run.page.go_back)
    await _expect_url(run, "login", "back on the login page")

    await run.act("follow the sign up link", login.navigate_to_signup)
    await run.check("sign up URL", lambda: expect(run.page).to_have_url(_ci(r"signup|register|create-account")))
    await run.check("sign up title", lambda: expect(run.page).to_have_title(messages.regex("signup_title")))


# ---- TC020: failures between browser and server ----------------------------------------

@scenario("TC020a: Handling of network failure during login attempt", tags=("scripted", "resilience"))
async def network_failure(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    run.intercept(_login_api(run), ResponseScript.network_failure())
    await run.navigate(run.config.login_path)
    await run.act("submit valid credentials", lambda: run.login_page.submit(creds.valid_username, creds.valid_password))
    await _expect_banner(run, "login_failure", "banner reports the login could not be completed")
    await _expect_url(run, "login", "still on the login page")


@scenario("TC020b: Handling of server error during login attempt", tags=("scripted", "resilience"))
async def server_error(run: ScenarioRunner) -> None:
    creds = run.config.credentials
    run.intercept(_login_api(run), ResponseScript.server_error())
    await run.navigate(run.config.login_path)
    await run.act("submit valid credentials", lambda: run.login_page.submit(creds.valid_username, creds.valid_password))
    await _expect_banner(run, "server_error", "banner reports the server failure")
    await _expect_url(run, "login", "still on the login page")
