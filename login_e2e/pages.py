"""Page objects for the login flow.

Each page lists its controls as ``LocatorCandidates`` (highest priority
first) and offers thin async helpers over them. Assertions that need to wait
use Playwright's ``expect`` with the suite's action timeout.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Pattern, Union

from playwright.async_api import Locator, Page, expect

from login_e2e.config import SuiteConfig
from login_e2e.errors import AssertionFailure, InvariantViolation
from login_e2e.locators import LocatorCandidates, candidates

TextPattern = Union[str, Pattern[str]]

LOGIN_LOCATORS: Dict[str, LocatorCandidates] = {
    entry.name: entry
    for entry in (
        candidates("username", "#username", 'input[name="username"]', 'input[name="email"]'),
        candidates("password", "#password", 'input[name="password"]'),
        candidates(
            "login_button",
            "#loginButton",
            'button[type="submit"]',
            'role=button[name="Login"]',
            'button:has-text("Login")',
        ),
        candidates(
            "remember_me",
            "#rememberMe",
            'input[type="checkbox"][name="remember"]',
            'input[type="checkbox"][id*="remember"]',
        ),
        candidates(
            "password_toggle",
            "#passwordToggle",
            '[aria-label="Show password"]',
            '[aria-label="Toggle password visibility"]',
            ".password-toggle",
        ),
        candidates(
            "forgot_password_link",
            'role=link[name="Forgot Password"]',
            'a[href*="forgot"]',
            'a:has-text("Forgot Password")',
        ),
        candidates(
            "signup_link",
            'role=link[name="Sign Up"]',
            'a[href*="signup"]',
            'a:has-text("Sign Up")',
            'a:has-text("Create Account")',
        ),
        candidates("username_error", "#username-error", ".username-error", ".error-username"),
        candidates("password_error", "#password-error", ".password-error", ".error-password"),
        candidates("generic_error", "#generic-error", ".error-message", ".validation-error"),
        candidates("loading_indicator", ".loading-spinner", ".spinner", '[aria-busy="true"]'),
        candidates("live_region", '[aria-live="assertive"]:visible', '[role="alert"]:visible'),
    )
}

DASHBOARD_LOCATORS: Dict[str, LocatorCandidates] = {
    entry.name: entry
    for entry in (
        candidates("welcome_message", "#welcomeMessage", ".welcome-message", "main h1"),
        candidates(
            "logout_button",
            'role=button[name="Logout"]',
            'button:has-text("Logout")',
            'a:has-text("Logout")',
        ),
    )
}

# Order in which Tab must move focus through the login form.
TAB_ORDER = (
    "username",
    "password",
    "remember_me",
    "login_button",
    "forgot_password_link",
    "signup_link",
)


class BasePage:
    """Shared plumbing: locator resolution and expectations."""

    LOCATORS: Dict[str, LocatorCandidates] = {}

    def __init__(self, page: Page, config: SuiteConfig) -> None:
        self.page = page
        self.config = config

    @property
    def timeout_ms(self) -> int:
        return self.config.action_timeout_ms

    def candidates(self, name: str) -> LocatorCandidates:
        try:
            return self.LOCATORS[name]
        except KeyError:
            raise InvariantViolation(f"{type(self).__name__} has no control named {name!r}") from None

    async def locator(self, name: str) -> Locator:
        return await self.candidates(name).resolve(self.page, timeout=self.config.action_timeout_s)

    def primary(self, name: str) -> Locator:
        return self.candidates(name).primary(self.page)

    async def expect_visible(self, name: str) -> Locator:
        locator = await self.locator(name)
        await expect(locator).to_be_visible(timeout=self.timeout_ms)
        return locator

    async def expect_text(self, name: str, pattern: TextPattern) -> None:
        locator = await self.expect_visible(name)
        await expect(locator).to_contain_text(pattern, timeout=self.timeout_ms)

    async def expect_attribute(self, name: str, attribute: str, value: TextPattern) -> None:
        await expect(await self.locator(name)).to_have_attribute(attribute, value, timeout=self.timeout_ms)

    async def expect_value(self, name: str, value: TextPattern) -> None:
        await expect(await self.locator(name)).to_have_value(value, timeout=self.timeout_ms)


class LoginPage(BasePage):
    LOCATORS = LOGIN_LOCATORS

    async def enter_username(self, username: str) -> None:
        await (await self.locator("username")).fill(username)

    async def enter_password(self, password: str) -> None:
        await (await self.locator("password")).fill(password)

    async def click_login(self) -> None:
        await (await self.locator("login_button")).click()

    async def set_remember_me(self, remember: bool) -> None:
        checkbox = await self.locator("remember_me")
        if remember:
            await checkbox.check()
        else:
            await checkbox.uncheck()

    async def submit(self, username: str, password: str, remember: Optional[bool] = None) -> None:
        """Fill the form on the current page and press the login button."""
        await self.enter_username(username)
        await self.enter_password(password)
        if remember is not None:
            await self.set_remember_me(remember)
        await self.click_login()

    async def toggle_password_visibility(self) -> None:
        await (await self.locator("password_toggle")).click()

    async def navigate_to_forgot_password(self) -> None:
        await (await self.locator("forgot_password_link")).click()

    async def navigate_to_signup(self) -> None:
        await (await self.locator("signup_link")).click()

    async def focused_identity(self) -> str:
        """Id (or markup when there is no id) of the element that has focus."""
        return await self.page.evaluate(
            "() => { const el = document.activeElement;"
            " return el ? (el.id || el.outerHTML) : ''; }"
        )

    async def expect_focused(self, name: str) -> None:
        await expect(await self.locator(name)).to_be_focused(timeout=self.timeout_ms)

    async def expect_described_by(self, field: str, error: str) -> None:
        """The input's ``aria-describedby`` must reference the error region's id."""
        error_id = await (await self.locator(error)).get_attribute("id")
        if not error_id:
            raise AssertionFailure(f"{error} region has an id", expected="an id", actual=error_id)
        described_by = (await (await self.locator(field)).get_attribute("aria-describedby")) or ""
        if error_id not in described_by.split():
            raise AssertionFailure(f"{field} is described by {error}", expected=error_id, actual=described_by)

    async def field_boxes(self, names: List[str]) -> List[dict]:
        boxes = []
        for name in names:
            box = await (await self.locator(name)).bounding_box()
            if box is None:
                raise AssertionFailure(f"{name} is laid out", expected="a bounding box", actual=None)
            boxes.append(box)
        return boxes

    async def login_control_released(self) -> bool:
        """True once the form is usable again or the browser has left the login page."""
        if self.config.url_regex("dashboard").search(self.page.url):
            return True
        button = self.primary("login_button")
        if await button.count() == 0:
            return not self.config.url_regex("login").search(self.page.url)
        return await button.is_enabled()


class DashboardPage(BasePage):
    LOCATORS = DASHBOARD_LOCATORS

    async def expect_loaded(self) -> None:
        await expect(self.page).to_have_url(self.config.url_regex("dashboard"), timeout=self.config.navigation_timeout_ms)
        await self.expect_visible("welcome_message")
        await self.expect_visible("logout_button")

    async def logout(self) -> None:
        await (await self.locator("logout_button")).click()
        await expect(self.page).to_have_url(self.config.url_regex("login"), timeout=self.config.navigation_timeout_ms)
