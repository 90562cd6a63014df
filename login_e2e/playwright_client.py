"""
Direct Playwright Client
========================

Owns the Playwright driver and one browser process, and hands out isolated
browser contexts. Every scenario gets its own context, so cookies, local
storage and route handlers never leak from one scenario into the next.

Usage:
    from login_e2e.playwright_client import PlaywrightClient

    async with PlaywrightClient(browser_type="chromium") as client:
        context = await client.new_context(config)
        page = await context.new_page()
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from login_e2e.config import SuiteConfig, ViewportProfile

logger = logging.getLogger(__name__)

BROWSER_TYPES = ("chromium", "firefox", "webkit")


class PlaywrightClient:
    """
    Launches Playwright in-process and creates scenario contexts.

    Example:
        async with PlaywrightClient(headless=True) as client:
            context = await client.new_context(config, viewport=config.viewport("mobile"))
    """

    def __init__(self, browser_type: str = "chromium", headless: bool = True) -> None:
        """
        Initialize Playwright client.

        Args:
            browser_type: Browser to use (chromium, firefox, webkit)
            headless: Run in headless mode
        """
        if browser_type not in BROWSER_TYPES:
            raise ValueError(f"Unsupported browser type {browser_type!r}; expected one of {BROWSER_TYPES}")
        self.browser_type = browser_type
        self.headless = headless

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @classmethod
    def from_config(cls, config: SuiteConfig) -> "PlaywrightClient":
        return cls(browser_type=config.browser_type, headless=config.headless)

    async def __aenter__(self) -> "PlaywrightClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Start the driver and launch the browser."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type)
        self._browser = await launcher.launch(headless=self.headless)
        logger.debug(f"Launched {self.browser_type} (headless={self.headless})")

    async def new_context(
        self,
        config: SuiteConfig,
        viewport: Optional[ViewportProfile] = None,
        storage_state: Optional[Dict[str, Any]] = None,
    ) -> BrowserContext:
        """
        Create a fresh, isolated browser context for one scenario.

        Args:
            config: Suite configuration (base URL and timeouts)
            viewport: Viewport profile (defaults to the config's default profile)
            storage_state: Cookies/local storage to seed the context with

        Returns:
            BrowserContext with default timeouts applied
        """
        profile = viewport or config.viewport()
        options: Dict[str, Any] = {
            "base_url": config.base_url,
            "viewport": profile.as_playwright(),
        }
        if storage_state is not None:
            options["storage_state"] = storage_state
        context = await self.browser.new_context(**options)
        context.set_default_timeout(config.action_timeout_ms)
        context.set_default_navigation_timeout(config.navigation_timeout_ms)
        return context

    async def close(self) -> None:
        """Close the browser and stop the driver."""
        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def browser(self) -> Browser:
        """Get the browser instance."""
        if not self._browser:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")
        return self._browser
