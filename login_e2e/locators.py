"""Locators that name several candidate selectors in priority order.

Login pages in the wild expose the same control under different hooks (an id
on one build, a ``name`` attribute or visible text on another). Rather than
joining selectors with commas and letting the browser pick whichever matches,
each control lists its candidates explicitly; resolution walks the list front
to back and the first selector present in the DOM wins.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import anyio
from playwright.async_api import Locator, Page

from login_e2e.errors import TimeoutExceeded


@dataclass(frozen=True)
class LocatorCandidates:
    name: str
    candidates: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError(f"Locator {self.name!r} needs at least one candidate selector")

    def primary(self, page: Page) -> Locator:
        """Locator for the highest-priority candidate, present or not."""
        return page.locator(self.candidates[0])

    async def present(self, page: Page) -> Optional[str]:
        """Return the first candidate selector currently in the DOM, if any."""
        for selector in self.candidates:
            if await page.locator(selector).count() > 0:
                return selector
        return None

    async def resolve_selector(self, page: Page, timeout: float = 5.0, interval: float = 0.1) -> str:
        """Poll until one candidate is present and return its selector."""
        deadline = anyio.current_time() + timeout
        while True:
            selector = await self.present(page)
            if selector is not None:
                return selector
            if anyio.current_time() >= deadline:
                raise TimeoutExceeded(f"locating {self.name} via {list(self.candidates)}", timeout)
            await anyio.sleep(interval)

    async def resolve(self, page: Page, timeout: float = 5.0, interval: float = 0.1) -> Locator:
        selector = await self.resolve_selector(page, timeout, interval)
        return page.locator(selector).first


def candidates(name: str, *selectors: str) -> LocatorCandidates:
    return LocatorCandidates(name, tuple(selectors))
