"""Per-context table of scripted routes.

The registry is installed into exactly one Playwright ``BrowserContext`` with a
single catch-all route handler. Every request the context makes is offered to
the registered (matcher, script) entries in insertion order; the first
matching entry whose script still has a step decides the answer. Requests no
entry claims are handed back to Playwright untouched via ``route.fallback()``,
so anything not explicitly scripted reaches the real network.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import anyio
from playwright.async_api import BrowserContext, Error as PlaywrightError, Request, Route

from login_e2e.errors import InvariantViolation
from login_e2e.matcher import RequestMatcher
from login_e2e.script import Abort, Fulfill, Hang, ResponseScript, ResponseStep

logger = logging.getLogger(__name__)

CATCH_ALL = "**/*"
PASS_THROUGH = "passthrough"


@dataclass(frozen=True)
class ObservedRequest:
    """One request the installed handler saw, and what it did with it."""

    method: str
    url: str
    outcome: str
    script: str = ""


class InterceptionRegistry:
    """Ordered (matcher -> script) entries scoped to one browser context."""

    def __init__(self) -> None:
        self._entries: List[Tuple[RequestMatcher, ResponseScript]] = []
        self._context: Optional[BrowserContext] = None
        self._handler = self._handle
        self._held: List[Route] = []
        self._torn_down = False
        self.observed: List[ObservedRequest] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def installed(self) -> bool:
        return self._context is not None

    @property
    def held_requests(self) -> int:
        return len(self._held)

    def register(self, matcher: RequestMatcher, script: ResponseScript) -> ResponseScript:
        """Append an entry. Earlier entries take priority over later ones."""
        self._entries.append((matcher, script))
        logger.debug(f"Registered {matcher.describe()} -> {script!r}")
        return script

    def resolve(self, request: Any) -> Optional[ResponseStep]:
        """Return the scripted step for ``request``, or None to let it through."""
        step, _ = self._resolve(request)
        return step

    def _resolve(self, request: Any) -> Tuple[Optional[ResponseStep], Optional[ResponseScript]]:
        for matcher, script in self._entries:
            if not matcher.matches(request) or script.exhausted:
                continue
            step = script.next()
            if step is not None:
                return step, script
        return None, None

    # ---- browser wiring ---------------------------------------------------------
    async def install(self, context: BrowserContext) -> None:
        """Attach the catch-all handler. Must run before the first navigation."""
        if self._context is not None:
            raise InvariantViolation("Interception registry is already installed into a context")
        await context.route(CATCH_ALL, self._handler)
        self._context = context
        self._torn_down = False

    async def _handle(self, route: Route, request: Request) -> None:
        step, script = self._resolve(request)
        outcome = step.kind if step is not None else PASS_THROUGH
        self.observed.append(ObservedRequest(request.method, request.url, outcome, script.name if script else ""))

        try:
            if step is None:
                await route.fallback()
            elif isinstance(step, Fulfill):
                if step.delay_ms:
                    await anyio.sleep(step.delay_ms / 1000)
                await route.fulfill(
                    status=step.status,
                    headers=step.headers or None,
                    body=step.body,
                    content_type=step.content_type,
                )
            elif isinstance(step, Abort):
                await route.abort(step.reason)
            elif isinstance(step, Hang):
                self._held.append(route)
        except PlaywrightError as exc:
            if not self._torn_down:
                raise
            # context closed while the response was pending
            logger.debug(f"Dropped {request.method} {request.url} after teardown: {exc}")

    async def teardown(self) -> None:
        """Forget every entry and detach from the context. Safe to call twice."""
        self._torn_down = True
        self._entries.clear()

        context, self._context = self._context, None
        if context is not None:
            try:
                await context.unroute(CATCH_ALL, self._handler)
            except PlaywrightError as exc:
                logger.warning(f"Error removing interception handler: {exc}")

        held, self._held = self._held, []
        for route in held:
            try:
                await route.abort("aborted")
            except PlaywrightError as exc:
                logger.debug(f"Held request already gone: {exc}")
