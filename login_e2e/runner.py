"""Single-shot execution of one login scenario.

A ``ScenarioRunner`` owns one browser context and one page for the lifetime
of one scenario. It moves through ``Idle -> Navigating -> Acting -> Asserting``
(the active phases may interleave: a lockout scenario acts again after each
check) and ends in ``Passed`` or ``Failed``. Once finished it cannot be reused.

Every step runs under a deadline. Failures are classified as they cross the
runner boundary:

- Playwright ``expect`` failures and bare ``assert`` -> ``AssertionFailure``
- deadline or Playwright timeouts -> ``TimeoutExceeded``
- any other Playwright error -> ``DriverError``

The first failing required check ends the scenario; nothing is retried.
"""
from __future__ import annotations

import enum
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import anyio
from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Response,
    TimeoutError as PlaywrightTimeout,
)

from login_e2e.config import SuiteConfig
from login_e2e.errors import (
    AssertionFailure,
    DriverError,
    HarnessError,
    InvariantViolation,
    TimeoutExceeded,
)
from login_e2e.matcher import RequestMatcher
from login_e2e.pages import BasePage, DashboardPage, LoginPage
from login_e2e.registry import InterceptionRegistry
from login_e2e.script import ResponseScript

if TYPE_CHECKING:
    from login_e2e.playwright_client import PlaywrightClient
    from login_e2e.scenarios import Scenario

logger = logging.getLogger(__name__)

Step = Union[Callable[[], Any], Awaitable[Any]]


class ScenarioState(str, enum.Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    ACTING = "acting"
    ASSERTING = "asserting"
    PASSED = "passed"
    FAILED = "failed"


ACTIVE_STATES = frozenset({ScenarioState.NAVIGATING, ScenarioState.ACTING, ScenarioState.ASSERTING})
TERMINAL_STATES = frozenset({ScenarioState.PASSED, ScenarioState.FAILED})


@dataclass(frozen=True)
class AssertionRecord:
    description: str
    passed: bool
    optional: bool = False
    detail: str = ""
    elapsed_s: float = 0.0


@dataclass
class ScenarioResult:
    name: str
    state: ScenarioState
    failure_kind: Optional[str] = None
    failure: Optional[str] = None
    log: List[AssertionRecord] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return self.state is ScenarioState.PASSED

    def summary(self) -> str:
        if self.passed:
            return f"PASS {self.name} ({self.duration_s:.1f}s)"
        return f"FAIL {self.name} [{self.failure_kind}] {self.failure}"

    def report(self) -> str:
        lines = [self.summary()]
        for record in self.log:
            mark = "ok " if record.passed else ("opt" if record.optional else "ERR")
            line = f"  {mark} {record.description}"
            if record.detail:
                line += f" -- {record.detail}"
            lines.append(line)
        return "\n".join(lines)


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0] if text.strip() else ""


class ScenarioRunner:
    """Drives one page through actions and checks for a single scenario."""

    def __init__(
        self,
        name: str,
        client: "PlaywrightClient",
        config: SuiteConfig,
        viewport: Optional[str] = None,
    ) -> None:
        self.name = name
        self.config = config
        try:
            self.viewport = config.viewport(viewport)
        except KeyError as exc:
            raise InvariantViolation(f"Scenario {name!r} asks for {exc.args[0]}") from None
        self.state = ScenarioState.IDLE
        self.log: List[AssertionRecord] = []
        self.interceptions = InterceptionRegistry()
        self._client = client
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self.login_page: Optional[LoginPage] = None
        self.dashboard_page: Optional[DashboardPage] = None

    async def __aenter__(self) -> "ScenarioRunner":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ---- resources --------------------------------------------------------------
    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise InvariantViolation(f"Scenario {self.name!r} has no open browser context")
        return self._context

    @property
    def page(self) -> Page:
        if self._page is None:
            raise InvariantViolation(f"Scenario {self.name!r} has no open page")
        return self._page

    async def open(self, storage_state: Optional[Dict[str, Any]] = None) -> None:
        """Create the scenario's context, install interception and open a page."""
        if self._context is not None:
            raise InvariantViolation(f"Scenario {self.name!r} already has an open context")
        try:
            self._context = await self._client.new_context(self.config, viewport=self.viewport, storage_state=storage_state)
            await self.interceptions.install(self._context)
            self._page = await self._context.new_page()
        except PlaywrightError as exc:
            await self.close()
            raise DriverError(name="open_context", payload={"scenario": self.name}, message=str(exc)) from exc
        self.login_page = LoginPage(self._page, self.config)
        self.dashboard_page = DashboardPage(self._page, self.config)
        logger.debug(f"{self.name}: context open (viewport={self.viewport.name})")

    async def close(self) -> None:
        """Tear down interception and close the context. Safe to call twice."""
        await self.interceptions.teardown()
        context, self._context = self._context, None
        self._page = None
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning(f"Error closing context for {self.name}: {exc}")

    async def restart_context(self, keep_persistent_cookies: bool = True) -> None:
        """Simulate closing and reopening the browser.

        Session cookies are dropped; cookies with an expiry (and local storage)
        survive when ``keep_persistent_cookies`` is set. Scripted routes do not
        survive: the new context starts with an empty registry.
        """
        self._enter(ScenarioState.NAVIGATING)
        storage_state = None
        if keep_persistent_cookies:
            snapshot = await self._run_step("snapshot storage state", self.context.storage_state, self._action_budget)
            storage_state = {
                "cookies": [cookie for cookie in snapshot.get("cookies", []) if cookie.get("expires", -1) > 0],
                "origins": snapshot.get("origins", []),
            }
        await self.close()
        self.interceptions = InterceptionRegistry()
        await self.open(storage_state=storage_state)

    # ---- state machine ----------------------------------------------------------
    def _enter(self, state: ScenarioState) -> None:
        if self.state in TERMINAL_STATES:
            raise InvariantViolation(f"Scenario {self.name!r} already finished ({self.state.value})")
        if state not in ACTIVE_STATES:
            raise InvariantViolation(f"Cannot enter {state.value} from a scenario step")
        if self.state is not state:
            logger.debug(f"{self.name}: {self.state.value} -> {state.value}")
            self.state = state

    @property
    def _action_budget(self) -> float:
        # Playwright expect() owns the action timeout; the outer deadline only
        # catches steps that stop making progress altogether.
        return self.config.action_timeout_s * 2 + 1

    @property
    def _navigation_budget(self) -> float:
        return self.config.navigation_timeout_ms / 1000 + 1

    async def _run_step(self, description: str, step: Step, timeout_s: float) -> Any:
        try:
            with anyio.fail_after(timeout_s):
                result = step() if callable(step) else step
                if inspect.isawaitable(result):
                    result = await result
                return result
        except HarnessError:
            raise
        except TimeoutError as exc:
            raise TimeoutExceeded(description, timeout_s) from exc
        except PlaywrightTimeout as exc:
            raise TimeoutExceeded(description, timeout_s) from exc
        except AssertionError as exc:
            raise AssertionFailure(description, actual=_first_line(str(exc))) from exc
        except PlaywrightError as exc:
            url = self._page.url if self._page is not None else None
            raise DriverError(name=description, payload={"scenario": self.name, "url": url}, message=_first_line(str(exc))) from exc

    def _record(self, description: str, passed: bool, optional: bool, detail: str, started: float) -> None:
        self.log.append(AssertionRecord(description, passed, optional, detail, time.monotonic() - started))

    # ---- scenario vocabulary ----------------------------------------------------
    def intercept(self, matcher: Union[RequestMatcher, str], script: ResponseScript, method: Optional[str] = None) -> ResponseScript:
        """Script the answers for requests ``matcher`` claims in this scenario's context."""
        if self.state in TERMINAL_STATES:
            raise InvariantViolation(f"Scenario {self.name!r} already finished ({self.state.value})")
        if not isinstance(matcher, RequestMatcher):
            matcher = RequestMatcher(matcher, method)
        return self.interceptions.register(matcher, script)

    async def navigate(self, path: str, description: Optional[str] = None) -> None:
        self._enter(ScenarioState.NAVIGATING)
        url = self.config.url(path)
        await self._run_step(
            description or f"navigate to {path}",
            lambda: self.page.goto(url, timeout=self.config.navigation_timeout_ms),
            self._navigation_budget,
        )

    async def act(self, description: str, action: Step) -> Any:
        self._enter(ScenarioState.ACTING)
        return await self._run_step(description, action, self._action_budget)

    async def act_and_wait_response(self, description: str, action: Callable[[], Awaitable[Any]], matcher: RequestMatcher) -> Response:
        """Run ``action`` and wait for the response to the request ``matcher`` claims."""
        self._enter(ScenarioState.ACTING)

        async def _act() -> Response:
            predicate = lambda response: matcher.matches(response.request)
            async with self.page.expect_response(predicate, timeout=self.config.action_timeout_ms) as info:
                await action()
            return await info.value

        return await self._run_step(description, _act, self._action_budget)

    async def check(self, description: str, assertion: Step, optional: bool = False) -> bool:
        """Evaluate one assertion. Required failures end the scenario."""
        self._enter(ScenarioState.ASSERTING)
        started = time.monotonic()
        try:
            await self._run_step(description, assertion, self._action_budget)
        except (AssertionFailure, TimeoutExceeded) as exc:
            self._record(description, False, optional, str(exc), started)
            if optional:
                logger.info(f"{self.name}: optional check failed: {exc}")
                return False
            raise
        self._record(description, True, optional, "", started)
        return True

    async def wait_visible(self, description: str, page_object: BasePage, name: str, timeout_ms: Optional[int] = None) -> bool:
        """Wait for a named control to become visible, bounded by ``timeout_ms``."""
        timeout_ms = timeout_ms or self.config.action_timeout_ms
        timeout_s = timeout_ms / 1000

        async def _wait() -> None:
            deadline = anyio.current_time() + timeout_s
            locator = await page_object.candidates(name).resolve(self.page, timeout=timeout_s)
            remaining_ms = max(1.0, (deadline - anyio.current_time()) * 1000)
            try:
                await locator.wait_for(state="visible", timeout=remaining_ms)
            except PlaywrightTimeout as exc:
                raise TimeoutExceeded(description, timeout_s) from exc

        return await self.check(description, _wait)

    async def cookie_names(self) -> List[str]:
        cookies = await self._run_step("read cookies", self.context.cookies, self._action_budget)
        return [cookie["name"] for cookie in cookies]

    # ---- execution --------------------------------------------------------------
    async def execute(self, scenario: "Scenario") -> ScenarioResult:
        """Run ``scenario`` once and report how it ended."""
        if self.state is not ScenarioState.IDLE:
            raise InvariantViolation(f"Scenario runner for {self.name!r} has already been used")
        started = time.monotonic()
        failure: Optional[HarnessError] = None
        try:
            with anyio.fail_after(self.config.scenario_timeout_s):
                await scenario.body(self)
        except HarnessError as exc:
            failure = exc
        except TimeoutError:
            failure = TimeoutExceeded(f"scenario {self.name}", self.config.scenario_timeout_s)
        except PlaywrightTimeout as exc:
            failure = TimeoutExceeded(_first_line(str(exc)) or f"scenario {self.name}", self.config.action_timeout_s)
        except AssertionError as exc:
            failure = AssertionFailure(_first_line(str(exc)) or "assertion failed")
        except PlaywrightError as exc:
            failure = DriverError(name=self.name, payload={"scenario": self.name}, message=_first_line(str(exc)))
        except BaseException:
            self.state = ScenarioState.FAILED
            raise

        self.state = ScenarioState.FAILED if failure else ScenarioState.PASSED
        result = ScenarioResult(
            name=self.name,
            state=self.state,
            failure_kind=failure.kind if failure else None,
            failure=str(failure) if failure else None,
            log=list(self.log),
            duration_s=time.monotonic() - started,
        )
        if failure:
            logger.warning(result.summary())
        else:
            logger.info(result.summary())
        return result


async def run_scenario(client: "PlaywrightClient", config: SuiteConfig, scenario: "Scenario") -> ScenarioResult:
    """Run one scenario in a fresh context and always close that context."""
    try:
        runner = ScenarioRunner(scenario.name, client, config, viewport=scenario.viewport)
        await runner.open()
    except (DriverError, InvariantViolation) as exc:
        logger.error(f"Could not start {scenario.name}: {exc}")
        return ScenarioResult(scenario.name, ScenarioState.FAILED, exc.kind, str(exc))
    try:
        return await runner.execute(scenario)
    finally:
        await runner.close()


async def run_scenarios(
    client: "PlaywrightClient",
    config: SuiteConfig,
    scenarios: Iterable["Scenario"],
    before_each: Optional[Callable[[], None]] = None,
    on_result: Optional[Callable[[ScenarioResult], None]] = None,
) -> List[ScenarioResult]:
    """Run scenarios back to back; one failing never stops the others.

    Args:
        before_each: Called before every scenario (e.g. to reset a mock app)
        on_result: Called with each result as soon as it is known
    """
    results: List[ScenarioResult] = []
    for scenario in scenarios:
        if before_each is not None:
            before_each()
        result = await run_scenario(client, config, scenario)
        if on_result is not None:
            on_result(result)
        results.append(result)
    return results
