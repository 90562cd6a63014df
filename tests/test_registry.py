"""Unit tests for the interception registry, driven by fake routes."""
from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

from login_e2e.errors import InvariantViolation
from login_e2e.matcher import RequestMatcher
from login_e2e.registry import CATCH_ALL, PASS_THROUGH, InterceptionRegistry
from login_e2e.script import Fulfill, ResponseScript


def _request(url="http://h/api/login", method="POST"):
    return SimpleNamespace(url=url, method=method)


class FakeRoute:
    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    async def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    async def fulfill(self, **kwargs):
        await self._record("fulfill", **kwargs)

    async def abort(self, reason=None):
        await self._record("abort", reason)

    async def fallback(self):
        await self._record("fallback")


class FakeContext:
    def __init__(self):
        self.routes = []
        self.unrouted = []

    async def route(self, pattern, handler):
        self.routes.append((pattern, handler))

    async def unroute(self, pattern, handler):
        self.unrouted.append((pattern, handler))


def test_unmatched_request_passes_through():
    registry = InterceptionRegistry()
    registry.register(RequestMatcher("/api/login", "POST"), ResponseScript.constant(Fulfill(status=401)))

    assert registry.resolve(_request(method="GET")) is None
    assert registry.resolve(_request(url="http://h/static/app.js")) is None
    assert registry.resolve(_request()).status == 401


def test_first_registered_match_wins():
    registry = InterceptionRegistry()
    registry.register(RequestMatcher("/api/"), ResponseScript.constant(Fulfill(status=418)))
    registry.register(RequestMatcher("/api/login"), ResponseScript.constant(Fulfill(status=401)))

    assert registry.resolve(_request()).status == 418


def test_exhausted_script_yields_to_later_entries_then_passes_through():
    registry = InterceptionRegistry()
    registry.register(RequestMatcher("/api/login"), ResponseScript.once(Fulfill(status=500)))
    assert registry.resolve(_request()).status == 500
    assert registry.resolve(_request()) is None

    registry.register(RequestMatcher("/api/login"), ResponseScript.constant(Fulfill(status=200)))
    assert registry.resolve(_request()).status == 200


@pytest.mark.asyncio
async def test_install_routes_everything_once():
    registry = InterceptionRegistry()
    context = FakeContext()
    await registry.install(context)

    assert registry.installed
    assert [pattern for pattern, _ in context.routes] == [CATCH_ALL]
    with pytest.raises(InvariantViolation):
        await registry.install(FakeContext())


@pytest.mark.asyncio
async def test_handler_applies_each_step_kind():
    registry = InterceptionRegistry()
    registry.register(RequestMatcher("/api/login", "POST"), ResponseScript([Fulfill.json(401, {"message": "no"})]))
    registry.register(RequestMatcher("/api/flaky"), ResponseScript.network_failure())
    registry.register(RequestMatcher("/api/slow"), ResponseScript.hang())

    fulfilled, aborted, held, untouched = FakeRoute(), FakeRoute(), FakeRoute(), FakeRoute()
    await registry._handle(fulfilled, _request())
    await registry._handle(aborted, _request(url="http://h/api/flaky"))
    await registry._handle(held, _request(url="http://h/api/slow"))
    await registry._handle(untouched, _request(url="http://h/login", method="GET"))

    name, _, kwargs = fulfilled.calls[0]
    assert name == "fulfill"
    assert kwargs["status"] == 401
    assert kwargs["body"] == '{"message": "no"}'
    assert aborted.calls == [("abort", ("failed",), {})]
    assert held.calls == []
    assert registry.held_requests == 1
    assert untouched.calls == [("fallback", (), {})]
    assert [entry.outcome for entry in registry.observed] == ["fulfill", "abort", "hang", PASS_THROUGH]


@pytest.mark.asyncio
async def test_teardown_is_idempotent_and_releases_held_requests():
    registry = InterceptionRegistry()
    context = FakeContext()
    registry.register(RequestMatcher("/api/slow"), ResponseScript.hang())
    await registry.install(context)
    held = FakeRoute()
    await registry._handle(held, _request(url="http://h/api/slow"))

    await registry.teardown()
    await registry.teardown()

    assert len(registry) == 0
    assert not registry.installed
    assert len(context.unrouted) == 1
    assert held.calls == [("abort", ("aborted",), {})]
    assert registry.resolve(_request(url="http://h/api/slow")) is None


@pytest.mark.asyncio
async def test_driver_errors_propagate_until_torn_down():
    registry = InterceptionRegistry()
    registry.register(RequestMatcher("/api/login"), ResponseScript.constant(Fulfill()))

    with pytest.raises(PlaywrightError):
        await registry._handle(FakeRoute(fail_with=PlaywrightError("boom")), _request())

    await registry.teardown()
    # after teardown the request falls back; a closed context is not an error
    await registry._handle(FakeRoute(fail_with=PlaywrightError("Target closed")), _request())


@pytest.mark.asyncio
async def test_registering_after_teardown_does_not_rearm_driver_errors():
    registry = InterceptionRegistry()
    await registry.install(FakeContext())
    await registry.teardown()

    registry.register(RequestMatcher("/api/login"), ResponseScript.constant(Fulfill()))
    # the context is gone; a late request must still be dropped quietly
    await registry._handle(FakeRoute(fail_with=PlaywrightError("Target closed")), _request())

    await registry.install(FakeContext())
    with pytest.raises(PlaywrightError):
        await registry._handle(FakeRoute(fail_with=PlaywrightError("boom")), _request())
