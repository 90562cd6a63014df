"""Interception harness behaviour observed through a real browser."""
from dataclasses import replace

import pytest
from playwright.async_api import expect

from login_e2e.matcher import RequestMatcher
from login_e2e.registry import PASS_THROUGH
from login_e2e.runner import run_scenario
from login_e2e.scenarios import Scenario
from login_e2e.script import ResponseScript


def _login_api(config):
    return RequestMatcher(config.login_api_pattern, "POST")


async def _submit_wrong_password(run):
    creds = run.config.credentials
    await run.navigate(run.config.login_path)
    await run.act_and_wait_response(
        "submit wrong password",
        lambda: run.login_page.submit(creds.valid_username, creds.incorrect_password),
        _login_api(run.config),
    )


@pytest.mark.asyncio
async def test_scripts_do_not_leak_between_scenarios(playwright_client, target_config):
    observed = {}

    async def scripted(run):
        run.intercept(_login_api(run.config), ResponseScript.lockout(1))
        await _submit_wrong_password(run)
        await _submit_wrong_password(run)
        await run.wait_visible("banner", run.login_page, "generic_error")
        await run.check("locked", lambda: run.login_page.expect_text("generic_error", run.config.messages.regex("lockout")))

    async def unscripted(run):
        await _submit_wrong_password(run)
        await run.wait_visible("banner", run.login_page, "generic_error")
        await run.check(
            "real server answers",
            lambda: run.login_page.expect_text("generic_error", run.config.messages.regex("invalid_credentials")),
        )
        observed["outcomes"] = {entry.outcome for entry in run.interceptions.observed}
        observed["cookies"] = await run.cookie_names()

    first = await run_scenario(playwright_client, target_config, Scenario("H001: scripted lockout", scripted))
    second = await run_scenario(playwright_client, target_config, Scenario("H002: plain failure", unscripted))

    assert first.passed, first.report()
    assert second.passed, second.report()
    assert observed["outcomes"] == {PASS_THROUGH}
    assert target_config.session_cookie not in observed["cookies"]


@pytest.mark.asyncio
async def test_aborted_login_shows_failure_banner(playwright_client, target_config):
    async def body(run):
        creds = run.config.credentials
        run.intercept(_login_api(run.config), ResponseScript.network_failure("connectionrefused"))
        await run.navigate(run.config.login_path)
        await run.act("submit", lambda: run.login_page.submit(creds.valid_username, creds.valid_password))
        await run.wait_visible("banner", run.login_page, "generic_error")
        await run.check(
            "network failure reported",
            lambda: run.login_page.expect_text("generic_error", run.config.messages.regex("login_failure")),
        )

    result = await run_scenario(playwright_client, target_config, Scenario("H003: aborted login", body))
    assert result.passed, result.report()


@pytest.mark.asyncio
async def test_hung_login_times_out(playwright_client, target_config):
    config = replace(target_config, action_timeout_ms=1500)

    async def body(run):
        creds = run.config.credentials
        run.intercept(_login_api(run.config), ResponseScript.hang())
        await run.navigate(run.config.login_path)
        await run.act("submit", lambda: run.login_page.submit(creds.valid_username, creds.valid_password))
        await run.wait_visible("banner", run.login_page, "generic_error")

    result = await run_scenario(playwright_client, config, Scenario("H004: hung login", body))
    assert result.failure_kind == "timeout", result.report()
    assert "banner" in result.failure


@pytest.mark.asyncio
async def test_delayed_success_holds_the_button(playwright_client, target_config):
    delay_ms = 1500

    async def body(run):
        creds = run.config.credentials
        login = run.login_page
        run.intercept(_login_api(run.config), ResponseScript.delayed_success(delay_ms))
        await run.navigate(run.config.login_path)
        await run.act("submit", lambda: login.submit(creds.valid_username, creds.valid_password))
        await run.check("disabled at once", lambda: expect(login.primary("login_button")).to_be_disabled(timeout=300))
        await run.act("wait half the delay", lambda: run.page.wait_for_timeout(delay_ms // 2))
        await run.check("still disabled", lambda: expect(login.primary("login_button")).to_be_disabled(timeout=100))
        await run.check(
            "login control released once the response lands",
            lambda: expect(login.primary("login_button")).to_be_enabled(timeout=delay_ms + 3000),
        )

    result = await run_scenario(playwright_client, target_config, Scenario("H005: delayed success", body))
    assert result.passed, result.report()


@pytest.mark.asyncio
async def test_unscripted_requests_reach_the_server(playwright_client, target_config):
    seen = {}

    async def body(run):
        run.intercept(RequestMatcher("/never-requested"), ResponseScript.server_error())
        await run.navigate(run.config.login_path)
        await run.check("login page served", lambda: run.login_page.expect_visible("login_button"))
        seen["observed"] = list(run.interceptions.observed)

    result = await run_scenario(playwright_client, target_config, Scenario("H006: pass through", body))
    assert result.passed, result.report()
    assert seen["observed"]
    assert all(entry.outcome == PASS_THROUGH for entry in seen["observed"])
    assert any(entry.url.endswith(target_config.login_path) for entry in seen["observed"])
