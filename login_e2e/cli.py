"""Command line entry point: run the login scenarios and print a report.

Usage:
    login-e2e --list
    login-e2e --serve-mock
    login-e2e --base-url https://staging.example.com --scenario TC001 --scenario TC007
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError

from login_e2e.config import SuiteConfig
from login_e2e.playwright_client import PlaywrightClient
from login_e2e.runner import ScenarioResult, run_scenarios
from login_e2e.scenarios import SCENARIOS, Scenario

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="login-e2e",
        description="Run the login flow end-to-end scenarios against a deployment or the bundled mock app",
    )
    parser.add_argument("--list", action="store_true", help="List scenario names and exit")
    parser.add_argument(
        "--scenario",
        action="append",
        default=[],
        metavar="NAME",
        help="Scenario name or case id (e.g. TC007); repeatable. Default: all",
    )
    parser.add_argument("--tag", default=None, help="Only run scenarios carrying this tag")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Base URL of the application (default: $UI_BASE_URL or the suite default)",
    )
    parser.add_argument(
        "--serve-mock",
        action="store_true",
        help="Start the bundled mock login app and run against it",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log harness events at DEBUG level")
    return parser


async def run_selected(config: SuiteConfig, scenarios: List[Scenario], reset=None) -> List[ScenarioResult]:
    async with PlaywrightClient.from_config(config) as client:
        return await run_scenarios(
            client,
            config,
            scenarios,
            before_each=reset,
            on_result=lambda result: print(result.summary(), flush=True),
        )


def print_summary(results: List[ScenarioResult]) -> None:
    failed = [result for result in results if not result.passed]
    print()
    print(f"{len(results) - len(failed)} passed, {len(failed)} failed")
    for result in failed:
        print()
        print(result.report())


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        for scenario in SCENARIOS:
            print(scenario.name)
        return 0

    try:
        scenarios = SCENARIOS.select(args.scenario, tag=args.tag)
    except KeyError as exc:
        print(f"error: {exc.args[0]}", file=sys.stderr)
        return 2
    if not scenarios:
        print("error: no scenarios selected", file=sys.stderr)
        return 2

    config = SuiteConfig.from_env()
    if args.headed:
        config = replace(config, headless=False)
    if args.base_url:
        config = config.with_base_url(args.base_url)

    server = None
    reset = None
    if args.serve_mock:
        from login_e2e.mock_login_app import create_mock_login_app
        from login_e2e.mock_server import MockLoginServer

        server = MockLoginServer(create_mock_login_app(config))
        server.start()
        config = config.with_base_url(server.base_url)
        reset = server.reset

    try:
        results = asyncio.run(run_selected(config, scenarios, reset))
    except PlaywrightError as exc:
        logger.error(f"Could not start the browser: {exc}")
        return 2
    finally:
        if server is not None:
            server.stop()

    print_summary(results)
    return 0 if all(result.passed for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
