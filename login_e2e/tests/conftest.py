import sys
from pathlib import Path

import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from login_e2e.config import SuiteConfig
from login_e2e.env_defaults import get_setting
from login_e2e.mock_login_app import create_mock_login_app
from login_e2e.mock_server import MockLoginServer
from login_e2e.playwright_client import PlaywrightClient


@pytest.fixture(scope="session")
def suite_config():
    """Suite configuration from the environment and ``.env.defaults``."""
    return SuiteConfig.from_env()


@pytest.fixture(scope="session")
def login_app_server(suite_config):
    """Mock login app served on a free port, unless UI_BASE_URL points elsewhere.

    Yields None when the suite targets an external deployment.
    """
    if get_setting("UI_BASE_URL"):
        yield None
        return
    server = MockLoginServer(create_mock_login_app(suite_config))
    server.start()
    yield server
    server.stop()


@pytest.fixture(scope="session")
def target_config(suite_config, login_app_server):
    """Config whose base URL is the application the browser should hit."""
    if login_app_server is None:
        return suite_config
    return suite_config.with_base_url(login_app_server.base_url)


@pytest.fixture(autouse=True)
def reset_login_app(login_app_server):
    """Every test starts with no failed attempts and no sessions."""
    if login_app_server is not None:
        login_app_server.reset()
    yield


@pytest_asyncio.fixture()
async def playwright_client(target_config):
    """Create a Playwright client, skipping when no browser can be launched."""
    client = PlaywrightClient.from_config(target_config)
    try:
        await client.connect()
    except PlaywrightError as exc:
        await client.close()
        pytest.skip(f"Playwright browser unavailable: {exc}")
    yield client
    await client.close()
