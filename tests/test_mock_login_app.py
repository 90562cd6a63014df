"""HTTP contract of the mock login app, checked with Flask's test client."""
import pytest

from login_e2e.config import SuiteConfig
from login_e2e.mock_login_app import REMEMBER_ME_MAX_AGE, create_mock_login_app, get_state

CONFIG = SuiteConfig(lockout_threshold=3, max_input_length=20)


@pytest.fixture
def app():
    return create_mock_login_app(CONFIG)


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, username="testuser", password="Password123!", remember=False):
    return client.post("/api/login", json={"username": username, "password": password, "remember": remember})


def test_login_page_exposes_accessible_form(client):
    response = client.get("/login")
    html = response.get_data(as_text=True)

    assert response.status_code == 200
    assert 'id="username"' in html
    assert 'aria-describedby="username-error"' in html
    assert 'id="generic-error"' in html and 'aria-live="assertive"' in html
    assert 'class="loading-spinner"' in html
    assert "no-store" in response.headers["Cache-Control"]


def test_successful_login_sets_session_cookie(client):
    response = _login(client)

    assert response.status_code == 200
    assert response.get_json()["redirect"] == "/dashboard"
    cookie = response.headers["Set-Cookie"]
    assert cookie.startswith("session=")
    assert "Max-Age" not in cookie
    assert "HttpOnly" in cookie


def test_remember_me_sets_persistent_cookie(client):
    cookie = _login(client, remember=True).headers["Set-Cookie"]
    assert f"Max-Age={REMEMBER_ME_MAX_AGE}" in cookie


def test_email_login_greets_with_email(client):
    assert _login(client, username="test@example.com").status_code == 200
    page = client.get("/dashboard")
    assert page.status_code == 200
    assert "Welcome, test@example.com!" in page.get_data(as_text=True)


@pytest.mark.parametrize(
    "username, password, status",
    [
        ("testuser", "WrongPassword!", 401),
        ("nonexistentuser", "Password123!", 401),
        ("' OR 1=1 --", "' OR 1=1 --", 401),
        ("", "Password123!", 400),
        ("testuser", "", 400),
        ("a" * 21, "Password123!", 400),
    ],
)
def test_rejected_logins(client, username, password, status):
    response = _login(client, username, password)
    assert response.status_code == status
    assert "Set-Cookie" not in response.headers


def test_lockout_after_threshold_regardless_of_password(client):
    for _ in range(CONFIG.lockout_threshold):
        assert _login(client, password="WrongPassword!").status_code == 401

    locked = _login(client)
    assert locked.status_code == 423
    assert "Account locked" in locked.get_json()["message"]
    # email logins hit the same account
    assert _login(client, username="test@example.com").status_code == 423


def test_success_clears_failed_attempts(client):
    for _ in range(CONFIG.lockout_threshold - 1):
        _login(client, password="WrongPassword!")
    assert _login(client).status_code == 200
    assert _login(client, password="WrongPassword!").status_code == 401
    assert _login(client).status_code == 200


def test_maximum_length_account_can_log_in(client):
    response = _login(client, CONFIG.max_length_username, CONFIG.max_length_password)
    assert response.status_code == 200


def test_dashboard_requires_session(client):
    response = client.get("/dashboard")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")


def test_logout_invalidates_session_server_side(app, client):
    _login(client)
    token = next(iter(get_state(app).sessions))
    assert client.get("/dashboard").status_code == 200

    response = client.post("/logout")
    assert response.status_code == 303
    assert response.headers["Location"].endswith("/login")
    assert token not in get_state(app).sessions

    # replaying the old cookie does not bring the session back
    client.set_cookie("session", token)
    assert client.get("/dashboard").status_code == 302


def test_auxiliary_pages_have_titles(client):
    assert "<title>Forgot Password</title>" in client.get("/forgot-password").get_data(as_text=True)
    assert "<title>Sign Up</title>" in client.get("/signup").get_data(as_text=True)
    assert client.get("/").headers["Location"].endswith("/login")


def test_reset_restores_clean_state(app, client):
    for _ in range(CONFIG.lockout_threshold):
        _login(client, password="WrongPassword!")
    get_state(app).reset()
    assert _login(client).status_code == 200


def test_apps_do_not_share_state():
    first = create_mock_login_app(CONFIG).test_client()
    second = create_mock_login_app(CONFIG).test_client()
    for _ in range(CONFIG.lockout_threshold):
        _login(first, password="WrongPassword!")
    assert _login(first).status_code == 423
    assert _login(second).status_code == 200
