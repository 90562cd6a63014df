"""Mock login application for running the scenario suite without a deployment.

This app implements the HTTP contract the scenarios expect:
- GET  /login            login form (client-side validation, toggle, busy state)
- POST /api/login        200 + session cookie, 400 bad input, 401 bad credentials, 423 locked
- GET  /dashboard        protected page, never cached
- POST /logout           invalidates the session server-side
- GET  /forgot-password  and /signup, plain pages reached from the form links

State (accounts, failed attempts, sessions) lives on the app instance, so two
apps never share anything and ``reset()`` restores a clean slate between tests.
"""
from __future__ import annotations

import logging
import secrets
import threading
from typing import Dict, Optional

from flask import Flask, jsonify, make_response, redirect, render_template_string, request

from login_e2e.config import SuiteConfig

logger = logging.getLogger(__name__)

REMEMBER_ME_MAX_AGE = 30 * 24 * 3600

INVALID_CREDENTIALS = "Invalid username or password."
ACCOUNT_LOCKED = "Account locked due to too many failed attempts. Try again later or reset your password."
MISSING_FIELDS = "Username or email and password are required."
INPUT_TOO_LONG = "Input exceeds maximum length."


class MockLoginState:
    """Accounts, failed-attempt counters and live sessions of one mock app."""

    def __init__(self, config: SuiteConfig) -> None:
        self.config = config
        self.lock = threading.Lock()
        self.passwords: Dict[str, str] = {}
        self.aliases: Dict[str, str] = {}
        self.failures: Dict[str, int] = {}
        self.sessions: Dict[str, str] = {}
        self.reset()

    def reset(self) -> None:
        creds = self.config.credentials
        with self.lock:
            self.passwords = {
                creds.valid_username: creds.valid_password,
                self.config.max_length_username: self.config.max_length_password,
            }
            # Email logins resolve to the same account
            self.aliases = {creds.valid_email: creds.valid_username}
            self.failures.clear()
            self.sessions.clear()

    def account_for(self, identity: str) -> Optional[str]:
        account = self.aliases.get(identity, identity)
        return account if account in self.passwords else None

    def is_locked(self, account: str) -> bool:
        return self.failures.get(account, 0) >= self.config.lockout_threshold

    def identity_for(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        with self.lock:
            return self.sessions.get(token)


def get_state(app: Flask) -> MockLoginState:
    return app.extensions["mock_login"]


LOGIN_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Login</title>
  <style>
    [hidden] { display: none !important; }
    body { font-family: sans-serif; margin: 0; padding: 1rem; }
    main { max-width: 420px; margin: 2rem auto; }
    .field { display: block; margin-bottom: 1rem; }
    .field label { display: block; margin-bottom: .25rem; }
    .field input[type=text], .field input[type=password] { box-sizing: border-box; width: 100%; padding: .5rem; }
    .password-row { display: flex; gap: .5rem; }
    .password-row input { flex: 1; }
    .field-error, .error-message { color: #b00020; margin-top: .25rem; }
    #loginButton { display: block; width: 100%; padding: .75rem; }
    .loading-spinner { display: inline-block; margin-left: .5rem; }
    .links { margin-top: 1rem; display: flex; justify-content: space-between; }
  </style>
</head>
<body>
<main>
  <h1>Login</h1>
  <div id="generic-error" class="error-message" role="alert" aria-live="assertive" hidden></div>
  <form id="loginForm" novalidate>
    <div class="field">
      <label for="username">Username or email</label>
      <input type="text" id="username" name="username" autocomplete="username"
             aria-label="Username or email" aria-describedby="username-error">
      <div id="username-error" class="field-error" role="alert" aria-live="assertive" hidden></div>
    </div>
    <div class="field">
      <label for="password">Password</label>
      <div class="password-row">
        <input type="password" id="password" name="password" autocomplete="current-password"
               aria-label="Password" aria-describedby="password-error">
        <button type="button" id="passwordToggle" class="password-toggle" tabindex="-1"
                aria-label="Show password">Show</button>
      </div>
      <div id="password-error" class="field-error" role="alert" aria-live="assertive" hidden></div>
    </div>
    <div class="field">
      <input type="checkbox" id="rememberMe" name="remember" aria-label="Remember me">
      <label for="rememberMe">Remember me</label>
    </div>
    <button type="submit" id="loginButton">Login</button>
    <span class="loading-spinner" role="status" aria-label="Signing in" hidden>Signing in...</span>
  </form>
  <div class="links">
    <a href="{{ forgot_password_path }}">Forgot Password</a>
    <a href="{{ signup_path }}">Sign Up</a>
  </div>
</main>
<script>
  (function () {
    const MAX_LENGTH = {{ max_length }};
    const API_URL = {{ api_path|tojson }};
    const DASHBOARD_URL = {{ dashboard_path|tojson }};
    const form = document.getElementById("loginForm");
    const username = document.getElementById("username");
    const password = document.getElementById("password");
    const remember = document.getElementById("rememberMe");
    const button = document.getElementById("loginButton");
    const spinner = document.querySelector(".loading-spinner");
    const toggle = document.getElementById("passwordToggle");
    const banner = document.getElementById("generic-error");
    const usernameError = document.getElementById("username-error");
    const passwordError = document.getElementById("password-error");

    function show(el, message) { el.textContent = message; el.hidden = false; }
    function hide(el) { el.textContent = ""; el.hidden = true; }
    function setBusy(busy) {
      button.disabled = busy;
      spinner.hidden = !busy;
      form.setAttribute("aria-busy", busy ? "true" : "false");
    }

    toggle.addEventListener("click", function () {
      const reveal = password.type === "password";
      password.type = reveal ? "text" : "password";
      toggle.setAttribute("aria-label", reveal ? "Hide password" : "Show password");
      toggle.textContent = reveal ? "Hide" : "Show";
    });

    form.addEventListener("submit", async function (event) {
      event.preventDefault();
      [banner, usernameError, passwordError].forEach(hide);
      const user = username.value.trim();
      const secret = password.value;
      let valid = true;
      if (!user) {
        show(usernameError, "Username or email is required.");
        valid = false;
      } else if (user.length > MAX_LENGTH) {
        show(usernameError, "Username exceeds maximum length of " + MAX_LENGTH + " characters.");
        valid = false;
      }
      if (!secret) {
        show(passwordError, "Password is required.");
        valid = false;
      } else if (secret.length > MAX_LENGTH) {
        show(passwordError, "Password exceeds maximum length of " + MAX_LENGTH + " characters.");
        valid = false;
      }
      if (!valid) { return; }

      setBusy(true);
      try {
        const response = await fetch(API_URL, {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          credentials: "same-origin",
          body: JSON.stringify({ username: user, password: secret, remember: remember.checked })
        });
        let data = {};
        try { data = await response.json(); } catch (err) { data = {}; }
        if (response.ok) {
          window.location.assign(data.redirect || DASHBOARD_URL);
          return;
        }
        if (response.status >= 500) {
          show(banner, "Unable to login at this time. " + (data.message || "Please try again later."));
        } else {
          show(banner, data.message || "Invalid username or password.");
        }
      } catch (err) {
        show(banner, "Unable to login. Please check your network connection and try again.");
      }
      setBusy(false);
    });
  })();
</script>
</body>
</html>
"""

DASHBOARD_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Dashboard</title>
</head>
<body>
<main>
  <h1 id="welcomeMessage" class="welcome-message">Welcome, {{ identity }}!</h1>
  <form method="post" action="/logout">
    <button type="submit">Logout</button>
  </form>
</main>
<script>
  window.addEventListener("pageshow", function (event) {
    if (event.persisted) { window.location.reload(); }
  });
</script>
</body>
</html>
"""

SIMPLE_PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{{ title }}</title></head>
<body>
<main>
  <h1>{{ title }}</h1>
  <p>{{ text }}</p>
  <a href="{{ login_path }}">Back to login</a>
</main>
</body>
</html>
"""


def create_mock_login_app(config: Optional[SuiteConfig] = None) -> Flask:
    """Create and configure the mock login Flask app."""
    config = config or SuiteConfig()
    app = Flask(__name__)
    app.config["TESTING"] = True
    state = MockLoginState(config)
    app.extensions["mock_login"] = state

    def _no_store(response):
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response.headers["Pragma"] = "no-cache"
        return response

    @app.route("/")
    def index():
        return redirect(config.login_path)

    @app.route("/home")
    def home():
        return redirect(config.dashboard_path)

    @app.route(config.login_path)
    def login_page():
        html = render_template_string(
            LOGIN_TEMPLATE,
            max_length=config.max_input_length,
            api_path="/api/login",
            dashboard_path=config.dashboard_path,
            forgot_password_path=config.forgot_password_path,
            signup_path=config.signup_path,
        )
        return _no_store(make_response(html))

    @app.route("/api/login", methods=["POST"])
    def api_login():
        data = request.get_json(silent=True) or {}
        identity = str(data.get("username") or "").strip()
        password = str(data.get("password") or "")
        remember = bool(data.get("remember"))

        if not identity or not password:
            return jsonify({"success": False, "message": MISSING_FIELDS}), 400
        if len(identity) > config.max_input_length or len(password) > config.max_input_length:
            return jsonify({"success": False, "message": INPUT_TOO_LONG}), 400

        with state.lock:
            account = state.account_for(identity)
            if account is not None and state.is_locked(account):
                logger.info(f"Rejected login for locked account {account}")
                return jsonify({"success": False, "message": ACCOUNT_LOCKED}), 423
            if account is None or not secrets.compare_digest(state.passwords[account].encode(), password.encode()):
                if account is not None:
                    state.failures[account] = state.failures.get(account, 0) + 1
                    logger.debug(f"Failed login for {account} ({state.failures[account]})")
                return jsonify({"success": False, "message": INVALID_CREDENTIALS}), 401

            state.failures.pop(account, None)
            token = secrets.token_urlsafe(24)
            state.sessions[token] = identity

        response = jsonify({"success": True, "user": identity, "redirect": config.dashboard_path})
        response.set_cookie(
            config.session_cookie or "session",
            token,
            max_age=REMEMBER_ME_MAX_AGE if remember else None,
            httponly=True,
            samesite="Lax",
        )
        return response

    @app.route(config.dashboard_path)
    def dashboard():
        identity = state.identity_for(request.cookies.get(config.session_cookie or "session"))
        if identity is None:
            return _no_store(redirect(config.login_path))
        return _no_store(make_response(render_template_string(DASHBOARD_TEMPLATE, identity=identity)))

    @app.route("/logout", methods=["POST"])
    def logout():
        cookie_name = config.session_cookie or "session"
        token = request.cookies.get(cookie_name)
        if token:
            with state.lock:
                state.sessions.pop(token, None)
        response = redirect(config.login_path, code=303)
        response.delete_cookie(cookie_name)
        return _no_store(response)

    @app.route(config.forgot_password_path)
    def forgot_password():
        return render_template_string(
            SIMPLE_PAGE_TEMPLATE,
            title="Forgot Password",
            text="Enter your email address to receive a password reset link.",
            login_path=config.login_path,
        )

    @app.route(config.signup_path)
    def signup():
        return render_template_string(
            SIMPLE_PAGE_TEMPLATE,
            title="Sign Up",
            text="Create an account to get started.",
            login_path=config.login_path,
        )

    return app


def reset_mock_state(app: Flask) -> None:
    """Reset accounts, counters and sessions of ``app``."""
    get_state(app).reset()
