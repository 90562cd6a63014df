"""Run a WSGI app in a background thread for browser tests."""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import httpx
from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

logger = logging.getLogger(__name__)


class MockLoginServer:
    """Wrapper for running the mock login app in a background thread.

    ``port=0`` picks a free port; read the chosen one from ``base_url``
    after ``start()``.
    """

    def __init__(self, app: Flask, host: str = "127.0.0.1", port: int = 0) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server: Optional[BaseWSGIServer] = None
        self.thread: Optional[threading.Thread] = None

    def __enter__(self) -> "MockLoginServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self, ready_timeout: float = 5.0) -> None:
        """Start serving and block until the login page answers."""
        self.server = make_server(self.host, self.port, self.app, threaded=True)
        self.port = self.server.server_port
        self.thread = threading.Thread(target=self.server.serve_forever, name="mock-login-server", daemon=True)
        self.thread.start()

        deadline = time.monotonic() + ready_timeout
        while True:
            try:
                httpx.get(f"{self.base_url}/", timeout=0.5)
                break
            except httpx.HTTPError:
                if time.monotonic() >= deadline:
                    self.stop()
                    raise RuntimeError(f"Mock login server did not start on {self.base_url}")
                time.sleep(0.1)
        logger.info(f"Mock login server listening on {self.base_url}")

    def stop(self) -> None:
        """Stop the server thread."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
        if self.thread:
            self.thread.join(timeout=5)
            self.thread = None

    def reset(self) -> None:
        """Forget accounts' failed attempts and sessions."""
        from login_e2e.mock_login_app import reset_mock_state

        reset_mock_state(self.app)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
