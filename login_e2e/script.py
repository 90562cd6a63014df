"""Scripted responses for intercepted requests.

A ``ResponseScript`` replaces the stateful closures usually handed to
``page.route``: instead of a counter hidden in a lambda, the sequence of
responses is a value that can be inspected, reset and thrown away with the
browser context that owns it.

Three step kinds exist and they are never conflated:

- ``Fulfill`` answers with a status/headers/body, optionally after a delay,
- ``Abort`` fails the request at the network level (connection failure),
- ``Hang`` never answers, for exercising client-side timeouts.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from login_e2e.errors import InvariantViolation

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class Fulfill:
    status: int = 200
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict, hash=False)
    delay_ms: int = 0
    content_type: str = JSON_CONTENT_TYPE

    kind = "fulfill"

    @classmethod
    def json(cls, status: int, payload: Any, delay_ms: int = 0, headers: Optional[Dict[str, str]] = None) -> "Fulfill":
        return cls(status=status, body=json.dumps(payload), headers=dict(headers or {}), delay_ms=delay_ms)


@dataclass(frozen=True)
class Abort:
    # Playwright error codes: aborted, connectionrefused, failed, timedout, ...
    reason: str = "failed"

    kind = "abort"


@dataclass(frozen=True)
class Hang:
    kind = "hang"


ResponseStep = Union[Fulfill, Abort, Hang]


class ResponseScript:
    """Ordered steps handed out one per matching request.

    Once the cursor passes the last step, that step is repeated for every
    further request (the sticky tail). With ``repeat_tail=False`` an exhausted
    script returns ``None`` instead, and the registry lets the request through.
    """

    def __init__(self, steps: Sequence[ResponseStep], repeat_tail: bool = True, name: str = "") -> None:
        if not steps:
            raise ValueError("A response script needs at least one step")
        self._steps: tuple[ResponseStep, ...] = tuple(steps)
        self.repeat_tail = repeat_tail
        self.name = name or "script"
        self._cursor = 0
        self._calls = 0
        self._guard = threading.Lock()

    def __repr__(self) -> str:
        return f"ResponseScript(name={self.name!r}, steps={len(self._steps)}, cursor={self._cursor})"

    @property
    def steps(self) -> tuple[ResponseStep, ...]:
        return self._steps

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def calls(self) -> int:
        """Number of requests this script has been consulted for."""
        return self._calls

    @property
    def exhausted(self) -> bool:
        return not self.repeat_tail and self._cursor >= len(self._steps)

    def next(self) -> Optional[ResponseStep]:
        if not self._guard.acquire(blocking=False):
            raise InvariantViolation(f"Response script {self.name!r} re-entered while handing out a step")
        try:
            if self._cursor >= len(self._steps):
                return None
            step = self._steps[self._cursor]
            # the cursor parks on the tail step of a repeating script
            if self._cursor < len(self._steps) - 1 or not self.repeat_tail:
                self._cursor += 1
            self._calls += 1
            logger.debug(f"{self.name}: call {self._calls} -> {step}")
            return step
        finally:
            self._guard.release()

    def reset(self) -> None:
        with self._guard:
            self._cursor = 0
            self._calls = 0

    # ---- canned scripts ---------------------------------------------------------
    @classmethod
    def constant(cls, step: ResponseStep, name: str = "") -> "ResponseScript":
        return cls([step], name=name)

    @classmethod
    def once(cls, step: ResponseStep, name: str = "") -> "ResponseScript":
        """Answer the first request only; later ones pass through."""
        return cls([step], repeat_tail=False, name=name)

    @classmethod
    def lockout(
        cls,
        threshold: int,
        failure_message: str = "Invalid username or password.",
        lockout_message: str = "Account locked due to too many failed attempts. Try again later or reset your password.",
    ) -> "ResponseScript":
        """``threshold`` rejections followed by a sticky 423.

        The locked answer keeps coming regardless of the credentials sent,
        which is exactly what an account lockout looks like from the browser.
        """
        if threshold < 1:
            raise ValueError("Lockout threshold must be at least 1")
        steps: List[ResponseStep] = [Fulfill.json(401, {"message": failure_message}) for _ in range(threshold)]
        steps.append(Fulfill.json(423, {"message": lockout_message}))
        return cls(steps, name=f"lockout-after-{threshold}")

    @classmethod
    def delayed_success(cls, delay_ms: int, payload: Any = None, headers: Optional[Dict[str, str]] = None) -> "ResponseScript":
        body = payload if payload is not None else {"success": True}
        return cls([Fulfill.json(200, body, delay_ms=delay_ms, headers=headers)], name=f"success-after-{delay_ms}ms")

    @classmethod
    def network_failure(cls, reason: str = "failed") -> "ResponseScript":
        return cls([Abort(reason)], name=f"abort-{reason}")

    @classmethod
    def server_error(cls, message: str = "Internal server error. Please try again later.") -> "ResponseScript":
        return cls([Fulfill.json(500, {"message": message})], name="server-error")

    @classmethod
    def hang(cls) -> "ResponseScript":
        return cls([Hang()], name="hang")
