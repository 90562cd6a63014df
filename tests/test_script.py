"""Unit tests for scripted response sequences."""
import json

import pytest

from login_e2e.errors import InvariantViolation
from login_e2e.script import Abort, Fulfill, Hang, ResponseScript


def test_empty_script_is_rejected():
    with pytest.raises(ValueError):
        ResponseScript([])


def test_steps_are_handed_out_in_order_then_tail_repeats():
    first, second = Fulfill(status=401), Fulfill(status=423)
    script = ResponseScript([first, second])

    assert script.next() is first
    assert script.next() is second
    assert script.next() is second
    assert script.next() is second
    assert script.calls == 4
    assert not script.exhausted


def test_non_repeating_script_runs_dry():
    script = ResponseScript.once(Fulfill(status=500))
    assert script.next().status == 500
    assert script.exhausted
    assert script.next() is None
    assert script.calls == 1


@pytest.mark.parametrize("threshold", [1, 3, 5])
def test_lockout_script_has_sticky_tail(threshold):
    script = ResponseScript.lockout(threshold)
    statuses = [script.next().status for _ in range(threshold + 4)]

    assert statuses[:threshold] == [401] * threshold
    assert statuses[threshold:] == [423] * 4
    locked = json.loads(script.steps[-1].body)
    assert "Account locked" in locked["message"]


def test_lockout_needs_a_positive_threshold():
    with pytest.raises(ValueError):
        ResponseScript.lockout(0)


def test_failure_kinds_are_distinct():
    aborted = ResponseScript.network_failure().next()
    errored = ResponseScript.server_error().next()

    assert isinstance(aborted, Abort)
    assert aborted.kind == "abort"
    assert isinstance(errored, Fulfill)
    assert errored.kind == "fulfill"
    assert errored.status == 500
    assert isinstance(ResponseScript.hang().next(), Hang)


def test_delayed_success_carries_delay_and_payload():
    step = ResponseScript.delayed_success(1000, {"success": True, "user": "testuser"}).next()
    assert step.status == 200
    assert step.delay_ms == 1000
    assert json.loads(step.body)["user"] == "testuser"
    assert step.content_type == "application/json"


def test_reset_rewinds_cursor_and_counter():
    script = ResponseScript.lockout(2)
    for _ in range(5):
        script.next()
    script.reset()
    assert script.cursor == 0
    assert script.calls == 0
    assert script.next().status == 401


def test_reentrant_next_is_an_invariant_violation():
    script = ResponseScript.constant(Fulfill())
    script._guard.acquire()
    try:
        with pytest.raises(InvariantViolation):
            script.next()
    finally:
        script._guard.release()
    assert script.next() is not None
