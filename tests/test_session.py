"""Tests for per-goal scheduling sessions."""

import threading
import time

import pytest

from goalplan.engine.session import SessionRegistry
from goalplan.errors import AlreadySchedulingError


def wait_for_waiters(session, count, timeout=2.0):
    deadline = time.monotonic() + timeout
    while len(session._waiting) < count:
        if time.monotonic() > deadline:
            raise AssertionError("waiters never queued")
        time.sleep(0.01)


class TestRejectMode:
    def test_second_request_rejected(self):
        registry = SessionRegistry('reject')
        with registry.acquire("goal-1"):
            with pytest.raises(AlreadySchedulingError) as excinfo:
                with registry.acquire("goal-1"):
                    pass
        assert excinfo.value.goal_id == "goal-1"

    def test_other_goals_unaffected(self):
        registry = SessionRegistry('reject')
        with registry.acquire("goal-1"):
            with registry.acquire("goal-2") as session:
                assert session.goal_id == "goal-2"

    def test_released_after_error(self):
        registry = SessionRegistry('reject')
        with pytest.raises(RuntimeError):
            with registry.acquire("goal-1"):
                raise RuntimeError("pass failed")
        assert not registry.session("goal-1").running


class TestQueueMode:
    def test_waiters_run_in_arrival_order(self):
        registry = SessionRegistry('queue')
        session = registry.session("goal-1")
        order = []

        def request(name):
            with registry.acquire("goal-1"):
                order.append(name)

        with registry.acquire("goal-1"):
            first = threading.Thread(target=request, args=("first",))
            first.start()
            wait_for_waiters(session, 1)
            second = threading.Thread(target=request, args=("second",))
            second.start()
            wait_for_waiters(session, 2)
            order.append("holder")

        first.join(2)
        second.join(2)
        assert order == ["holder", "first", "second"]

    def test_wait_timeout(self):
        registry = SessionRegistry('queue')
        with registry.acquire("goal-1"):
            with pytest.raises(AlreadySchedulingError):
                with registry.acquire("goal-1", timeout=0.05):
                    pass
        with registry.acquire("goal-1", timeout=0.05):
            pass


class TestGenerations:
    def test_generations_are_retained(self):
        session = SessionRegistry().session("goal-1")
        assert session.next_generation("m1") == 1
        first = session.record("m1", [], "schedule")
        second = session.record("m1", [], "optimize")

        assert (first.number, second.number) == (1, 2)
        assert session.latest("m1") is second
        assert [g.origin for g in session.history("m1")] == ["schedule", "optimize"]
        assert session.latest("m2") is None


def test_unknown_mode():
    with pytest.raises(ValueError):
        SessionRegistry('drop')


def test_mode_from_config(config):
    config['sessions']['concurrent_request_mode'] = 'reject'
    assert SessionRegistry.from_config(config).mode == 'reject'
