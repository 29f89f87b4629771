"""
RECONNECT LOOP TESTS
====================

- Open retried with a fixed delay, no cap, no growth
- Bootstrap subscriptions issued once per new session, ids never reset
- Subscription failure on a fresh session is fatal (SubscriptionError)
- Concurrent triggers coalesce
- Pollers fail fast while the session is unavailable
"""

import json
import threading
from unittest.mock import Mock, call

import pytest

from light_node.domain.models import ReconnectState
from light_node.rpc.requests import BOOTSTRAP_METHODS
from light_node.session.errors import SessionSubmitError, SessionUnavailableError, SubscriptionError
from light_node.supervisor.reconnect import Reconnector

from tests.fake_session import close_failure, open_failure


@pytest.fixture
def fake_stop():
    """stop_event double: never set, wait() returns immediately"""
    event = Mock(spec=threading.Event)
    event.is_set.return_value = False
    event.wait.return_value = False
    return event


@pytest.fixture
def reconnector(guard, request_ids, fake_stop):
    return Reconnector(guard, '{"name":"test"}', request_ids, fake_stop, retry_delay=5.0)


def methods_and_ids(texts):
    return [(json.loads(t)["method"], json.loads(t)["id"]) for t in texts]


class TestInitialConnect:

    def test_connect_subscribes_with_ids_one_and_two(self, reconnector, engine, guard):
        session = reconnector.connect()

        assert guard.current() is session
        assert engine.requests_for(session.session_id) == [
            '{"id":1,"jsonrpc":"2.0","method":"chain_subscribeNewHeads","params":[]}',
            '{"id":2,"jsonrpc":"2.0","method":"grandpa_subscribeJustifications","params":[]}',
        ]
        assert engine.closed == []
        assert reconnector.state is ReconnectState.IDLE

    def test_open_receives_chain_spec_and_empty_database(self, reconnector, engine):
        reconnector.connect()
        assert engine.specs == ['{"name":"test"}']


class TestReconnect:

    def test_open_fails_twice_then_succeeds(self, reconnector, engine, guard, fake_stop):
        first = reconnector.connect()
        engine.open_outcomes = [open_failure(), open_failure()]

        second = reconnector.reconnect()

        assert second is not None and second.session_id != first.session_id
        assert engine.open_calls == 4  # initial + 2 failures + success
        assert fake_stop.wait.call_args_list == [call(5.0), call(5.0)]
        assert engine.closed == [first.session_id]
        assert guard.current() is second
        assert methods_and_ids(engine.requests_for(second.session_id)) == [
            (BOOTSTRAP_METHODS[0], 3),
            (BOOTSTRAP_METHODS[1], 4),
        ]
        assert reconnector.reconnect_count == 1

    def test_retry_delay_does_not_grow(self, guard, request_ids, fake_stop, engine):
        engine.open_outcomes = [open_failure() for _ in range(6)]
        reconnector = Reconnector(guard, "{}", request_ids, fake_stop, retry_delay=1.5)

        reconnector.connect()

        assert fake_stop.wait.call_args_list == [call(1.5)] * 6

    def test_close_failure_does_not_stop_reconnect(self, reconnector, engine, guard):
        first = reconnector.connect()
        engine.close_errors[first.session_id] = close_failure()

        second = reconnector.reconnect()

        assert guard.current() is second

    def test_stop_during_retry_wait_aborts(self, reconnector, engine, guard, fake_stop):
        reconnector.connect()
        engine.open_outcomes = [open_failure()]
        fake_stop.wait.return_value = True

        assert reconnector.reconnect() is None
        assert guard.current() is None
        assert reconnector.state is ReconnectState.IDLE
        assert reconnector.in_progress is False

    def test_ids_continue_across_many_reconnects(self, reconnector, engine, request_ids):
        reconnector.connect()
        for _ in range(3):
            reconnector.reconnect()

        ids = [json.loads(text)["id"] for _, text in engine.submitted]
        assert ids == list(range(1, 9))
        assert request_ids.peek() == 9


class TestSubscriptionFailure:

    def test_failed_subscription_is_fatal_for_new_session(self, reconnector, engine, guard):
        reconnector.connect()
        broken_id = engine.opened[-1].session_id + 1
        engine.fail_submit_after[broken_id] = 1  # first bootstrap ok, second fails

        with pytest.raises(SubscriptionError):
            reconnector.reconnect()

        assert guard.current() is None
        assert broken_id in engine.closed
        assert reconnector.state is ReconnectState.IDLE
        assert reconnector.in_progress is False

    def test_subscription_failure_is_not_retried(self, reconnector, engine):
        engine.submit_errors[1] = SessionSubmitError("clogged")

        with pytest.raises(SubscriptionError):
            reconnector.connect()

        assert engine.open_calls == 1


class TestConcurrency:

    def test_concurrent_trigger_is_coalesced(self, guard, request_ids, engine):
        release = threading.Event()
        entered = threading.Event()
        stop = Mock(spec=threading.Event)
        stop.is_set.return_value = False

        def blocking_wait(timeout):
            entered.set()
            release.wait(5)
            return False

        stop.wait.side_effect = blocking_wait
        reconnector = Reconnector(guard, "{}", request_ids, stop, retry_delay=5.0)
        reconnector.connect()
        engine.open_outcomes = [open_failure()]

        worker = threading.Thread(target=reconnector.reconnect)
        worker.start()
        assert entered.wait(2)

        # Second trigger while the first is waiting to retry
        assert reconnector.in_progress is True
        assert reconnector.reconnect() is None

        release.set()
        worker.join(timeout=5)
        assert engine.open_calls == 3  # initial + failed + success, no second reconnect

    def test_poll_fails_fast_while_reconnect_waits(self, guard, request_ids, engine):
        release = threading.Event()
        entered = threading.Event()
        stop = Mock(spec=threading.Event)
        stop.is_set.return_value = False

        def blocking_wait(timeout):
            entered.set()
            release.wait(5)
            return False

        stop.wait.side_effect = blocking_wait
        reconnector = Reconnector(guard, "{}", request_ids, stop)
        reconnector.connect()
        engine.open_outcomes = [open_failure()]

        worker = threading.Thread(target=reconnector.reconnect)
        worker.start()
        assert entered.wait(2)

        # Lock is not held during the retry wait: submit returns immediately
        with pytest.raises(SessionUnavailableError):
            guard.submit('{"id":99}')

        release.set()
        worker.join(timeout=5)
        assert guard.is_available()

    def test_state_is_visible_from_other_threads(self, guard, request_ids, engine):
        release = threading.Event()
        entered = threading.Event()
        stop = Mock(spec=threading.Event)
        stop.is_set.return_value = False

        def blocking_wait(timeout):
            entered.set()
            release.wait(5)
            return False

        stop.wait.side_effect = blocking_wait
        reconnector = Reconnector(guard, "{}", request_ids, stop)
        engine.open_outcomes = [open_failure()]

        worker = threading.Thread(target=reconnector.connect)
        worker.start()
        assert entered.wait(2)

        assert reconnector.state is ReconnectState.OPENING
        assert reconnector.in_progress is True

        release.set()
        worker.join(timeout=5)
        assert reconnector.state is ReconnectState.IDLE
        assert reconnector.in_progress is False
