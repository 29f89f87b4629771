"""
RESPONSE PUMP TESTS
===================

- Every response forwarded exactly once, in order
- Failing sink isolated
- Unhealthy reply hands over to the reconnect loop
- End-of-stream without an unhealthy signal is fatal
"""

import threading
from unittest.mock import Mock

import pytest

from light_node.output.sink import SinkRegistry
from light_node.session.errors import StreamTerminatedError, SubscriptionError
from light_node.supervisor.reconnect import Reconnector
from light_node.supervisor.response_pump import ResponsePump

from tests.conftest import HEALTHY, NEW_HEAD, UNHEALTHY, wait_until


@pytest.fixture
def received():
    return []


@pytest.fixture
def pump_parts(guard, received, stop_event):
    reconnector = Mock(spec=Reconnector)
    fatal = Mock()
    pump = ResponsePump(guard, reconnector, SinkRegistry([received.append]), stop_event, on_fatal=fatal)
    return pump, reconnector, fatal


class TestHandleResponse:

    def test_forwards_notification_without_reconnect(self, pump_parts, received):
        pump, reconnector, _ = pump_parts

        assert pump.handle_response(NEW_HEAD) is False
        assert received == [NEW_HEAD]
        reconnector.reconnect.assert_not_called()

    def test_healthy_reply_is_forwarded_only(self, pump_parts, received):
        pump, reconnector, _ = pump_parts

        assert pump.handle_response(HEALTHY) is False
        assert received == [HEALTHY]
        reconnector.reconnect.assert_not_called()

    def test_unhealthy_reply_triggers_reconnect_after_forwarding(self, pump_parts, received):
        pump, reconnector, _ = pump_parts
        reconnector.reconnect.side_effect = lambda: received.append("<reconnect>")

        assert pump.handle_response(UNHEALTHY) is True
        assert received == [UNHEALTHY, "<reconnect>"]

    def test_failing_sink_does_not_stop_others(self, guard, stop_event, received):
        broken = Mock(side_effect=RuntimeError("sink down"))
        pump = ResponsePump(
            guard, Mock(spec=Reconnector), SinkRegistry([broken, received.append]), stop_event
        )

        pump.handle_response(NEW_HEAD)

        broken.assert_called_once_with(NEW_HEAD)
        assert received == [NEW_HEAD]
        assert pump.forwarded == 1

    def test_subscription_error_propagates(self, pump_parts):
        pump, reconnector, _ = pump_parts
        reconnector.reconnect.side_effect = SubscriptionError("broken")

        with pytest.raises(SubscriptionError):
            pump.handle_response(UNHEALTHY)


class TestPumpThread:

    def test_drains_in_order(self, pump_parts, guard, engine, received, stop_event):
        pump, _, fatal = pump_parts
        session = guard.open("spec")
        guard.install(session)
        messages = [f'{{"n":{i}}}' for i in range(50)]

        pump.start()
        engine.push(session.session_id, *messages)

        assert wait_until(lambda: len(received) == 50)
        assert received == messages
        stop_event.set()
        pump.join(timeout=2)
        assert not pump.is_alive()
        fatal.assert_not_called()

    def test_end_of_stream_is_fatal(self, pump_parts, guard, received, stop_event):
        pump, _, fatal = pump_parts
        session = guard.open("spec")
        guard.install(session)

        pump.start()
        session.responses.push(NEW_HEAD)
        session.responses.finish()

        assert wait_until(lambda: fatal.called)
        pump.join(timeout=2)
        assert received == [NEW_HEAD]
        assert isinstance(fatal.call_args[0][0], StreamTerminatedError)

    def test_end_of_stream_while_stopping_is_not_fatal(self, pump_parts, guard, stop_event):
        pump, _, fatal = pump_parts
        session = guard.open("spec")
        guard.install(session)
        stop_event.set()
        session.responses.finish()

        pump.run()

        fatal.assert_not_called()

    def test_pump_waits_for_first_session(self, pump_parts, guard, engine, received, stop_event):
        pump, _, _ = pump_parts
        pump.start()
        assert pump.is_alive()

        session = guard.open("spec")
        guard.install(session)
        engine.push(session.session_id, NEW_HEAD)

        assert wait_until(lambda: received == [NEW_HEAD])

    def test_resumes_on_new_stream_after_reconnect(self, guard, engine, request_ids, received, stop_event):
        reconnector = Reconnector(guard, "{}", request_ids, stop_event, retry_delay=0.01)
        fatal = Mock()
        pump = ResponsePump(guard, reconnector, SinkRegistry([received.append]), stop_event, on_fatal=fatal)
        first = reconnector.connect()

        pump.start()
        engine.push(first.session_id, "a", UNHEALTHY)
        assert wait_until(lambda: len(engine.opened) == 2 and guard.current() is engine.opened[1])

        second = engine.opened[1]
        # Stale reply on the abandoned stream is never read
        first.responses.push("stale")
        engine.push(second.session_id, "b", "c")

        assert wait_until(lambda: len(received) == 4)
        assert received == ["a", UNHEALTHY, "b", "c"]
        fatal.assert_not_called()

    def test_unexpected_error_is_reported_as_fatal(self, pump_parts, guard, engine, stop_event):
        pump, reconnector, fatal = pump_parts
        reconnector.reconnect.side_effect = RuntimeError("collaborator bug")
        session = guard.open("spec")
        guard.install(session)

        pump.start()
        engine.push(session.session_id, UNHEALTHY)

        assert wait_until(lambda: fatal.called)
        pump.join(timeout=2)
        assert not pump.is_alive()
        assert isinstance(fatal.call_args[0][0], RuntimeError)

    def test_deeply_nested_message_does_not_stop_pump(self, pump_parts, guard, engine, received, stop_event):
        pump, reconnector, fatal = pump_parts
        nested = "[" * 100000 + "]" * 100000
        session = guard.open("spec")
        guard.install(session)

        pump.start()
        engine.push(session.session_id, nested, NEW_HEAD)

        assert wait_until(lambda: len(received) == 2)
        assert received == [nested, NEW_HEAD]
        assert pump.is_alive()
        fatal.assert_not_called()
        reconnector.reconnect.assert_not_called()
