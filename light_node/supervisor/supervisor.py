#!/usr/bin/env python3
"""
===============================================================================
CONNECTION SUPERVISOR - COMPOSITION ROOT
===============================================================================

Wires the loops around ONE SessionGuard and ONE RequestIdCounter:

    ConnectionSupervisor
      ├── SessionGuard        (current session, single lock)
      ├── Reconnector         (inline in the pump thread)
      ├── ResponsePump        (daemon thread)
      └── HealthPoller        (caller's thread, usually main)

STRICT RULES:
- ❌ Nothing else opens, closes or swaps sessions
- ✅ Every request id comes from the shared counter (never reset)
- ✅ A fatal pump error stops everything and is re-raised by run_forever()
"""

import threading
from typing import List, Optional

from light_node.domain.models import Session
from light_node.logging.logger_config import get_component_logger
from light_node.output.sink import ResponseSink, SinkRegistry
from light_node.rpc.requests import RequestIdCounter
from light_node.session.engine import SessionEngine
from light_node.session.guard import SessionGuard
from light_node.supervisor.health_poll import DEFAULT_POLL_INTERVAL, HealthPoller
from light_node.supervisor.reconnect import DEFAULT_RETRY_DELAY, Reconnector
from light_node.supervisor.response_pump import ResponsePump

logger = get_component_logger('supervisor')

PUMP_JOIN_TIMEOUT = 5.0


class ConnectionSupervisor:

    def __init__(
        self,
        engine: SessionEngine,
        chain_spec: str,
        sinks: Optional[List[ResponseSink]] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        self.stop_event = threading.Event()
        self.request_ids = RequestIdCounter()
        self.sinks = SinkRegistry(sinks)

        self.guard = SessionGuard(engine)
        self.reconnector = Reconnector(
            self.guard,
            chain_spec,
            self.request_ids,
            self.stop_event,
            retry_delay=retry_delay,
        )
        self.pump = ResponsePump(
            self.guard,
            self.reconnector,
            self.sinks,
            self.stop_event,
            on_fatal=self._on_fatal,
        )
        self.poller = HealthPoller(
            self.guard,
            self.request_ids,
            self.stop_event,
            interval=poll_interval,
        )

        self._fatal_error: Optional[Exception] = None
        self._fatal_lock = threading.Lock()

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------

    @property
    def fatal_error(self) -> Optional[Exception]:
        with self._fatal_lock:
            return self._fatal_error

    @property
    def session(self) -> Optional[Session]:
        return self.guard.current()

    def register_sink(self, sink: ResponseSink) -> None:
        self.sinks.register(sink)

    def _on_fatal(self, exc: Exception) -> None:
        with self._fatal_lock:
            if self._fatal_error is None:
                self._fatal_error = exc
        logger.critical("❌ FATAL: %s — stopping supervisor", exc)
        self.stop_event.set()

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    def start(self) -> Optional[Session]:
        """
        Connect (retrying opens forever), subscribe, and start the pump.

        Returns:
            the initial session, or None if stopped before connecting

        Raises:
            SubscriptionError: bootstrap subscriptions failed
        """
        logger.info("🚀 STARTUP: connecting session")
        session = self.reconnector.connect()
        if session is None:
            return None
        self.pump.start()
        return session

    def run_forever(self) -> None:
        """
        start() then run the poll loop in the calling thread until stopped.

        Raises:
            the fatal error that stopped the supervisor, if any
        """
        try:
            if self.start() is not None:
                self.poller.run()
        finally:
            self.shutdown()

        if self.fatal_error is not None:
            raise self.fatal_error

    def stop(self) -> None:
        """Request a stop; safe from signal handlers and other threads."""
        if not self.stop_event.is_set():
            logger.info("🛑 SHUTDOWN: stop requested")
        self.stop_event.set()

    def shutdown(self) -> None:
        self.stop()
        self.pump.join(timeout=PUMP_JOIN_TIMEOUT)
        if self.pump.is_alive():
            logger.warning("⚠️  Response pump did not exit within %.1fs", PUMP_JOIN_TIMEOUT)
        self.guard.close_current()
        logger.info("🛑 SHUTDOWN: supervisor stopped")
