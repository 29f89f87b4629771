"""
Response Pump
=============

Background thread draining the *current* session's response stream.

Per response, in order:
    1. forward verbatim to every sink (a failing sink is logged, not fatal)
    2. evaluate health; NEEDS_RECONNECT runs the Reconnector inline, then
       the pump blocks until a session is installed and resumes on its stream

Fatal (reported through on_fatal, never retried):
    - StreamTerminatedError: stream ended with no unhealthy signal
    - SubscriptionError: the reconnected session could not resubscribe
    - any other exception escaping the loop (logged with its traceback)
"""

import threading
from typing import Callable, Optional

from light_node.domain.models import HealthVerdict
from light_node.logging.logger_config import get_component_logger
from light_node.monitoring import metrics
from light_node.output.sink import SinkRegistry
from light_node.rpc.health import evaluate_health
from light_node.session.errors import SessionError
from light_node.session.guard import SessionGuard
from light_node.session.stream import ResponseStream
from light_node.supervisor.reconnect import Reconnector
from light_node.utils.utils import log_exception

logger = get_component_logger('response_pump')

# Read timeout only bounds how long a stop request can go unnoticed
READ_TIMEOUT = 0.5


class ResponsePump:

    def __init__(
        self,
        guard: SessionGuard,
        reconnector: Reconnector,
        sinks: SinkRegistry,
        stop_event: threading.Event,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        self._guard = guard
        self._reconnector = reconnector
        self._sinks = sinks
        self._stop_event = stop_event
        self._on_fatal = on_fatal
        self._thread: Optional[threading.Thread] = None
        self.forwarded = 0

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("Response pump already running")
            return
        self._thread = threading.Thread(target=self.run, name="ResponsePump", daemon=True)
        self._thread.start()
        logger.info("🚀 Response pump started")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # ------------------------------------------------------------------
    # LOOP
    # ------------------------------------------------------------------

    def run(self) -> None:
        try:
            stream = self._next_stream()
            while stream is not None and not self._stop_event.is_set():
                response = stream.read(timeout=READ_TIMEOUT)
                if response is None:
                    continue
                if self.handle_response(response):
                    stream = self._next_stream()
        except SessionError as exc:
            if self._stop_event.is_set():
                logger.info("Response pump stopping: %s", exc)
            else:
                logger.critical("❌ Response pump failed: %s", exc)
                if self._on_fatal:
                    self._on_fatal(exc)
                else:
                    raise
        except Exception as exc:
            # Anything else (engine OSError, collaborator bug) is fatal too
            log_exception("ResponsePump.run", exc)
            if self._on_fatal:
                self._on_fatal(exc)
            else:
                raise
        logger.info("🛑 Response pump stopped")

    def _next_stream(self) -> Optional[ResponseStream]:
        session = self._guard.wait_for_session(self._stop_event)
        if session is None:
            return None
        logger.info("Draining response stream of session %s", session.session_id)
        return session.responses

    # ------------------------------------------------------------------
    # PER-RESPONSE
    # ------------------------------------------------------------------

    def handle_response(self, response: str) -> bool:
        """
        Forward one response and act on its health verdict.

        Returns:
            True when the session was replaced (caller must switch streams)
        """
        for sink in self._sinks.snapshot():
            try:
                sink(response)
            except Exception as exc:
                logger.error("Sink %r failed: %s", sink, exc, exc_info=True)
        self.forwarded += 1
        metrics.responses_total.inc()

        verdict = evaluate_health(response)
        if verdict is HealthVerdict.NOT_APPLICABLE:
            return False

        metrics.health_verdicts_total.labels(verdict=verdict.value).inc()
        if verdict is HealthVerdict.HEALTHY:
            return False

        logger.warning("⚠️  Unhealthy health reply — handing over to reconnect loop")
        self._reconnector.reconnect()
        return True
