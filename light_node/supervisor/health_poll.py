"""
Health Poll Loop
================

Submits `system_health` once per poll_interval, through the SessionGuard,
for the life of the process. Replies are not awaited here: they come back on
the response stream and the ResponsePump evaluates them.

Submission failures (including "unavailable" while a reconnect is running)
are logged and skipped until the next tick.
"""

import threading

from light_node.logging.logger_config import get_component_logger
from light_node.monitoring import metrics
from light_node.rpc.requests import HEALTH_METHOD, RequestIdCounter, build_request
from light_node.session.errors import SessionError
from light_node.session.guard import SessionGuard

logger = get_component_logger('health_poll')

DEFAULT_POLL_INTERVAL = 1.0


class HealthPoller:

    def __init__(
        self,
        guard: SessionGuard,
        request_ids: RequestIdCounter,
        stop_event: threading.Event,
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._guard = guard
        self._ids = request_ids
        self._stop_event = stop_event
        self.interval = interval
        self.polls = 0
        self.skipped = 0

    def poll_once(self) -> bool:
        """Returns True if the request was queued."""
        request = build_request(HEALTH_METHOD, [], self._ids.next())
        logger.info("JSON-RPC health req: %s", request)
        self.polls += 1

        try:
            session_id = self._guard.submit(request)
        except SessionError as exc:
            self.skipped += 1
            metrics.health_polls_total.labels(outcome="skipped").inc()
            logger.warning("JSON-RPC health response: Err(%s) — skipped", exc)
            return False

        metrics.health_polls_total.labels(outcome="queued").inc()
        logger.info("JSON-RPC health response: Ok (session=%s)", session_id)
        return True

    def run(self) -> None:
        """Blocking loop; returns once stop_event is set."""
        logger.info("🚀 Health poll loop started (interval=%.1fs)", self.interval)
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.interval)
        logger.info("🛑 Health poll loop stopped")
