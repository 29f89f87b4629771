#!/usr/bin/env python3
"""
===============================================================================
RECONNECT LOOP - CLOSE → OPEN (RETRY FOREVER) → RESUBSCRIBE → INSTALL
===============================================================================

State machine:

    IDLE → CLOSING → OPENING ──(ok)──→ RESUBSCRIBING → IDLE
                        ↑  │
                        └──┘ (open failed: wait retry_delay, try again)

Lock discipline (see SessionGuard):
    - CLOSING empties the guard, so the session is UNAVAILABLE from here on
    - every OPENING attempt holds the guard lock only for the open call;
      the retry wait happens outside the lock, pollers fail fast meanwhile
    - RESUBSCRIBING and install run in ONE lock acquisition, so nobody can
      submit to the new session before its bootstrap subscriptions

Retry policy: unbounded, fixed delay, no growth. A degraded node with many
supervisors pointed at it will see one open per retry_delay per supervisor.

Only one reconnect runs at a time; a trigger that arrives while one is in
flight is coalesced (returns None immediately).
"""

import threading
from typing import Optional

from light_node.domain.models import ReconnectState, Session
from light_node.logging.logger_config import get_component_logger
from light_node.monitoring import metrics
from light_node.rpc.requests import BOOTSTRAP_METHODS, RequestIdCounter, build_request
from light_node.session.errors import SessionError, SubscriptionError
from light_node.session.guard import SessionGuard

logger = get_component_logger('reconnect')

DEFAULT_RETRY_DELAY = 5.0


class Reconnector:

    def __init__(
        self,
        guard: SessionGuard,
        chain_spec: str,
        request_ids: RequestIdCounter,
        stop_event: threading.Event,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        self._guard = guard
        self._chain_spec = chain_spec
        self._ids = request_ids
        self._stop_event = stop_event
        self.retry_delay = retry_delay

        self._state = ReconnectState.IDLE
        self._in_progress = False
        self._trigger_lock = threading.Lock()

        self.open_attempts = 0
        self.reconnect_count = 0

    @property
    def state(self) -> ReconnectState:
        with self._trigger_lock:
            return self._state

    @property
    def in_progress(self) -> bool:
        with self._trigger_lock:
            return self._in_progress

    def _set_state(self, state: ReconnectState) -> None:
        with self._trigger_lock:
            previous, self._state = self._state, state
        if state is not previous:
            logger.debug("Reconnect state %s → %s", previous.value, state.value)

    # ------------------------------------------------------------------
    # ENTRY POINTS
    # ------------------------------------------------------------------

    def connect(self) -> Optional[Session]:
        """Initial connection: OPENING → RESUBSCRIBING, no close step."""
        return self._run(close_first=False)

    def reconnect(self) -> Optional[Session]:
        """
        Tear down the current session and build a new one.

        Returns:
            the newly installed session; None if another reconnect was already
            running (coalesced) or the supervisor is stopping

        Raises:
            SubscriptionError: bootstrap subscriptions failed on the new session
        """
        return self._run(close_first=True)

    def _run(self, close_first: bool) -> Optional[Session]:
        with self._trigger_lock:
            if self._in_progress:
                logger.info("Reconnect already in progress — trigger coalesced")
                return None
            self._in_progress = True

        try:
            if close_first:
                logger.warning("🔄 Reconnecting session")
                self._set_state(ReconnectState.CLOSING)
                self._guard.close_current()

            self._set_state(ReconnectState.OPENING)
            session = self._open_with_retry()
            if session is None:
                logger.info("Reconnect aborted (stopping)")
                return None
            if self._stop_event.is_set():
                logger.info("Stopping — discarding freshly opened session %s", session.session_id)
                self._guard.close_session(session)
                return None

            self._set_state(ReconnectState.RESUBSCRIBING)
            self._resubscribe_and_install(session)

            if close_first:
                self.reconnect_count += 1
                metrics.reconnects_total.inc()
                logger.info("✅ Reconnected | session=%s", session.session_id)
            else:
                logger.info("✅ Connected | session=%s", session.session_id)
            return session

        finally:
            self._set_state(ReconnectState.IDLE)
            with self._trigger_lock:
                self._in_progress = False

    # ------------------------------------------------------------------
    # STEPS
    # ------------------------------------------------------------------

    def _open_with_retry(self) -> Optional[Session]:
        attempt = 0
        while not self._stop_event.is_set():
            attempt += 1
            self.open_attempts += 1
            try:
                session = self._guard.open(self._chain_spec, database="", user_data=None)
                logger.info("Session %s opened (attempt %d)", session.session_id, attempt)
                return session
            except SessionError as exc:
                metrics.open_failures_total.inc()
                logger.warning(
                    "Open attempt %d failed: %s — retrying in %.1fs",
                    attempt, exc, self.retry_delay,
                )

            # Outside the guard lock; returns True when stopping
            if self._stop_event.wait(self.retry_delay):
                break
        return None

    def _resubscribe_and_install(self, session: Session) -> None:
        with self._guard.lock:
            for method in BOOTSTRAP_METHODS:
                request = build_request(method, [], self._ids.next())
                try:
                    self._guard.submit_to(session, request)
                except SessionError as exc:
                    logger.error(
                        "❌ Subscription %s failed on new session %s: %s",
                        method, session.session_id, exc,
                    )
                    self._guard.close_session(session)
                    raise SubscriptionError(
                        f"{method} failed on session {session.session_id}: {exc}"
                    ) from exc
                logger.info("Subscribed %s | session=%s | %s", method, session.session_id, request)

            self._guard.install(session)
