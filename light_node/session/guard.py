"""
Session guard
=============

Single owner of the *current* session. Every read or write of "the current
session" goes through one RLock:

    submit          - health polls and bootstrap subscriptions
    close           - best-effort teardown of the current session
    open            - one open attempt (retry waits happen OUTSIDE the lock)
    install         - swap in a new session and wake waiters

While no session is installed (between close and install) the guard is
"unavailable": submit() fails fast with SessionUnavailableError instead of
blocking for the whole outage.
"""

import threading
from typing import Any, Optional

from light_node.domain.models import Session
from light_node.logging.logger_config import get_component_logger
from light_node.monitoring import metrics
from light_node.session.engine import SessionEngine
from light_node.session.errors import SessionCloseError, SessionUnavailableError
from light_node.session.stream import ResponseStream

logger = get_component_logger('session')


class SessionGuard:

    def __init__(self, engine: SessionEngine):
        self._engine = engine
        # RLock: resubscribe + install run as one nested critical section
        self._lock = threading.RLock()
        self._installed = threading.Condition(self._lock)
        self._session: Optional[Session] = None

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def engine(self) -> SessionEngine:
        return self._engine

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------

    def current(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def is_available(self) -> bool:
        with self._lock:
            return self._session is not None

    def stream(self) -> ResponseStream:
        with self._lock:
            if self._session is None:
                raise SessionUnavailableError("no session installed")
            return self._session.responses

    # ------------------------------------------------------------------
    # CRITICAL SECTIONS
    # ------------------------------------------------------------------

    def submit(self, request_text: str) -> int:
        """
        Submit through the installed session.

        Returns:
            id of the session the request was queued on
        """
        with self._lock:
            if self._session is None:
                raise SessionUnavailableError("session unavailable (reconnect in progress)")
            session_id = self._session.session_id
            self._engine.submit(session_id, request_text)
            return session_id

    def submit_to(self, session: Session, request_text: str) -> None:
        """Submit to a specific (not yet installed) session."""
        with self._lock:
            self._engine.submit(session.session_id, request_text)

    def open(self, specification: str, database: str = "", user_data: Any = None) -> Session:
        """One open attempt. Does not install the result."""
        with self._lock:
            return self._engine.open(specification, database, user_data)

    def install(self, session: Session) -> None:
        with self._installed:
            self._session = session
            metrics.session_available.set(1)
            self._installed.notify_all()
        logger.info("Session %s installed", session.session_id)

    def close_current(self) -> Optional[Session]:
        """
        Uninstall and close the current session (best effort).

        Returns:
            the session that was uninstalled, or None if none was installed
        """
        with self._lock:
            session = self._session
            self._session = None
            metrics.session_available.set(0)
            if session is None:
                logger.debug("close_current: no session installed")
                return None
            self.close_session(session)
            return session

    def close_session(self, session: Session) -> None:
        """Close a session id, logging and ignoring engine failures."""
        with self._lock:
            try:
                self._engine.close(session.session_id)
                logger.info("Session %s closed", session.session_id)
            except SessionCloseError as exc:
                logger.warning("Closing session %s failed (ignored): %s", session.session_id, exc)

    # ------------------------------------------------------------------
    # WAITING
    # ------------------------------------------------------------------

    def wait_for_session(
        self,
        stop_event: threading.Event,
        poll: float = 0.5,
    ) -> Optional[Session]:
        """
        Block until a session is installed or stop_event is set.

        Returns:
            the installed session, or None when stopping
        """
        with self._installed:
            while self._session is None:
                if stop_event.is_set():
                    return None
                self._installed.wait(timeout=poll)
            return self._session
