#!/usr/bin/env python3
"""
Session error taxonomy.

Everything the supervisor can recover from (or must die on) while talking to
the session engine derives from SessionError, so callers can decide per
subclass whether to retry, skip, or abort.
"""


class SessionError(Exception):
    """Base class for session engine failures."""
    pass


class SessionOpenError(SessionError):
    """Engine refused or failed to open a session (transient, retried)."""
    pass


class SessionSubmitError(SessionError):
    """Engine did not accept a request for queuing."""
    pass


class SessionCloseError(SessionError):
    """Engine failed to close a session (logged, never fatal)."""
    pass


class SessionUnavailableError(SessionError):
    """No session is installed, usually because a reconnect is in flight."""
    pass


class StreamTerminatedError(SessionError):
    """Response stream ended without an unhealthy signal."""
    pass


class SubscriptionError(SessionError):
    """Bootstrap subscriptions failed against a freshly opened session."""
    pass
