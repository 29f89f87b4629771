"""
Session engine contract.

The engine is the black box that actually talks to the network (connection
establishment, block sync, proof verification). The supervisor only needs to
open, close and submit; replies arrive asynchronously on the session's
ResponseStream.
"""

from abc import ABC, abstractmethod
from typing import Any

from light_node.domain.models import Session


class SessionEngine(ABC):
    """
    Thread-safe by contract. Implementations may be called concurrently from
    the response pump thread and the health poll thread, although the
    supervisor serializes its own calls through SessionGuard.
    """

    @abstractmethod
    def open(self, specification: str, database: str = "", user_data: Any = None) -> Session:
        """
        Start a session for the given chain specification.

        Raises:
            SessionOpenError: the session could not be started.
        """

    @abstractmethod
    def close(self, session_id: int) -> None:
        """
        Tear a session down. Closing an unknown or already closed id is a no-op.

        Raises:
            SessionCloseError: the engine failed while releasing resources.
        """

    @abstractmethod
    def submit(self, session_id: int, request_text: str) -> None:
        """
        Queue a JSON-RPC request. Only queuing is synchronous; replies arrive
        on the session's response stream.

        Raises:
            SessionSubmitError: the request was not accepted.
        """
