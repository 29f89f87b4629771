"""
Response stream
===============

Ordered, thread-safe channel of JSON-RPC response texts produced by a session
engine and drained by the ResponsePump.

Producers call push() for each response and finish() exactly once when the
session goes away. Consumers call read(timeout); a timeout yields None so the
consumer can check its stop flag, end-of-stream raises StreamTerminatedError.
"""

import queue
import threading
from typing import Optional

from light_node.session.errors import StreamTerminatedError


_END_OF_STREAM = object()


class ResponseStream:
    """Single-consumer FIFO of response texts with an end-of-stream marker."""

    def __init__(self, maxsize: int = 0):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._finished = threading.Event()
        self._drained = False

    def push(self, response: str) -> None:
        if self._finished.is_set():
            return
        self._queue.put(response)

    def finish(self) -> None:
        """Mark end-of-stream. Idempotent."""
        if self._finished.is_set():
            return
        self._finished.set()
        self._queue.put(_END_OF_STREAM)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def read(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Return the next response, or None if nothing arrived within timeout.

        Raises:
            StreamTerminatedError: once every pushed response was consumed
                and the producer called finish().
        """
        if self._drained:
            raise StreamTerminatedError("response stream ended")

        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _END_OF_STREAM:
            self._drained = True
            raise StreamTerminatedError("response stream ended")
        return item

    def pending(self) -> int:
        """Approximate number of unread responses."""
        return self._queue.qsize()
