"""
Response sinks.

A sink is any callable taking one response text. The ResponsePump forwards
each response to every registered sink, in registration order.
"""

import sys
import threading
from typing import Callable, List, Optional, TextIO

from colorama import Fore, Style

ResponseSink = Callable[[str], None]

RESPONSE_PREFIX = "JSON-RPC response:"


class ConsoleSink:
    """Writes `JSON-RPC response: <text>` lines to stdout (colored on a TTY)."""

    def __init__(self, stream: Optional[TextIO] = None, color: Optional[bool] = None):
        self._stream = stream or sys.stdout
        if color is None:
            color = hasattr(self._stream, "isatty") and self._stream.isatty()
        self._prefix = (
            f"{Fore.CYAN}{RESPONSE_PREFIX}{Style.RESET_ALL}" if color else RESPONSE_PREFIX
        )
        self._lock = threading.Lock()

    def __call__(self, response: str) -> None:
        with self._lock:
            self._stream.write(f"{self._prefix} {response}\n")
            self._stream.flush()


class SinkRegistry:
    """Thread-safe list of sinks (register/unregister while the pump runs)."""

    def __init__(self, sinks: Optional[List[ResponseSink]] = None):
        self._sinks: List[ResponseSink] = list(sinks or [])
        self._lock = threading.Lock()

    def register(self, sink: ResponseSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def unregister(self, sink: ResponseSink) -> bool:
        with self._lock:
            try:
                self._sinks.remove(sink)
                return True
            except ValueError:
                return False

    def snapshot(self) -> List[ResponseSink]:
        with self._lock:
            return list(self._sinks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sinks)
