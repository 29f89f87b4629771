"""
JSON-RPC request construction.

All requests issued by the process draw their id from one RequestIdCounter.
The counter is never reset, not even across reconnects, so replies that are
still in flight from a closed session can never collide with new requests.
"""

import threading
from typing import Any, List, Optional

from light_node.domain.models import JsonRpcRequest


NEW_HEADS_METHOD = "chain_subscribeNewHeads"
JUSTIFICATIONS_METHOD = "grandpa_subscribeJustifications"
HEALTH_METHOD = "system_health"

# Issued, in this order, after every successful (re)connect
BOOTSTRAP_METHODS = (NEW_HEADS_METHOD, JUSTIFICATIONS_METHOD)


class RequestIdCounter:
    """Thread-safe, strictly increasing request id source starting at 1."""

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """Id the next call to next() will return."""
        with self._lock:
            return self._next


def build_request(method: str, params: Optional[List[Any]], request_id: int) -> str:
    """Return canonical request text, e.g. {"id":3,"jsonrpc":"2.0","method":"system_health","params":[]}"""
    return JsonRpcRequest(request_id, method, list(params or [])).to_json()
