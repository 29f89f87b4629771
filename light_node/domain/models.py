#!/usr/bin/env python3
"""
Data Models Module
Contains data classes and enums shared by the supervisor components
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from light_node.session.stream import ResponseStream


JSONRPC_VERSION = "2.0"


@dataclass(frozen=True)
class Session:
    """One active connection to a chain. Replaced wholesale on reconnect."""
    session_id: int
    responses: ResponseStream = field(compare=False, repr=False)
    user_data: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class JsonRpcRequest:
    """Data class for a single JSON-RPC request"""
    request_id: int
    method: str
    params: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        # Key order is part of the canonical text
        return {
            "id": self.request_id,
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "params": list(self.params),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass(frozen=True)
class HealthSnapshot:
    """Decoded `system_health` result. Consumed once, never stored."""
    is_syncing: bool
    peers: int
    should_have_peers: bool

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "HealthSnapshot":
        return cls(
            is_syncing=result["isSyncing"],
            peers=result["peers"],
            should_have_peers=result["shouldHavePeers"],
        )


class HealthVerdict(Enum):
    """Outcome of evaluating one response text"""
    NOT_APPLICABLE = "not_applicable"
    HEALTHY = "healthy"
    NEEDS_RECONNECT = "needs_reconnect"


class ReconnectState(Enum):
    """Reconnect loop state"""
    IDLE = "idle"
    CLOSING = "closing"
    OPENING = "opening"
    RESUBSCRIBING = "resubscribing"
