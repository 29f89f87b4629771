"""
Health evaluation of inbound responses.

Every response drained from the stream is offered here. Subscription
notifications and other replies simply fail to decode as a health reply and
are reported as NOT_APPLICABLE; nothing in this module raises.
"""

import json
import logging
from typing import Any, Optional

from light_node.domain.models import HealthSnapshot, HealthVerdict

logger = logging.getLogger(__name__)

MAX_PEERS = 2 ** 32 - 1


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_peer_count(value: Any) -> bool:
    # bool is an int subclass; true/false is not a peer count
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= MAX_PEERS
    )


def decode_health_response(text: str) -> Optional[HealthSnapshot]:
    """
    Try to decode a `system_health` reply.

    Returns:
        HealthSnapshot if text has the shape
        {"result": {"isSyncing": bool, "peers": uint32, "shouldHavePeers": bool}},
        otherwise None.
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        # RecursionError: pathologically nested arrays/objects
        return None

    if not isinstance(payload, dict):
        return None

    result = payload.get("result")
    if not isinstance(result, dict):
        return None

    if not (
        _is_bool(result.get("isSyncing"))
        and _is_peer_count(result.get("peers"))
        and _is_bool(result.get("shouldHavePeers"))
    ):
        return None

    return HealthSnapshot.from_result(result)


def needs_reconnect(snapshot: HealthSnapshot) -> bool:
    """Stalled connection: not syncing, no peers, and not expecting any."""
    return (
        not snapshot.is_syncing
        and not snapshot.should_have_peers
        and snapshot.peers == 0
    )


def evaluate_health(text: str) -> HealthVerdict:
    snapshot = decode_health_response(text)
    if snapshot is None:
        return HealthVerdict.NOT_APPLICABLE

    if needs_reconnect(snapshot):
        logger.warning(
            "Unhealthy node | syncing=%s peers=%d should_have_peers=%s",
            snapshot.is_syncing, snapshot.peers, snapshot.should_have_peers,
        )
        return HealthVerdict.NEEDS_RECONNECT

    logger.debug(
        "Healthy node | syncing=%s peers=%d should_have_peers=%s",
        snapshot.is_syncing, snapshot.peers, snapshot.should_have_peers,
    )
    return HealthVerdict.HEALTHY
