#!/usr/bin/env python3
"""
Supervisor Metrics
==================

Prometheus collectors updated by the supervisor components.

Exported over HTTP only when METRICS_PORT is configured:

    curl http://localhost:9100/metrics

Integration:
    - Alert on light_node_session_available == 0 for more than a few minutes
    - Alert on a growing light_node_open_failures_total (node storming)
"""

import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

# =====================================================================
# COLLECTORS
# =====================================================================

responses_total = Counter(
    'light_node_responses_total',
    'JSON-RPC responses forwarded to sinks',
)
reconnects_total = Counter(
    'light_node_reconnects_total',
    'Completed reconnects (new session installed)',
)
open_failures_total = Counter(
    'light_node_open_failures_total',
    'Failed session open attempts',
)
health_polls_total = Counter(
    'light_node_health_polls_total',
    'Health poll submissions by outcome',
    ['outcome'],
)
health_verdicts_total = Counter(
    'light_node_health_verdicts_total',
    'Decoded health replies by verdict',
    ['verdict'],
)
session_available = Gauge(
    'light_node_session_available',
    'Session installed and usable (0=no, 1=yes)',
)


def start_metrics_server(port: int) -> bool:
    """Start the exporter. Returns False when disabled (port 0)."""
    if not port:
        logger.info("Metrics exporter disabled")
        return False

    start_http_server(port)
    logger.info("Metrics exporter listening on port %d", port)
    return True
