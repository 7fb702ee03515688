"""
extp - Prometheus Metrics

Counters for Grafana commands, access checks and the access cache.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram, Info

# Grafana command executor
GRAFANA_COMMANDS = Counter(
    "extp_grafana_commands_total",
    "Commands sent to Grafana",
    ["verb", "status"],
)

GRAFANA_COMMAND_DURATION = Histogram(
    "extp_grafana_command_duration_seconds",
    "Grafana command duration in seconds",
    ["verb"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Provisioning workflow
PROVISIONING_FAILURES = Counter(
    "extp_provisioning_failures_total",
    "Org provisioning workflow failures",
    ["step"],
)

# Access checks
ACCESS_DECISIONS = Counter(
    "extp_access_decisions_total",
    "Access key decisions",
    ["allowed", "reason"],
)

ACCESS_CACHE_HITS = Counter(
    "extp_access_cache_hits_total",
    "Access checks answered from cache",
)

SERVICE_INFO = Info(
    "extp",
    "External component provisioning build information",
)
SERVICE_INFO.info({
    "version": "1.0.0",
    "service": "extp",
})
