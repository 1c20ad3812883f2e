# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Indicator registry and aggregation
# PURPOSE: Fold independently-owned probes into one health verdict
# CREATED: 19 OCT 2026
# ============================================================================
"""
Health Check Module

Indicator-based health aggregation:
- HealthIndicator: named async probe with enabled/critical flags
- HealthIndicatorRegistry: ordered, explicitly constructed registry
- HealthAggregator: concurrent execution with per-probe timeouts

Usage:
    from health import HealthAggregator, HealthIndicator, HealthIndicatorRegistry

    registry = HealthIndicatorRegistry()
    registry.add(HealthIndicator(name="db", probe=ping_db, critical=True))

    health = await HealthAggregator(registry, timeout_ms=2000).check()
"""

from health.core import (
    HealthStatus,
    CheckResult,
    HealthIndicator,
    CheckReport,
    AggregateHealth,
    aggregate_status,
)
from health.registry import HealthIndicatorRegistry
from health.executor import HealthAggregator

__all__ = [
    # Core types
    "HealthStatus",
    "CheckResult",
    "HealthIndicator",
    "CheckReport",
    "AggregateHealth",
    "aggregate_status",
    # Registry
    "HealthIndicatorRegistry",
    # Aggregator
    "HealthAggregator",
]
