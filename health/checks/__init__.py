# ============================================================================
# BUILT-IN HEALTH INDICATORS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Built-in indicator implementations
# PURPOSE: Indicators every service gets without writing a probe
# CREATED: 19 OCT 2026
# ============================================================================
"""
Built-in Health Indicators

- diskSpace (critical): free space on the configured path vs threshold
- process (non-critical): pid, interpreter, memory and cpu counters

Register them with:
    register_builtin_indicators(registry, config.health_indicators)
"""

from core.config import HealthIndicatorDefaults
from health.checks.disk import check_disk_space, disk_space_indicator
from health.checks.process import check_process, process_indicator
from health.registry import HealthIndicatorRegistry


def register_builtin_indicators(
    registry: HealthIndicatorRegistry,
    settings: HealthIndicatorDefaults = None,
) -> None:
    """Add diskSpace and process to the registry, honoring enabled flags."""
    settings = settings or HealthIndicatorDefaults()

    registry.add(disk_space_indicator(
        path=settings.disk_space_path,
        threshold_bytes=settings.disk_space_threshold_bytes,
        enabled=settings.disk_space_enabled,
    ))
    registry.add(process_indicator(enabled=settings.process_enabled))


__all__ = [
    "check_disk_space",
    "disk_space_indicator",
    "check_process",
    "process_indicator",
    "register_builtin_indicators",
]
