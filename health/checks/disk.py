# ============================================================================
# DISK SPACE HEALTH CHECK
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Built-in indicator
# PURPOSE: Report DOWN when free disk space drops below a threshold
# CREATED: 19 OCT 2026
# ============================================================================
"""
Disk Space Health Check

Critical by default: a full disk usually means the process cannot write logs
or dumps. The psutil call is blocking, so it runs in a worker thread.
"""

import asyncio
import logging
import os

import psutil

from health.core import CheckResult, HealthIndicator

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_BYTES = 10 * 1024 * 1024  # 10 MB


async def check_disk_space(path: str, threshold_bytes: int) -> CheckResult:
    """
    Compare free space on the filesystem holding `path` to a threshold.

    Returns UNKNOWN (not DOWN) when the path cannot be inspected.
    """
    try:
        usage = await asyncio.to_thread(psutil.disk_usage, path)
    except (OSError, psutil.Error) as e:
        logger.warning(f"Disk space check failed for {path}: {e}")
        return CheckResult.unknown(error=str(e), path=path, exists=os.path.exists(path))

    details = {
        "total": usage.total,
        "free": usage.free,
        "threshold": threshold_bytes,
        "path": path,
        "exists": True,
    }
    if usage.free >= threshold_bytes:
        return CheckResult.up(**details)
    return CheckResult.down(**details)


def disk_space_indicator(
    path: str = None,
    threshold_bytes: int = DEFAULT_THRESHOLD_BYTES,
    enabled: bool = True,
    critical: bool = True,
) -> HealthIndicator:
    """Build the diskSpace indicator."""
    path = path or os.getcwd()

    async def probe() -> CheckResult:
        return await check_disk_space(path, threshold_bytes)

    return HealthIndicator(
        name="diskSpace",
        probe=probe,
        enabled=enabled,
        critical=critical,
    )


__all__ = [
    "check_disk_space",
    "disk_space_indicator",
    "DEFAULT_THRESHOLD_BYTES",
]
