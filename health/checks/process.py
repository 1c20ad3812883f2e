# ============================================================================
# PROCESS HEALTH CHECK
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Built-in indicator
# PURPOSE: Basic process facts (always UP if the probe runs)
# CREATED: 19 OCT 2026
# ============================================================================
"""
Process Health Check

Non-critical. Reports pid, interpreter and resource counters. The probe
running at all proves the event loop is serving requests.
"""

import logging
import os
import platform
import sys

import psutil

from core.runtime import UNAVAILABLE, current_process, memory_usage, process_uptime_seconds
from health.core import CheckResult, HealthIndicator

logger = logging.getLogger(__name__)


async def check_process() -> CheckResult:
    try:
        cpu = current_process().cpu_times()
        cpu_usage = {"user": cpu.user, "system": cpu.system}
    except (psutil.Error, OSError) as e:
        logger.debug(f"cpu_times unavailable: {e}")
        cpu_usage = UNAVAILABLE

    return CheckResult.up(
        pid=os.getpid(),
        pythonVersion=platform.python_version(),
        platform=sys.platform,
        uptime=round(process_uptime_seconds(), 3),
        memoryUsage=memory_usage(),
        cpuUsage=cpu_usage,
    )


def process_indicator(enabled: bool = True, critical: bool = False) -> HealthIndicator:
    """Build the process indicator."""
    return HealthIndicator(
        name="process",
        probe=check_process,
        enabled=enabled,
        critical=critical,
    )


__all__ = [
    "check_process",
    "process_indicator",
]
