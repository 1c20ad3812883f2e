# ============================================================================
# PROCESS RUNTIME COUNTERS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core - Process introspection helpers
# PURPOSE: Uptime and memory counters shared by health checks and dumps
# CREATED: 19 OCT 2026
# ============================================================================
"""
Process Runtime Counters

Thin wrappers over psutil for the counters that several components stamp
onto their results. Values that the host refuses to expose are reported as
UNAVAILABLE rather than omitted.
"""

import logging
import os
import time
from typing import Any, Dict, Optional

import psutil

logger = logging.getLogger(__name__)

UNAVAILABLE = "unavailable"

_import_time = time.time()

_process: Optional[psutil.Process] = None
_process_pid: Optional[int] = None


def current_process() -> psutil.Process:
    """psutil handle for this process, recreated after a fork."""
    global _process, _process_pid
    pid = os.getpid()
    if _process is None or _process_pid != pid:
        _process = psutil.Process(pid)
        _process_pid = pid
    return _process


def process_start_time() -> float:
    """Process creation time as a UNIX timestamp."""
    try:
        return current_process().create_time()
    except (psutil.Error, OSError) as e:
        logger.debug(f"Process create_time unavailable: {e}")
        return _import_time


def process_uptime_seconds() -> float:
    """Seconds elapsed since the process started."""
    return max(0.0, time.time() - process_start_time())


def memory_usage() -> Dict[str, Any]:
    """Resident and virtual memory of this process in bytes."""
    try:
        info = current_process().memory_info()
    except (psutil.Error, OSError) as e:
        logger.debug(f"Process memory_info unavailable: {e}")
        return {"rss": UNAVAILABLE, "vms": UNAVAILABLE}
    return {"rss": info.rss, "vms": info.vms}


__all__ = [
    "UNAVAILABLE",
    "current_process",
    "process_start_time",
    "process_uptime_seconds",
    "memory_usage",
]
