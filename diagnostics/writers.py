# ============================================================================
# HEAP SNAPSHOT WRITERS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Diagnostics - Snapshot strategies
# PURPOSE: Native tracemalloc snapshot and synthetic JSON memory report
# CREATED: 19 OCT 2026
# ============================================================================
"""
Heap Snapshot Writers

Two strategies behind one interface:
- NativeSnapshotWriter: tracemalloc.take_snapshot().dump(path). Needs
  allocation tracing to be active.
- SyntheticReportWriter: JSON report assembled from psutil, gc and
  tracemalloc counters. Always available.

The writer is chosen once by select_writer(). Writers only ever write the
path they are given; the generator hands them a temp path and renames the
result into place.

Each writer splits its work in two:
- capture(): runs on the event loop thread (cheap, touches loop state)
- write(): blocking file I/O, run in a worker thread
"""

import asyncio
import gc
import json
import os
import platform
import sys
import threading
import tracemalloc
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.errors import DumpIOError
from core.logging import ComponentType, get_logger
from core.runtime import UNAVAILABLE, memory_usage

logger = get_logger(__name__, ComponentType.HEAP_DUMP)

MAX_DEPTH_MARKER = "<max depth reached>"
TOP_ALLOCATIONS = 25
TOP_OBJECT_TYPES = 25


def truncate_depth(value: Any, max_depth: int, _depth: int = 0) -> Any:
    """
    Copy nested dicts/lists, replacing anything deeper than max_depth.

    Non-container leaves are passed through unchanged.
    """
    if isinstance(value, dict):
        if _depth >= max_depth:
            return MAX_DEPTH_MARKER
        return {str(k): truncate_depth(v, max_depth, _depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        if _depth >= max_depth:
            return MAX_DEPTH_MARKER
        return [truncate_depth(v, max_depth, _depth + 1) for v in value]
    return value


class SnapshotWriter(ABC):
    """Strategy for producing a memory snapshot file."""

    strategy: str = "abstract"

    def available(self) -> bool:
        """Whether the strategy can run in this process right now."""
        return True

    def capture(self) -> Any:
        """Collect loop-thread state before write(); default is nothing."""
        return None

    @abstractmethod
    def write(self, path: str, captured: Any) -> None:
        """
        Write the snapshot to path (blocking).

        Raises:
            DumpIOError: If the snapshot cannot be produced or written
        """
        raise NotImplementedError


class NativeSnapshotWriter(SnapshotWriter):
    """tracemalloc snapshot in its native binary dump format."""

    strategy = "native"

    def available(self) -> bool:
        return tracemalloc.is_tracing()

    def write(self, path: str, captured: Any) -> None:
        if not tracemalloc.is_tracing():
            raise DumpIOError(
                "tracemalloc is not tracing", path=path, strategy=self.strategy
            )
        try:
            snapshot = tracemalloc.take_snapshot()
            snapshot.dump(path)
        except (OSError, RuntimeError) as e:
            raise DumpIOError(
                f"Native snapshot failed: {e}", path=path, strategy=self.strategy
            ) from e


class SyntheticReportWriter(SnapshotWriter):
    """
    JSON memory report for hosts without allocation tracing.

    Sections:
    - memoryUsage: rss/vms from psutil
    - gc: generation counts, thresholds, per-generation stats, object types
    - tracemalloc: top allocation sites when tracing, else {"tracing": false}
    - modules: loaded module inventory
    - runtime: thread and task counts
    """

    strategy = "synthetic"

    def __init__(self, max_depth: int = 10):
        self.max_depth = max_depth

    def capture(self) -> Dict[str, Any]:
        """Loop-bound state only; the report itself is built in write()."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tasks": self._task_count(),
        }

    def write(self, path: str, captured: Any) -> None:
        report = self.build_report(captured if captured is not None else self.capture())
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, default=str)
        except (OSError, TypeError, ValueError) as e:
            raise DumpIOError(
                f"Synthetic report failed: {e}", path=path, strategy=self.strategy
            ) from e

    def build_report(self, captured: Dict[str, Any]) -> Dict[str, Any]:
        """Assemble the full report. Walks the gc heap, so keep it off the loop thread."""
        report = {
            "format": "synthetic-heap-report",
            "version": 1,
            "timestamp": captured.get("timestamp", datetime.now(timezone.utc).isoformat()),
            "pid": os.getpid(),
            "pythonVersion": platform.python_version(),
            "implementation": platform.python_implementation(),
            "memoryUsage": memory_usage(),
            "gc": self._gc_section(),
            "tracemalloc": self._tracemalloc_section(),
            "modules": self._modules_section(),
            "runtime": {
                "threads": threading.active_count(),
                "tasks": captured.get("tasks", UNAVAILABLE),
            },
            "note": (
                "Synthetic memory report. Start tracemalloc "
                "(HEAPDUMP_START_TRACEMALLOC=true) for allocation snapshots."
            ),
        }
        return truncate_depth(report, self.max_depth)

    @staticmethod
    def _gc_section() -> Dict[str, Any]:
        objects = gc.get_objects()
        type_counts = Counter(type(obj).__name__ for obj in objects)
        return {
            "enabled": gc.isenabled(),
            "counts": list(gc.get_count()),
            "thresholds": list(gc.get_threshold()),
            "stats": gc.get_stats(),
            "trackedObjects": len(objects),
            "topTypes": [
                {"type": name, "count": count}
                for name, count in type_counts.most_common(TOP_OBJECT_TYPES)
            ],
        }

    @staticmethod
    def _tracemalloc_section() -> Dict[str, Any]:
        if not tracemalloc.is_tracing():
            return {"tracing": False}

        current, peak = tracemalloc.get_traced_memory()
        stats = tracemalloc.take_snapshot().statistics("lineno")
        top: List[Dict[str, Any]] = []
        for stat in stats[:TOP_ALLOCATIONS]:
            frame = stat.traceback[0]
            top.append({
                "file": frame.filename,
                "line": frame.lineno,
                "sizeBytes": stat.size,
                "count": stat.count,
            })
        return {
            "tracing": True,
            "current": current,
            "peak": peak,
            "topAllocations": top,
        }

    @staticmethod
    def _modules_section() -> Dict[str, Any]:
        names = sorted(name for name in list(sys.modules) if name)
        return {"count": len(names), "names": names}

    @staticmethod
    def _task_count() -> Any:
        try:
            return len(asyncio.all_tasks())
        except RuntimeError:
            return UNAVAILABLE


def select_writer(start_tracemalloc: bool = False, max_depth: int = 10) -> SnapshotWriter:
    """
    Pick the snapshot strategy for this process.

    Args:
        start_tracemalloc: Start allocation tracing if it is not running
        max_depth: Nesting limit for the synthetic report

    Returns:
        NativeSnapshotWriter when tracing is active, else SyntheticReportWriter
    """
    if start_tracemalloc and not tracemalloc.is_tracing():
        tracemalloc.start()
        logger.info("Started tracemalloc for native heap snapshots")

    if tracemalloc.is_tracing():
        return NativeSnapshotWriter()

    logger.info("tracemalloc not tracing; heap dumps use the synthetic report")
    return SyntheticReportWriter(max_depth=max_depth)


def fallback_writer(writer: SnapshotWriter, max_depth: int = 10) -> Optional[SnapshotWriter]:
    """Writer to try after `writer` fails, or None if it is already the fallback."""
    if isinstance(writer, SyntheticReportWriter):
        return None
    return SyntheticReportWriter(max_depth=max_depth)


__all__ = [
    "MAX_DEPTH_MARKER",
    "SnapshotWriter",
    "NativeSnapshotWriter",
    "SyntheticReportWriter",
    "select_writer",
    "fallback_writer",
    "truncate_depth",
]
