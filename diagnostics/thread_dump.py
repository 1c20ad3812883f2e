# ============================================================================
# THREAD DUMP COLLECTOR
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Diagnostics - Scheduler and thread state snapshot
# PURPOSE: Structured dump of threads, event loop, tasks and process counters
# CREATED: 19 OCT 2026
# ============================================================================
"""
Thread Dump Collector

Captures a point-in-time view of the process:
- Interpreter threads with their Python stacks (sys._current_frames)
- Event loop state: ready callbacks, scheduled timers, default executor
- Pending asyncio tasks grouped by coroutine
- Tracked task ages (only after install())
- Process, memory and CPU counters from psutil

Capture is synchronous: it never awaits mid-snapshot, so the loop state it
reports is consistent. Anything the host does not expose is reported as
"unavailable"; the shape of the snapshot never changes.

Task tracking:
    collector = ThreadDumpCollector()
    collector.install()     # task factory on the running loop
    ...
    collector.destroy()     # restores the previous factory
"""

import asyncio
import gc
import os
import platform
import sys
import threading
import time
import traceback
import tracemalloc
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import psutil

from core.logging import ComponentType, get_logger
from core.runtime import UNAVAILABLE, current_process, memory_usage, process_uptime_seconds

logger = get_logger(__name__, ComponentType.THREAD_DUMP)

LONGEST_RUNNING_LIMIT = 50
SCHEDULING_MODEL = "asyncio single-threaded cooperative event loop"


def _safe(func: Callable[[], Any], default: Any = UNAVAILABLE) -> Any:
    """Call func, returning default when the host refuses the information."""
    try:
        return func()
    except (psutil.Error, OSError, AttributeError, NotImplementedError) as e:
        logger.debug(f"Thread dump field unavailable: {e}")
        return default


def _format_stack(frame) -> List[str]:
    """Innermost frame first, one 'function (file:line)' entry per frame."""
    if frame is None:
        return []
    entries = traceback.extract_stack(frame)
    return [f"{fs.name} ({fs.filename}:{fs.lineno})" for fs in reversed(entries)]


def _coroutine_name(task: asyncio.Task) -> str:
    coro = task.get_coro()
    if coro is None:
        return UNAVAILABLE
    return getattr(coro, "__qualname__", type(coro).__name__)


@dataclass(frozen=True)
class ThreadDumpSnapshot:
    """One collected dump. to_dict() gives the camelCase JSON shape."""
    timestamp: str
    pid: int
    uptime: float
    python_version: str
    platform: str
    main_thread: Dict[str, Any]
    threads: Tuple[Dict[str, Any], ...]
    event_loop: Dict[str, Any]
    async_operations: Dict[str, Any]
    active_handles: Dict[str, Any]
    active_requests: Dict[str, Any]
    process_info: Dict[str, Any]
    memory_info: Dict[str, Any]
    cpu_info: Dict[str, Any]
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "pid": self.pid,
            "uptime": round(self.uptime, 3),
            "pythonVersion": self.python_version,
            "platform": self.platform,
            "mainThread": self.main_thread,
            "threads": list(self.threads),
            "eventLoop": self.event_loop,
            "asyncOperations": self.async_operations,
            "activeHandles": self.active_handles,
            "activeRequests": self.active_requests,
            "processInfo": self.process_info,
            "memoryInfo": self.memory_info,
            "cpuInfo": self.cpu_info,
            "summary": self.summary,
        }


class ThreadDumpCollector:
    """
    Collects thread dumps and optionally tracks asyncio task lifetimes.

    Tracking is opt-in because the task factory runs on every task creation.
    """

    def __init__(self, longest_running_limit: int = LONGEST_RUNNING_LIMIT):
        self.longest_running_limit = longest_running_limit
        self._tracked: Dict[asyncio.Task, float] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_factory = None

    @property
    def tracking(self) -> bool:
        """Whether the task factory is installed."""
        return self._loop is not None

    # ------------------------------------------------------------------------
    # Task tracking
    # ------------------------------------------------------------------------

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """
        Install the task-tracking factory on a loop (the running one by default).

        Returns:
            True if tracking is active after the call
        """
        if self._loop is not None:
            return True

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("No running event loop; task tracking not installed")
                return False

        self._previous_factory = loop.get_task_factory()
        loop.set_task_factory(self._task_factory)
        self._loop = loop
        logger.debug("Task tracking installed")
        return True

    def destroy(self) -> None:
        """Remove the task factory and forget tracked tasks. Safe to repeat."""
        loop = self._loop
        if loop is not None and not loop.is_closed():
            if loop.get_task_factory() == self._task_factory:
                loop.set_task_factory(self._previous_factory)
            else:
                logger.warning("Task factory was replaced after install; leaving it in place")

        self._loop = None
        self._previous_factory = None
        self._tracked.clear()

    def _task_factory(self, loop, coro, **kwargs):
        if self._previous_factory is not None:
            task = self._previous_factory(loop, coro, **kwargs)
        else:
            task = asyncio.Task(coro, loop=loop, **kwargs)

        self._tracked[task] = time.monotonic()
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tracked.pop(task, None)

    # ------------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------------

    async def collect(self) -> ThreadDumpSnapshot:
        """Capture a snapshot of the current process."""
        return self.capture()

    def capture(self) -> ThreadDumpSnapshot:
        """Synchronous capture; usable from inside or outside a loop."""
        start_time = time.monotonic()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        thread_cpu = _safe(
            lambda: {t.id: t for t in current_process().threads()}, default={}
        )
        frames = sys._current_frames()
        threads = tuple(
            self._thread_info(thread, frames, thread_cpu)
            for thread in threading.enumerate()
        )
        main = threading.main_thread()
        main_thread = self._thread_info(main, frames, thread_cpu)
        main_thread["state"] = "RUNNABLE" if main.is_alive() else "TERMINATED"
        main_thread["cpuTime"] = self._cpu_time(main, thread_cpu)

        active_requests = self._active_requests(loop)
        snapshot = ThreadDumpSnapshot(
            timestamp=datetime.now(timezone.utc).isoformat(),
            pid=os.getpid(),
            uptime=process_uptime_seconds(),
            python_version=platform.python_version(),
            platform=sys.platform,
            main_thread=main_thread,
            threads=threads,
            event_loop=self._event_loop_info(loop),
            async_operations=self._async_operations(),
            active_handles=self._active_handles(loop),
            active_requests=active_requests,
            process_info=self._process_info(),
            memory_info=self._memory_info(),
            cpu_info=self._cpu_info(),
            summary={
                "totalThreads": len(threads),
                "daemonThreads": sum(1 for t in threads if t["daemon"]),
                "pendingTasks": active_requests["count"],
                "trackedTasks": len(self._tracked),
            },
        )

        logger.debug(
            f"Thread dump collected ({len(threads)} threads, "
            f"{(time.monotonic() - start_time) * 1000:.2f}ms)"
        )
        return snapshot

    @staticmethod
    def _thread_info(thread: threading.Thread, frames: Dict[int, Any], thread_cpu: Dict[int, Any]) -> Dict[str, Any]:
        native_id = getattr(thread, "native_id", None)
        return {
            "name": thread.name,
            "ident": thread.ident,
            "nativeId": native_id if native_id is not None else UNAVAILABLE,
            "daemon": thread.daemon,
            "alive": thread.is_alive(),
            "cpuTime": ThreadDumpCollector._cpu_time(thread, thread_cpu),
            "stackTrace": _format_stack(frames.get(thread.ident)),
        }

    @staticmethod
    def _cpu_time(thread: threading.Thread, thread_cpu: Dict[int, Any]) -> Any:
        times = thread_cpu.get(getattr(thread, "native_id", None))
        if times is None:
            return UNAVAILABLE
        return {"user": times.user_time, "system": times.system_time}

    @staticmethod
    def _event_loop_info(loop: Optional[asyncio.AbstractEventLoop]) -> Dict[str, Any]:
        if loop is None:
            return {
                "running": False,
                "loopClass": UNAVAILABLE,
                "debug": UNAVAILABLE,
                "schedulingModel": SCHEDULING_MODEL,
                "scheduledTimers": UNAVAILABLE,
                "readyCallbacks": UNAVAILABLE,
                "defaultExecutor": UNAVAILABLE,
            }

        ready = getattr(loop, "_ready", None)
        scheduled = getattr(loop, "_scheduled", None)
        executor = getattr(loop, "_default_executor", UNAVAILABLE)
        if executor is not None and executor != UNAVAILABLE:
            executor = {
                "class": type(executor).__name__,
                "maxWorkers": getattr(executor, "_max_workers", UNAVAILABLE),
            }

        return {
            "running": loop.is_running(),
            "loopClass": f"{type(loop).__module__}.{type(loop).__name__}",
            "debug": loop.get_debug(),
            "schedulingModel": SCHEDULING_MODEL,
            "scheduledTimers": len(scheduled) if scheduled is not None else UNAVAILABLE,
            "readyCallbacks": len(ready) if ready is not None else UNAVAILABLE,
            "defaultExecutor": executor,
        }

    def _async_operations(self) -> Dict[str, Any]:
        now = time.monotonic()
        ranked = sorted(self._tracked.items(), key=lambda item: item[1])
        longest = [
            {
                "name": task.get_name(),
                "coroutine": _coroutine_name(task),
                "ageMs": round((now - created) * 1000, 2),
                "done": task.done(),
            }
            for task, created in ranked[: self.longest_running_limit]
        ]
        return {
            "tracking": self.tracking,
            "trackedCount": len(self._tracked),
            "longestRunning": longest,
        }

    @staticmethod
    def _active_handles(loop: Optional[asyncio.AbstractEventLoop]) -> Dict[str, Any]:
        if loop is None:
            return {"count": UNAVAILABLE, "types": UNAVAILABLE}

        ready = getattr(loop, "_ready", None)
        scheduled = getattr(loop, "_scheduled", None)
        if ready is None or scheduled is None:
            return {"count": UNAVAILABLE, "types": UNAVAILABLE}

        handles = [h for h in list(ready) + list(scheduled) if not h.cancelled()]
        types = Counter(type(h).__name__ for h in handles)
        return {"count": len(handles), "types": dict(types)}

    @staticmethod
    def _active_requests(loop: Optional[asyncio.AbstractEventLoop]) -> Dict[str, Any]:
        if loop is None:
            return {"count": UNAVAILABLE, "types": UNAVAILABLE}

        tasks = [t for t in asyncio.all_tasks(loop) if not t.done()]
        types = Counter(_coroutine_name(t) for t in tasks)
        return {"count": len(tasks), "types": dict(types)}

    @staticmethod
    def _process_info() -> Dict[str, Any]:
        proc = _safe(current_process, default=None)
        if proc is None:
            return {
                "pid": os.getpid(),
                "ppid": os.getppid(),
                "executable": sys.executable,
                "cwd": _safe(os.getcwd),
                "argv": list(sys.argv),
                "numThreads": threading.active_count(),
                "openFiles": UNAVAILABLE,
            }
        return {
            "pid": proc.pid,
            "ppid": _safe(proc.ppid),
            "executable": sys.executable,
            "cwd": _safe(proc.cwd),
            "argv": list(sys.argv),
            "numThreads": _safe(proc.num_threads),
            "openFiles": _safe(lambda: len(proc.open_files())),
        }

    @staticmethod
    def _memory_info() -> Dict[str, Any]:
        tracing = tracemalloc.is_tracing()
        current, peak = tracemalloc.get_traced_memory() if tracing else (UNAVAILABLE, UNAVAILABLE)
        return {
            **memory_usage(),
            "gcCounts": list(gc.get_count()),
            "gcThresholds": list(gc.get_threshold()),
            "tracemallocTracing": tracing,
            "tracedCurrent": current,
            "tracedPeak": peak,
        }

    @staticmethod
    def _cpu_info() -> Dict[str, Any]:
        proc = _safe(current_process, default=None)
        times = _safe(proc.cpu_times, default=None) if proc is not None else None
        return {
            "user": times.user if times is not None else UNAVAILABLE,
            "system": times.system if times is not None else UNAVAILABLE,
            "percent": _safe(lambda: proc.cpu_percent(interval=None)) if proc is not None else UNAVAILABLE,
            "cpuCount": _safe(psutil.cpu_count),
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ThreadDumpCollector",
    "ThreadDumpSnapshot",
    "LONGEST_RUNNING_LIMIT",
]
