# ============================================================================
# THREAD DUMP COLLECTOR TESTS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Tests - Scheduler and thread state snapshot
# PURPOSE: Verify snapshot shape, task tracking, and install/destroy lifecycle
# CREATED: 19 OCT 2026
# ============================================================================
"""
Thread Dump Collector Tests

Covers:
1. Snapshot shape is the same inside and outside an event loop
2. Missing facilities are reported as "unavailable"
3. Pending tasks and worker threads show up in the dump
4. install() tracks tasks; destroy() restores the previous factory
5. install()/destroy() are idempotent

Run with:
    pytest tests/test_thread_dump.py -v
"""

import asyncio
import threading
from unittest.mock import patch

import psutil

from core.runtime import UNAVAILABLE
from diagnostics.thread_dump import ThreadDumpCollector


TOP_LEVEL_KEYS = {
    "timestamp", "pid", "uptime", "pythonVersion", "platform",
    "mainThread", "threads", "eventLoop", "asyncOperations",
    "activeHandles", "activeRequests", "processInfo", "memoryInfo",
    "cpuInfo", "summary",
}

EVENT_LOOP_KEYS = {
    "running", "loopClass", "debug", "schedulingModel",
    "scheduledTimers", "readyCallbacks", "defaultExecutor",
}


# ============================================================================
# SHAPE
# ============================================================================

class TestSnapshotShape:
    """Stable schema regardless of host facilities."""

    def test_shape_inside_loop(self):
        collector = ThreadDumpCollector()
        body = asyncio.run(collector.collect()).to_dict()

        assert set(body) == TOP_LEVEL_KEYS
        assert set(body["eventLoop"]) == EVENT_LOOP_KEYS
        assert body["eventLoop"]["running"] is True
        assert isinstance(body["activeRequests"]["count"], int)
        assert set(body["mainThread"]) >= {"name", "ident", "nativeId", "state", "cpuTime", "stackTrace"}
        assert body["mainThread"]["state"] == "RUNNABLE"

    def test_shape_outside_loop(self):
        body = ThreadDumpCollector().capture().to_dict()

        assert set(body) == TOP_LEVEL_KEYS
        assert set(body["eventLoop"]) == EVENT_LOOP_KEYS
        assert body["eventLoop"]["running"] is False
        assert body["eventLoop"]["readyCallbacks"] == UNAVAILABLE
        assert body["activeHandles"] == {"count": UNAVAILABLE, "types": UNAVAILABLE}
        assert body["activeRequests"] == {"count": UNAVAILABLE, "types": UNAVAILABLE}

    def test_psutil_denied_reports_unavailable(self):
        collector = ThreadDumpCollector()
        with patch("diagnostics.thread_dump.current_process", side_effect=psutil.AccessDenied()):
            body = collector.capture().to_dict()

        assert set(body) == TOP_LEVEL_KEYS
        assert body["cpuInfo"]["user"] == UNAVAILABLE
        assert body["processInfo"]["openFiles"] == UNAVAILABLE
        assert body["mainThread"]["cpuTime"] == UNAVAILABLE

    def test_main_thread_stack_present(self):
        body = ThreadDumpCollector().capture().to_dict()
        assert body["mainThread"]["name"] == threading.main_thread().name
        assert any("capture" in frame for frame in body["mainThread"]["stackTrace"])


# ============================================================================
# CONTENTS
# ============================================================================

class TestSnapshotContents:
    """Threads and tasks appear in the dump."""

    def test_worker_thread_listed(self):
        stop = threading.Event()
        worker = threading.Thread(target=stop.wait, name="dump-test-worker", daemon=True)
        worker.start()
        try:
            body = ThreadDumpCollector().capture().to_dict()
        finally:
            stop.set()
            worker.join()

        names = [t["name"] for t in body["threads"]]
        assert "dump-test-worker" in names
        assert body["summary"]["totalThreads"] == len(body["threads"])

    def test_pending_tasks_grouped_by_coroutine(self):
        async def sleeper():
            await asyncio.sleep(1)

        async def scenario():
            tasks = [asyncio.create_task(sleeper()) for _ in range(3)]
            await asyncio.sleep(0)
            body = (await ThreadDumpCollector().collect()).to_dict()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            return body

        body = asyncio.run(scenario())
        types = body["activeRequests"]["types"]
        sleeper_counts = [count for name, count in types.items() if name.endswith("sleeper")]
        assert sleeper_counts == [3]
        assert body["activeHandles"]["count"] >= 3


# ============================================================================
# TASK TRACKING
# ============================================================================

class TestTaskTracking:
    """install() / destroy() lifecycle."""

    def test_tracks_tasks_after_install(self):
        collector = ThreadDumpCollector()

        async def scenario():
            assert collector.install() is True
            task = asyncio.create_task(asyncio.sleep(1), name="tracked-sleep")
            await asyncio.sleep(0.01)
            body = (await collector.collect()).to_dict()
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            after = collector.capture().to_dict()["asyncOperations"]["trackedCount"]
            collector.destroy()
            return body, after

        body, after = asyncio.run(scenario())
        operations = body["asyncOperations"]
        assert operations["tracking"] is True
        assert operations["trackedCount"] == 1
        entry = operations["longestRunning"][0]
        assert entry["name"] == "tracked-sleep"
        assert entry["ageMs"] >= 5
        assert after == 0

    def test_not_tracking_without_install(self):
        body = ThreadDumpCollector().capture().to_dict()
        assert body["asyncOperations"] == {
            "tracking": False,
            "trackedCount": 0,
            "longestRunning": [],
        }

    def test_install_without_loop(self):
        assert ThreadDumpCollector().install() is False

    def test_destroy_restores_previous_factory(self):
        created = []

        def previous_factory(loop, coro, **kwargs):
            created.append(coro)
            return asyncio.Task(coro, loop=loop, **kwargs)

        collector = ThreadDumpCollector()

        async def scenario():
            loop = asyncio.get_running_loop()
            loop.set_task_factory(previous_factory)
            collector.install()
            collector.install()
            await asyncio.create_task(asyncio.sleep(0))
            chained = len(created)
            collector.destroy()
            collector.destroy()
            return loop.get_task_factory(), chained

        factory, chained = asyncio.run(scenario())
        assert factory is previous_factory
        assert chained == 1
        assert collector.tracking is False

    def test_destroy_before_install_is_noop(self):
        collector = ThreadDumpCollector()
        collector.destroy()
        assert collector.tracking is False
