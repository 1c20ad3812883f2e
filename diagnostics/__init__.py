# ============================================================================
# DIAGNOSTICS MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Diagnostics - Retry, thread dump, heap dump
# PURPOSE: On-demand process snapshots and the retry wrapper around them
# CREATED: 19 OCT 2026
# ============================================================================
"""
Diagnostics Module

- RetryExecutor: backoff retry for any async operation
- ThreadDumpCollector: threads, event loop and task state
- HeapDumpGenerator: memory snapshot files with retention management

Usage:
    from diagnostics import HeapDumpGenerator, RetryExecutor

    result = await RetryExecutor().run(generator.generate_heap_dump)
"""

from diagnostics.retry import RetryExecutor, backoff_delays
from diagnostics.thread_dump import ThreadDumpCollector, ThreadDumpSnapshot
from diagnostics.heap_dump import (
    HeapDumpGenerator,
    DumpMetadata,
    DumpResult,
    DumpStoreEntry,
    HeapDumpStats,
)
from diagnostics.writers import (
    SnapshotWriter,
    NativeSnapshotWriter,
    SyntheticReportWriter,
    select_writer,
)

__all__ = [
    # Retry
    "RetryExecutor",
    "backoff_delays",
    # Thread dump
    "ThreadDumpCollector",
    "ThreadDumpSnapshot",
    # Heap dump
    "HeapDumpGenerator",
    "DumpMetadata",
    "DumpResult",
    "DumpStoreEntry",
    "HeapDumpStats",
    # Writers
    "SnapshotWriter",
    "NativeSnapshotWriter",
    "SyntheticReportWriter",
    "select_writer",
]
