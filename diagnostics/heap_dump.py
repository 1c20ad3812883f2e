# ============================================================================
# HEAP DUMP GENERATOR
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Diagnostics - Memory snapshot files
# PURPOSE: Write uniquely named heap dumps and manage their retention
# CREATED: 19 OCT 2026
# ============================================================================
"""
Heap Dump Generator

Produces memory snapshot files on demand:
- Strategy chosen once at construction (see diagnostics.writers)
- Native strategy failures fall back to the synthetic report
- Every dump is written to {path}.tmp and renamed, so a final path only
  ever holds a complete file and a retried dump never leaves partial output
- gzip compression (optional) streams the temp file into the final .gz

File naming:
    {output_dir}/{filename_base}[-{timestamp}]-{8 hex}.heapsnapshot[.gz]

The random suffix is the only collision guard: two dumps in the same
millisecond still get distinct paths.

generate_heap_dump() never raises. Failures come back as
DumpResult(success=False) with the error message.
"""

import asyncio
import fnmatch
import gzip
import os
import shutil
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.config import HeapDumpDefaults
from core.errors import DumpAccessError, DumpIOError
from core.logging import ComponentType, get_logger, log_context
from core.runtime import memory_usage
from diagnostics.writers import SnapshotWriter, fallback_writer, select_writer

logger = get_logger(__name__, ComponentType.HEAP_DUMP)

SNAPSHOT_EXTENSION = "heapsnapshot"
COMPRESSED_EXTENSION = "heapsnapshot.gz"
DEFAULT_MAX_AGE_MS = 24 * 60 * 60 * 1000  # 24 hours


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True)
class DumpMetadata:
    """Facts stamped on every dump attempt, successful or not."""
    timestamp: str
    process_id: int
    duration_ms: float
    memory_usage: Dict[str, Any]
    file_size_bytes: Optional[int] = None
    file_path: Optional[str] = None
    strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "timestamp": self.timestamp,
            "processId": self.process_id,
            "durationMs": round(self.duration_ms, 2),
            "memoryUsage": dict(self.memory_usage),
        }
        if self.file_size_bytes is not None:
            result["fileSizeBytes"] = self.file_size_bytes
        if self.strategy is not None:
            result["strategy"] = self.strategy
        return result


@dataclass(frozen=True)
class DumpResult:
    """Outcome of generate_heap_dump()."""
    success: bool
    metadata: DumpMetadata
    file_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.file_path is not None:
            result["filePath"] = self.file_path
        result["metadata"] = self.metadata.to_dict()
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class DumpStoreEntry:
    """One dump file found on disk."""
    path: str
    size_bytes: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "sizeBytes": self.size_bytes,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class HeapDumpStats:
    """Summary of the dump directory. Computed from a fresh scan each time."""
    count: int = 0
    total_size: int = 0
    files: Tuple[DumpStoreEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "totalSize": self.total_size,
            "files": [entry.to_dict() for entry in self.files],
        }


# ============================================================================
# GENERATOR
# ============================================================================

class HeapDumpGenerator:
    """
    Writes heap dumps and manages the dump directory.

    All blocking filesystem work runs in a worker thread.
    """

    def __init__(
        self,
        settings: Optional[HeapDumpDefaults] = None,
        writer: Optional[SnapshotWriter] = None,
    ):
        """
        Initialize generator.

        Args:
            settings: Output directory, naming and compression settings
            writer: Snapshot strategy; selected by capability if None
        """
        self.settings = settings or HeapDumpDefaults()
        self.writer = writer or select_writer(
            start_tracemalloc=self.settings.start_tracemalloc,
            max_depth=self.settings.max_depth,
        )
        self._fallback = fallback_writer(self.writer, max_depth=self.settings.max_depth)

    @property
    def strategy(self) -> str:
        """Name of the primary snapshot strategy."""
        return self.writer.strategy

    def get_output_dir(self) -> str:
        """Absolute path of the dump directory."""
        return os.path.abspath(self.settings.output_dir)

    def generate_filename(self, now: Optional[datetime] = None) -> str:
        """Unique file name for a new dump (no directory)."""
        parts = [self.settings.filename_base]
        if self.settings.include_timestamp:
            now = now or datetime.now(timezone.utc)
            stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
            parts.append(stamp.replace(":", "-").replace(".", "-"))
        parts.append(uuid.uuid4().hex[:8])

        extension = COMPRESSED_EXTENSION if self.settings.compress else SNAPSHOT_EXTENSION
        return f"{'-'.join(parts)}.{extension}"

    async def generate_heap_dump(self) -> DumpResult:
        """
        Write one heap dump.

        Returns:
            DumpResult; success=False with an error message on any failure
        """
        start_time = time.monotonic()
        path = None

        with log_context(operation="heap_dump"):
            try:
                path = os.path.join(self.get_output_dir(), self.generate_filename())
                await asyncio.to_thread(os.makedirs, self.get_output_dir(), exist_ok=True)

                last_error: Optional[BaseException] = None
                for writer in self._candidate_writers():
                    try:
                        captured = writer.capture()
                        size = await asyncio.to_thread(self._write_atomic, writer, path, captured)
                    except Exception as e:
                        logger.warning(
                            f"Heap dump strategy {writer.strategy} failed: "
                            f"{str(e) or type(e).__name__}"
                        )
                        last_error = e
                        continue

                    duration_ms = (time.monotonic() - start_time) * 1000
                    logger.info(
                        f"Heap dump written: {path} ({size} bytes, "
                        f"{writer.strategy}, {duration_ms:.1f}ms)"
                    )
                    return DumpResult(
                        success=True,
                        file_path=path,
                        metadata=self._metadata(
                            start_time,
                            file_size_bytes=size,
                            file_path=path,
                            strategy=writer.strategy,
                        ),
                    )

                if last_error is not None:
                    error = str(last_error) or type(last_error).__name__
                else:
                    error = "No snapshot strategy available"
            except Exception as e:
                logger.exception(f"Heap dump failed: {e}")
                error = str(e) or type(e).__name__

        logger.error(f"Failed to generate heap dump: {error}")
        return DumpResult(
            success=False,
            error=error,
            metadata=self._metadata(start_time, file_path=path),
        )

    async def get_heap_dump_stats(self) -> HeapDumpStats:
        """Count and size of dump files currently on disk."""
        entries = await asyncio.to_thread(self._scan)
        return HeapDumpStats(
            count=len(entries),
            total_size=sum(entry.size_bytes for entry in entries),
            files=tuple(entries),
        )

    async def cleanup_old_dumps(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> List[str]:
        """
        Delete dump files older than max_age_ms (by modification time).

        Per-file failures are logged and skipped.

        Returns:
            Paths that were deleted
        """
        if max_age_ms < 0:
            raise ValueError("max_age_ms must be non-negative")
        with log_context(operation="heap_dump_cleanup"):
            deleted = await asyncio.to_thread(self._cleanup, max_age_ms)
        if deleted:
            logger.info(f"Cleaned up {len(deleted)} heap dump(s) older than {max_age_ms}ms")
        return deleted

    def resolve_dump_path(self, name: str) -> str:
        """
        Resolve a requested file strictly inside the dump directory.

        Raises:
            DumpAccessError: If the path escapes the directory
        """
        base = os.path.realpath(self.get_output_dir())
        candidate = os.path.realpath(os.path.join(base, name))
        if candidate == base or os.path.commonpath([base, candidate]) != base:
            raise DumpAccessError(name)
        return candidate

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    def _candidate_writers(self) -> List[SnapshotWriter]:
        writers = []
        if self.writer.available():
            writers.append(self.writer)
        else:
            logger.warning(
                f"Heap dump strategy {self.writer.strategy} unavailable, using fallback"
            )
        if self._fallback is not None:
            writers.append(self._fallback)
        return writers

    def _write_atomic(self, writer: SnapshotWriter, path: str, captured: Any) -> int:
        """Write via temp file(s) and rename into place. Returns final size."""
        tmp_path = f"{path}.tmp"
        part_path = f"{path}.part"
        try:
            writer.write(tmp_path, captured)
            if self.settings.compress:
                with open(tmp_path, "rb") as src, gzip.open(part_path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                os.replace(part_path, path)
            else:
                os.replace(tmp_path, path)
            return os.path.getsize(path)
        except OSError as e:
            raise DumpIOError(
                f"Could not write {path}: {e}", path=path, strategy=writer.strategy
            ) from e
        finally:
            for leftover in (tmp_path, part_path):
                try:
                    os.remove(leftover)
                except FileNotFoundError:
                    pass

    def _matches(self, name: str) -> bool:
        base = self.settings.filename_base
        return (
            fnmatch.fnmatchcase(name, f"{base}*.{SNAPSHOT_EXTENSION}")
            or fnmatch.fnmatchcase(name, f"{base}*.{COMPRESSED_EXTENSION}")
        )

    def _scan(self) -> List[DumpStoreEntry]:
        """Dump files in the output directory, newest first."""
        output_dir = self.get_output_dir()
        entries: List[DumpStoreEntry] = []
        try:
            with os.scandir(output_dir) as it:
                for item in it:
                    if not item.is_file() or not self._matches(item.name):
                        continue
                    try:
                        stat = item.stat()
                    except FileNotFoundError:
                        continue
                    entries.append(DumpStoreEntry(
                        path=item.path,
                        size_bytes=stat.st_size,
                        created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    ))
        except FileNotFoundError:
            return []

        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries

    def _cleanup(self, max_age_ms: int) -> List[str]:
        now = time.time()
        deleted: List[str] = []
        for entry in self._scan():
            age_ms = (now - entry.created_at.timestamp()) * 1000
            if age_ms <= max_age_ms:
                continue
            try:
                os.remove(entry.path)
                deleted.append(entry.path)
            except OSError as e:
                logger.warning(f"Failed to delete heap dump {entry.path}: {e}")
        return deleted

    @staticmethod
    def _metadata(start_time: float, **kwargs) -> DumpMetadata:
        return DumpMetadata(
            timestamp=datetime.now(timezone.utc).isoformat(),
            process_id=os.getpid(),
            duration_ms=(time.monotonic() - start_time) * 1000,
            memory_usage=memory_usage(),
            **kwargs,
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "HeapDumpGenerator",
    "DumpMetadata",
    "DumpResult",
    "DumpStoreEntry",
    "HeapDumpStats",
    "DEFAULT_MAX_AGE_MS",
]
