# ============================================================================
# DIAGNOSTICS SERVICES
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Services - Component wiring
# PURPOSE: Construct, connect and tear down the diagnostics components
# CREATED: 19 OCT 2026
# ============================================================================
"""
Diagnostics Services

One object that owns every long-lived diagnostics component. The process
bootstrap builds it once from a DiagnosticsConfig and hands it to whatever
needs it (the HTTP router, an embedding application). Nothing in the
package reaches for a module-level registry.

Every snapshot operation is routed through the shared RetryExecutor.

Usage:
    services = DiagnosticsServices.create(DiagnosticsConfig.from_env())
    services.start()                      # inside the running loop
    health = await services.check_health()
    services.shutdown()
"""

from typing import List, Optional

from core.config import DiagnosticsConfig
from core.logging import get_logger
from diagnostics.heap_dump import DEFAULT_MAX_AGE_MS, DumpResult, HeapDumpGenerator, HeapDumpStats
from diagnostics.retry import RetryExecutor
from diagnostics.thread_dump import ThreadDumpCollector, ThreadDumpSnapshot
from health.checks import register_builtin_indicators
from health.core import AggregateHealth, CheckReport
from health.executor import HealthAggregator
from health.registry import HealthIndicatorRegistry

logger = get_logger(__name__)


class DiagnosticsServices:
    """Holds the registry, aggregator, retry executor and dump components."""

    def __init__(
        self,
        config: Optional[DiagnosticsConfig] = None,
        registry: Optional[HealthIndicatorRegistry] = None,
        retry: Optional[RetryExecutor] = None,
        thread_dump: Optional[ThreadDumpCollector] = None,
        heap_dump: Optional[HeapDumpGenerator] = None,
    ):
        self.config = config or DiagnosticsConfig()
        self.registry = registry if registry is not None else HealthIndicatorRegistry()
        self.aggregator = HealthAggregator(
            self.registry,
            timeout_ms=self.config.health_check_timeout_ms,
            cancel_on_timeout=self.config.cancel_on_timeout,
            abandoned_warning_threshold=self.config.abandoned_warning_threshold,
        )
        self.retry = retry or RetryExecutor(self.config.retry_policy)
        self.thread_dump = thread_dump or ThreadDumpCollector()
        self.heap_dump = heap_dump or HeapDumpGenerator(self.config.heap_dump)
        self._started = False

    @classmethod
    def create(
        cls,
        config: Optional[DiagnosticsConfig] = None,
        register_builtins: bool = True,
    ) -> "DiagnosticsServices":
        """Build services and register the built-in indicators."""
        services = cls(config=config)
        if register_builtins:
            register_builtin_indicators(services.registry, services.config.health_indicators)
        logger.info(
            f"Diagnostics services created ({len(services.registry)} indicators, "
            f"heap dump strategy: {services.heap_dump.strategy})"
        )
        return services

    def start(self) -> None:
        """Install task tracking on the running loop."""
        if self._started:
            return
        self.thread_dump.install()
        self._started = True

    def shutdown(self) -> None:
        """Remove task tracking. Safe to call more than once."""
        self.thread_dump.destroy()
        self._started = False
        logger.info("Diagnostics services stopped")

    # ------------------------------------------------------------------------
    # Retried operations
    # ------------------------------------------------------------------------

    async def check_health(self) -> AggregateHealth:
        return await self.retry.run(self.aggregator.check, operation_name="health_check")

    async def check_indicator(self, name: str) -> Optional[CheckReport]:
        async def run_one():
            return await self.aggregator.check_one(name)

        return await self.retry.run(run_one, operation_name=f"health_check:{name}")

    async def collect_thread_dump(self) -> ThreadDumpSnapshot:
        return await self.retry.run(self.thread_dump.collect, operation_name="thread_dump")

    async def generate_heap_dump(self) -> DumpResult:
        return await self.retry.run(self.heap_dump.generate_heap_dump, operation_name="heap_dump")

    async def heap_dump_stats(self) -> HeapDumpStats:
        return await self.retry.run(self.heap_dump.get_heap_dump_stats, operation_name="heap_dump_stats")

    async def cleanup_heap_dumps(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> List[str]:
        async def cleanup():
            return await self.heap_dump.cleanup_old_dumps(max_age_ms)

        return await self.retry.run(cleanup, operation_name="heap_dump_cleanup")


__all__ = [
    "DiagnosticsServices",
]
