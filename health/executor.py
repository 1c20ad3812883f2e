# ============================================================================
# HEALTH AGGREGATOR
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Concurrent indicator execution
# PURPOSE: Fan out probes with timeouts and fold results into one verdict
# CREATED: 19 OCT 2026
# ============================================================================
"""
Health Aggregator

Executes health indicators with:
- Concurrent execution of every enabled indicator
- Per-probe timeout race
- Criticality fold (DOWN iff a critical indicator is DOWN)

Timeouts are advisory. When the timer wins, the probe task is abandoned, not
cancelled: it keeps running and its eventual outcome is discarded. Set
cancel_on_timeout=True to cancel the losing task instead.

Abandoned probes are counted (abandoned_count) and a warning is logged when
that count reaches abandoned_warning_threshold.

A probe that raises, returns garbage, or times out becomes a DOWN report.
check() itself never raises. If check() is cancelled, in-flight probe tasks
are cancelled with it and their outcomes are retrieved in the background.
"""

import asyncio
import inspect
import time
from typing import Optional, Set

from core.errors import ProbeTimeoutError
from core.logging import ComponentType, get_logger, log_context
from core.runtime import process_uptime_seconds
from health.core import (
    AggregateHealth,
    CheckReport,
    CheckResult,
    HealthIndicator,
    HealthStatus,
    aggregate_status,
)
from health.registry import HealthIndicatorRegistry

logger = get_logger(__name__, ComponentType.HEALTH)

DEFAULT_TIMEOUT_MS = 5000
ABANDONED_WARNING_THRESHOLD = 100


class HealthAggregator:
    """
    Runs every enabled indicator concurrently and aggregates the results.

    Result order follows registration order, not completion order.
    """

    def __init__(
        self,
        registry: HealthIndicatorRegistry,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cancel_on_timeout: bool = False,
        abandoned_warning_threshold: int = ABANDONED_WARNING_THRESHOLD,
    ):
        """
        Initialize aggregator.

        Args:
            registry: Indicator registry to snapshot on each check
            timeout_ms: Per-probe timeout in milliseconds
            cancel_on_timeout: Cancel probes that lose the timeout race
            abandoned_warning_threshold: Warn once this many abandoned
                probes are still running at the same time
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if abandoned_warning_threshold <= 0:
            raise ValueError("abandoned_warning_threshold must be positive")
        self.registry = registry
        self.timeout_ms = timeout_ms
        self.cancel_on_timeout = cancel_on_timeout
        self.abandoned_warning_threshold = abandoned_warning_threshold
        self._abandoned: Set[asyncio.Task] = set()
        self._abandoned_warned = False

    @property
    def abandoned_count(self) -> int:
        """Probe tasks left running by a timeout or a cancelled check."""
        return len(self._abandoned)

    async def check(self) -> AggregateHealth:
        """
        Execute all enabled indicators.

        Returns:
            Aggregated result with one report per enabled indicator
        """
        start_time = time.monotonic()
        indicators = self.registry.snapshot()

        reports = await asyncio.gather(
            *(self._execute_indicator(indicator) for indicator in indicators)
        )
        reports = tuple(reports)

        status = aggregate_status(reports)
        duration_ms = (time.monotonic() - start_time) * 1000

        if status == HealthStatus.DOWN:
            failed = [r.name for r in reports if r.critical and r.status == HealthStatus.DOWN]
            logger.warning(f"Aggregate health DOWN (critical failures: {failed})")

        return AggregateHealth(
            status=status,
            checks=reports,
            uptime_seconds=process_uptime_seconds(),
            duration_ms=duration_ms,
        )

    async def check_one(self, name: str) -> Optional[CheckReport]:
        """Execute a single indicator by name, enabled or not."""
        indicator = self.registry.get(name)
        if indicator is None:
            return None

        return await self._execute_indicator(indicator)

    async def _execute_indicator(self, indicator: HealthIndicator) -> CheckReport:
        """Race one probe against the timeout and build its report."""
        start_time = time.monotonic()

        with log_context(operation="health_check", check_name=indicator.name):
            task = asyncio.ensure_future(self._invoke(indicator))
            try:
                done, _ = await asyncio.wait({task}, timeout=self.timeout_ms / 1000)
            except asyncio.CancelledError:
                # Caller gave up; the indicator task must not finish unobserved
                task.cancel()
                self._track(task)
                raise

            if task in done:
                result = self._settled_result(indicator, task)
            else:
                timeout = ProbeTimeoutError(indicator.name, self.timeout_ms)
                logger.warning(str(timeout))
                self._abandon(task)
                result = CheckResult.timed_out(timeout.timeout_ms)

            duration_ms = (time.monotonic() - start_time) * 1000
            logger.debug(
                f"Health check {indicator.name}: {result.status.value} "
                f"({duration_ms:.1f}ms)"
            )

        return CheckReport(
            name=indicator.name,
            status=result.status,
            details=result.details,
            critical=indicator.critical,
            duration_ms=duration_ms,
        )

    @staticmethod
    async def _invoke(indicator: HealthIndicator) -> CheckResult:
        """Call the probe, awaiting it if needed, and normalize its result."""
        outcome = indicator.probe()
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return CheckResult.coerce(outcome)

    @staticmethod
    def _settled_result(indicator: HealthIndicator, task: asyncio.Task) -> CheckResult:
        if task.cancelled():
            logger.warning(f"Health check {indicator.name} was cancelled")
            return CheckResult.down(error="cancelled")

        error = task.exception()
        if error is not None:
            logger.warning(f"Health check {indicator.name} failed: {error}")
            return CheckResult.from_exception(error)

        return task.result()

    def _abandon(self, task: asyncio.Task) -> None:
        """Let a timed-out probe finish in the background and drop its outcome."""
        if self.cancel_on_timeout:
            task.cancel()
            return

        self._track(task)
        if len(self._abandoned) >= self.abandoned_warning_threshold:
            if not self._abandoned_warned:
                self._abandoned_warned = True
                logger.warning(
                    f"{len(self._abandoned)} abandoned health checks still running "
                    f"(threshold {self.abandoned_warning_threshold}); "
                    f"consider cancel_on_timeout"
                )

    def _track(self, task: asyncio.Task) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._discard_late_result)

    def _discard_late_result(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if len(self._abandoned) < self.abandoned_warning_threshold:
            self._abandoned_warned = False
        if task.cancelled():
            return
        # Retrieve so the loop does not report an unobserved exception
        error = task.exception()
        if error is not None:
            logger.debug(f"Discarded late failure from abandoned probe: {error}")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "HealthAggregator",
    "DEFAULT_TIMEOUT_MS",
    "ABANDONED_WARNING_THRESHOLD",
]
