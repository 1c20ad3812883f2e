# ============================================================================
# HEALTH AGGREGATOR TESTS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Tests - Concurrent indicator execution
# PURPOSE: Verify criticality fold, timeouts, ordering, and failure recovery
# CREATED: 19 OCT 2026
# ============================================================================
"""
Health Aggregator Tests

Covers:
1. Criticality: aggregate DOWN iff a critical indicator is DOWN
2. Timeout: a hung probe yields DOWN {error: "timeout"} within the deadline
3. Disabled indicators are excluded entirely
4. Result order follows registration order, not completion order
5. Probe exceptions and garbage return values become DOWN reports
6. Zero indicators gives UP with no checks
7. Abandoned vs cancelled probes after a timeout
8. A cancelled check() cancels its probes and observes their failures
9. Warning when abandoned checks reach the threshold
10. check_one() for single indicators

Run with:
    pytest tests/test_health_aggregator.py -v
"""

import asyncio
import gc
import time
from unittest.mock import patch

import pytest

from health import executor
from health.core import CheckResult, HealthIndicator, HealthStatus
from health.executor import HealthAggregator
from health.registry import HealthIndicatorRegistry


# ============================================================================
# FIXTURES
# ============================================================================

def _status_probe(status, delay=0.0, **details):
    async def probe():
        if delay:
            await asyncio.sleep(delay)
        return {"status": status, "details": details}
    return probe


async def _hang():
    await asyncio.sleep(3600)


def _aggregator(*indicators, timeout_ms=1000, **kwargs):
    return HealthAggregator(HealthIndicatorRegistry(list(indicators)), timeout_ms=timeout_ms, **kwargs)


def _statuses(health):
    return {report.name: report.status for report in health.checks}


# ============================================================================
# CRITICALITY
# ============================================================================

class TestCriticality:
    """Aggregate status fold."""

    @pytest.mark.parametrize("critical_status,noncritical_status,expected", [
        ("UP", "UP", HealthStatus.UP),
        ("UP", "DOWN", HealthStatus.UP),
        ("DOWN", "UP", HealthStatus.DOWN),
        ("DOWN", "DOWN", HealthStatus.DOWN),
        ("UNKNOWN", "DOWN", HealthStatus.UP),
    ])
    def test_down_iff_critical_down(self, critical_status, noncritical_status, expected):
        aggregator = _aggregator(
            HealthIndicator("core", _status_probe(critical_status), critical=True),
            HealthIndicator("extra", _status_probe(noncritical_status)),
        )
        health = asyncio.run(aggregator.check())
        assert health.status == expected

    def test_zero_indicators_is_up(self):
        health = asyncio.run(_aggregator().check())
        assert health.status == HealthStatus.UP
        assert health.checks == ()
        assert health.to_dict()["details"]["checks"] == []

    def test_only_disabled_indicators_is_up(self):
        aggregator = _aggregator(
            HealthIndicator("db", _status_probe("DOWN"), enabled=False, critical=True),
        )
        health = asyncio.run(aggregator.check())
        assert health.status == HealthStatus.UP
        assert health.checks == ()


# ============================================================================
# SCENARIOS
# ============================================================================

class TestScenarios:
    """End-to-end aggregation scenarios."""

    def test_slow_noncritical_probe_times_out(self):
        aggregator = _aggregator(
            HealthIndicator("db", _status_probe("UP"), critical=True),
            HealthIndicator("cache", _status_probe("DOWN")),
            HealthIndicator("slow", _hang),
            timeout_ms=50,
        )

        start = time.monotonic()
        health = asyncio.run(aggregator.check())
        elapsed_ms = (time.monotonic() - start) * 1000

        assert health.status == HealthStatus.UP
        assert _statuses(health) == {
            "db": HealthStatus.UP,
            "cache": HealthStatus.DOWN,
            "slow": HealthStatus.DOWN,
        }
        assert health.get("slow").details == {"error": "timeout", "timeoutMs": 50}
        assert elapsed_ms < 1000

    def test_critical_probe_raises(self):
        async def db():
            raise ConnectionError("conn lost")

        aggregator = _aggregator(HealthIndicator("db", db, critical=True))
        health = asyncio.run(aggregator.check())

        assert health.status == HealthStatus.DOWN
        assert health.get("db").details == {"error": "conn lost"}

    def test_order_follows_registration(self):
        aggregator = _aggregator(
            HealthIndicator("first", _status_probe("UP", delay=0.05)),
            HealthIndicator("second", _status_probe("UP", delay=0.0)),
            HealthIndicator("third", _status_probe("UP", delay=0.02)),
        )
        health = asyncio.run(aggregator.check())
        assert [r.name for r in health.checks] == ["first", "second", "third"]

    def test_probes_run_concurrently(self):
        aggregator = _aggregator(
            *(HealthIndicator(f"p{i}", _status_probe("UP", delay=0.1)) for i in range(5)),
        )
        start = time.monotonic()
        asyncio.run(aggregator.check())
        assert time.monotonic() - start < 0.4

    def test_disabled_indicator_is_not_invoked(self):
        calls = []

        async def probe():
            calls.append(1)
            return {"status": "UP"}

        aggregator = _aggregator(
            HealthIndicator("off", probe, enabled=False),
            HealthIndicator("on", _status_probe("UP")),
        )
        health = asyncio.run(aggregator.check())
        assert calls == []
        assert [r.name for r in health.checks] == ["on"]


# ============================================================================
# PROBE FAILURE MODES
# ============================================================================

class TestProbeFailures:
    """Bad probes never break the aggregate."""

    def test_non_mapping_return_is_down(self):
        async def probe():
            return "UP"

        health = asyncio.run(_aggregator(HealthIndicator("bad", probe, critical=True)).check())
        report = health.get("bad")
        assert report.status == HealthStatus.DOWN
        assert "expected a mapping" in report.details["error"]
        assert health.status == HealthStatus.DOWN

    def test_sync_probe_is_accepted(self):
        health = asyncio.run(
            _aggregator(HealthIndicator("sync", lambda: CheckResult.up(mode="sync"))).check()
        )
        assert health.get("sync").status == HealthStatus.UP
        assert health.get("sync").details == {"mode": "sync"}

    def test_details_default_to_empty(self):
        async def probe():
            return {"status": "UP"}

        health = asyncio.run(_aggregator(HealthIndicator("p", probe)).check())
        assert health.get("p").details == {}


# ============================================================================
# TIMEOUT HANDLING
# ============================================================================

class TestTimeouts:
    """Abandoned vs cancelled probes."""

    def test_timed_out_probe_is_abandoned(self):
        finished = []

        async def slow():
            await asyncio.sleep(0.1)
            finished.append(True)
            return {"status": "UP"}

        aggregator = _aggregator(HealthIndicator("slow", slow), timeout_ms=20)

        async def scenario():
            health = await aggregator.check()
            pending = aggregator.abandoned_count
            await asyncio.sleep(0.2)
            return health, pending

        health, pending = asyncio.run(scenario())
        assert health.get("slow").details["error"] == "timeout"
        assert pending == 1
        assert finished == [True]
        assert aggregator.abandoned_count == 0

    def test_cancel_on_timeout(self):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return {"status": "UP"}

        aggregator = _aggregator(HealthIndicator("slow", slow), timeout_ms=20, cancel_on_timeout=True)

        async def scenario():
            health = await aggregator.check()
            await asyncio.sleep(0.05)
            return health

        health = asyncio.run(scenario())
        assert health.get("slow").status == HealthStatus.DOWN
        assert cancelled == [True]
        assert aggregator.abandoned_count == 0

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError):
            HealthAggregator(HealthIndicatorRegistry(), timeout_ms=0)

    def test_cancelled_check_leaves_no_unobserved_failures(self):
        cancelled = []

        async def stubborn():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(True)
            await asyncio.sleep(0.05)
            raise RuntimeError("late failure")

        aggregator = _aggregator(HealthIndicator("stubborn", stubborn), timeout_ms=1000)
        contexts = []

        async def scenario():
            asyncio.get_running_loop().set_exception_handler(
                lambda loop, context: contexts.append(context)
            )
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(aggregator.check(), 0.01)
            pending = aggregator.abandoned_count
            await asyncio.sleep(0.1)
            gc.collect()
            await asyncio.sleep(0)
            return pending

        pending = asyncio.run(scenario())
        assert cancelled == [True]
        assert pending == 1
        assert aggregator.abandoned_count == 0
        assert not [c for c in contexts if "never retrieved" in c.get("message", "")]

    def test_warns_when_abandoned_checks_pile_up(self):
        aggregator = _aggregator(
            HealthIndicator("hung-a", _hang),
            HealthIndicator("hung-b", _hang),
            timeout_ms=20,
            abandoned_warning_threshold=2,
        )

        async def scenario():
            await aggregator.check()
            await aggregator.check()
            return aggregator.abandoned_count

        with patch.object(executor, "logger") as logger:
            pending = asyncio.run(scenario())

        assert pending == 4
        pile_up = [
            call for call in logger.warning.call_args_list
            if "abandoned health checks" in call.args[0]
        ]
        assert len(pile_up) == 1
        assert pile_up[0].args[0].startswith("2 abandoned")

    def test_invalid_abandoned_threshold_rejected(self):
        with pytest.raises(ValueError):
            HealthAggregator(HealthIndicatorRegistry(), abandoned_warning_threshold=0)


# ============================================================================
# SINGLE INDICATOR / SERIALIZATION
# ============================================================================

class TestCheckOne:
    """check_one() and to_dict()."""

    def test_check_one_runs_disabled_indicator(self):
        aggregator = _aggregator(HealthIndicator("off", _status_probe("DOWN", why="x"), enabled=False))
        report = asyncio.run(aggregator.check_one("off"))
        assert report.status == HealthStatus.DOWN
        assert report.details == {"why": "x"}

    def test_check_one_unknown(self):
        assert asyncio.run(_aggregator().check_one("missing")) is None

    def test_to_dict_shape(self):
        aggregator = _aggregator(HealthIndicator("db", _status_probe("UP", version="16"), critical=True))
        body = asyncio.run(aggregator.check()).to_dict()

        assert body["status"] == "UP"
        assert body["details"]["checks"] == [
            {"name": "db", "status": "UP", "details": {"version": "16"}},
        ]
        assert body["details"]["responseTime"].endswith("ms")
        assert isinstance(body["uptime"], float)
        assert "T" in body["timestamp"]
