# ============================================================================
# HEALTH CHECK CORE TYPES
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Indicator and result types
# PURPOSE: Health indicator definitions and immutable result records
# CREATED: 19 OCT 2026
# ============================================================================
"""
Health Check Core Types

Defines the indicator type and the result records for health checks.

Status values:
- UP: Component operational
- DOWN: Component failing (forces aggregate DOWN only when critical)
- UNKNOWN: Component could not determine its own state

Aggregation rule:
    The aggregate is DOWN iff at least one critical indicator reported DOWN.
    Non-critical failures are reported per check but never flip the
    aggregate.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union


class HealthStatus(str, Enum):
    """Health check status values."""
    UP = "UP"
    DOWN = "DOWN"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> Optional["HealthStatus"]:
        """Map a probe-supplied status (enum or case-insensitive string)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single probe invocation."""
    status: HealthStatus
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def up(cls, **details) -> "CheckResult":
        """Create UP result."""
        return cls(status=HealthStatus.UP, details=details)

    @classmethod
    def down(cls, **details) -> "CheckResult":
        """Create DOWN result."""
        return cls(status=HealthStatus.DOWN, details=details)

    @classmethod
    def unknown(cls, **details) -> "CheckResult":
        """Create UNKNOWN result."""
        return cls(status=HealthStatus.UNKNOWN, details=details)

    @classmethod
    def from_exception(cls, e: BaseException) -> "CheckResult":
        """Create DOWN result from a probe failure."""
        return cls.down(error=str(e) or type(e).__name__)

    @classmethod
    def timed_out(cls, timeout_ms: int) -> "CheckResult":
        """Create DOWN result for a probe that lost its timeout race."""
        return cls.down(error="timeout", timeoutMs=timeout_ms)

    @classmethod
    def coerce(cls, value: Union["CheckResult", Mapping[str, Any]]) -> "CheckResult":
        """
        Normalize what a probe returned.

        Accepts a CheckResult or a mapping {"status": ..., "details": ...}.
        Missing details default to an empty dict; an unrecognised status
        becomes UNKNOWN with the raw value kept under details.invalidStatus.

        Raises:
            TypeError: If the value is neither a CheckResult nor a mapping
        """
        if isinstance(value, CheckResult):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(
                f"Health probe returned {type(value).__name__}, expected a mapping"
            )

        raw_status = value.get("status")
        details = dict(value.get("details") or {})
        status = HealthStatus.parse(raw_status)
        if status is None:
            details["invalidStatus"] = raw_status
            status = HealthStatus.UNKNOWN
        return cls(status=status, details=details)


ProbeResult = Union[CheckResult, Mapping[str, Any]]
ProbeFunc = Callable[[], Union[Awaitable[ProbeResult], ProbeResult]]


@dataclass(frozen=True)
class HealthIndicator:
    """
    A named, independently-owned health probe.

    Attributes:
        name: Unique key in the registry
        probe: Zero-argument callable (async or plain) returning a
            CheckResult or a mapping with "status" and optional "details"
        enabled: Disabled indicators are excluded from aggregation entirely
        critical: A DOWN report from a critical indicator makes the
            aggregate DOWN
    """
    name: str
    probe: ProbeFunc
    enabled: bool = True
    critical: bool = False

    def describe(self) -> Dict[str, Any]:
        """Public view of the indicator; the probe itself is not exposed."""
        return {"name": self.name, "enabled": self.enabled, "critical": self.critical}

    def with_enabled(self, enabled: bool) -> "HealthIndicator":
        """Return a copy with a different enabled flag."""
        return replace(self, enabled=enabled)


@dataclass(frozen=True)
class CheckReport:
    """A CheckResult annotated with its source indicator."""
    name: str
    status: HealthStatus
    details: Dict[str, Any] = field(default_factory=dict)
    critical: bool = False
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "name": self.name,
            "status": self.status.value,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class AggregateHealth:
    """Aggregated verdict from one check() call."""
    status: HealthStatus
    checks: Tuple[CheckReport, ...]
    uptime_seconds: float
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, name: str) -> Optional[CheckReport]:
        """Find the report for an indicator by name."""
        for report in self.checks:
            if report.name == name:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "status": self.status.value,
            "details": {
                "checks": [report.to_dict() for report in self.checks],
                "responseTime": f"{self.duration_ms:.2f}ms",
            },
            "timestamp": self.timestamp.isoformat(),
            "uptime": round(self.uptime_seconds, 3),
        }


def aggregate_status(reports: Tuple[CheckReport, ...]) -> HealthStatus:
    """DOWN iff some critical report is DOWN, otherwise UP."""
    for report in reports:
        if report.critical and report.status == HealthStatus.DOWN:
            return HealthStatus.DOWN
    return HealthStatus.UP


__all__ = [
    "HealthStatus",
    "CheckResult",
    "ProbeFunc",
    "HealthIndicator",
    "CheckReport",
    "AggregateHealth",
    "aggregate_status",
]
