# ============================================================================
# DIAGNOSTICS ERRORS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core - Exception taxonomy
# PURPOSE: Typed failures surfaced (or absorbed) by the diagnostics engine
# CREATED: 19 OCT 2026
# ============================================================================
"""
Diagnostics Errors

Failure taxonomy:
- Probe failures and probe timeouts are absorbed by the aggregator and turned
  into DOWN reports. ProbeTimeoutError only exists to carry the timeout value.
- RetryExhaustedError is the one failure that is surfaced to callers.
- DumpIOError is raised inside snapshot writers and recovered by the heap dump
  generator into an unsuccessful DumpResult.
- DumpAccessError guards file downloads outside the dump directory.
"""

from typing import Optional


class DiagnosticsError(Exception):
    """Base exception for diagnostics errors."""
    pass


class ConfigError(DiagnosticsError):
    """Raised when configuration cannot be loaded or validated."""
    pass


class ProbeTimeoutError(DiagnosticsError):
    """Raised when a health probe does not settle before its deadline."""

    def __init__(self, indicator_name: str, timeout_ms: int):
        self.indicator_name = indicator_name
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Health check '{indicator_name}' timed out after {timeout_ms}ms"
        )


class RetryExhaustedError(DiagnosticsError):
    """
    Raised after every attempt of a retried operation has failed.

    The last failure is chained as __cause__ and kept on last_error.
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"{operation} failed after {attempts} attempts: {detail}")


class DumpIOError(DiagnosticsError):
    """Raised when a snapshot writer cannot produce its file."""

    def __init__(self, message: str, path: str = None, strategy: str = None):
        self.path = path
        self.strategy = strategy
        super().__init__(message)


class DumpAccessError(DiagnosticsError):
    """Raised when a requested dump file resolves outside the dump directory."""

    def __init__(self, requested: str):
        self.requested = requested
        super().__init__(f"Access denied: {requested}")


__all__ = [
    "DiagnosticsError",
    "ConfigError",
    "ProbeTimeoutError",
    "RetryExhaustedError",
    "DumpIOError",
    "DumpAccessError",
]
