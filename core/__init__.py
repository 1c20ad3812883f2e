# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core module initialization
# PURPOSE: Export configuration, errors and runtime helpers
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.config import DiagnosticsConfig, RetryPolicy
from core.errors import (
    DiagnosticsError,
    ConfigError,
    ProbeTimeoutError,
    RetryExhaustedError,
    DumpIOError,
    DumpAccessError,
)
from core.runtime import UNAVAILABLE

__all__ = [
    # Config
    "DiagnosticsConfig",
    "RetryPolicy",
    # Errors
    "DiagnosticsError",
    "ConfigError",
    "ProbeTimeoutError",
    "RetryExhaustedError",
    "DumpIOError",
    "DumpAccessError",
    # Runtime
    "UNAVAILABLE",
]
