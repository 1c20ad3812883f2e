# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides the explicit configuration value types for the diagnostics sidecar.
"""

from core.config.defaults import (
    RetryPolicy,
    HealthIndicatorDefaults,
    HeapDumpDefaults,
    LoggingDefaults,
    DiagnosticsConfig,
)

__all__ = [
    "RetryPolicy",
    "HealthIndicatorDefaults",
    "HeapDumpDefaults",
    "LoggingDefaults",
    "DiagnosticsConfig",
]
