# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core - Default configuration values
# PURPOSE: Explicit, validated configuration for health, retry, and dumps
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Every recognised option is a typed field with its default. Models are frozen
and reject unknown fields, so a configuration is validated exactly once when
it is constructed and never probed at runtime.

Design:
- Immutable pydantic models for each section
- Environment variable overlay via from_env()
- Constructed by the process bootstrap and passed by reference
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors import ConfigError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


class RetryPolicy(BaseModel):
    """
    Backoff policy for RetryExecutor.

    The delay before retry n (1-based) is base_delay_ms, doubled n-1 times
    when exponential, never above cap_ms.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, le=100)
    base_delay_ms: int = Field(default=100, ge=0)
    exponential: bool = True
    cap_ms: int = Field(default=1000, ge=0)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        """Create from environment variables."""
        return cls(
            max_attempts=_env_int("RETRY_MAX_ATTEMPTS", 3),
            base_delay_ms=_env_int("RETRY_BASE_DELAY_MS", 100),
            exponential=_env_bool("RETRY_EXPONENTIAL", True),
            cap_ms=_env_int("RETRY_CAP_MS", 1000),
        )


class HealthIndicatorDefaults(BaseModel):
    """Settings for the built-in diskSpace and process indicators."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    disk_space_enabled: bool = True
    disk_space_threshold_bytes: int = Field(default=10 * 1024 * 1024, ge=0)  # 10 MB
    disk_space_path: str = Field(default_factory=os.getcwd)
    process_enabled: bool = True

    @classmethod
    def from_env(cls) -> "HealthIndicatorDefaults":
        """Create from environment variables."""
        return cls(
            disk_space_enabled=_env_bool("HEALTH_DISK_SPACE_ENABLED", True),
            disk_space_threshold_bytes=_env_int(
                "HEALTH_DISK_SPACE_THRESHOLD_BYTES", 10 * 1024 * 1024
            ),
            disk_space_path=os.getenv("HEALTH_DISK_SPACE_PATH", os.getcwd()),
            process_enabled=_env_bool("HEALTH_PROCESS_ENABLED", True),
        )


class HeapDumpDefaults(BaseModel):
    """
    Settings for HeapDumpGenerator.

    max_depth bounds how deep the synthetic report walks nested structures.
    start_tracemalloc starts allocation tracing at startup so the native
    snapshot writer becomes available.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    output_dir: str = "./heapdumps"
    filename_base: str = Field(default="heapdump", min_length=1, pattern=r"^[\w.-]+$")
    include_timestamp: bool = True
    compress: bool = False
    max_depth: int = Field(default=10, ge=1, le=100)
    start_tracemalloc: bool = False

    @classmethod
    def from_env(cls) -> "HeapDumpDefaults":
        """Create from environment variables."""
        return cls(
            output_dir=os.getenv("HEAPDUMP_OUTPUT_DIR", "./heapdumps"),
            filename_base=os.getenv("HEAPDUMP_FILENAME", "heapdump"),
            include_timestamp=_env_bool("HEAPDUMP_INCLUDE_TIMESTAMP", True),
            compress=_env_bool("HEAPDUMP_COMPRESS", False),
            max_depth=_env_int("HEAPDUMP_MAX_DEPTH", 10),
            start_tracemalloc=_env_bool("HEAPDUMP_START_TRACEMALLOC", False),
        )


class LoggingDefaults(BaseModel):
    """Logging output settings."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = Field(default="INFO", pattern=r"(?i)^(debug|info|warning|error|critical)$")
    json_output: bool = False

    @classmethod
    def from_env(cls) -> "LoggingDefaults":
        """Create from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            json_output=os.getenv("LOG_FORMAT", "").lower() == "json",
        )


class DiagnosticsConfig(BaseModel):
    """Container for all diagnostics configuration."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    health_check_timeout_ms: int = Field(default=5000, ge=1)
    cancel_on_timeout: bool = False
    abandoned_warning_threshold: int = Field(default=100, ge=1)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    health_indicators: HealthIndicatorDefaults = Field(default_factory=HealthIndicatorDefaults)
    heap_dump: HeapDumpDefaults = Field(default_factory=HeapDumpDefaults)
    logging: LoggingDefaults = Field(default_factory=LoggingDefaults)

    @classmethod
    def from_env(cls) -> "DiagnosticsConfig":
        """
        Create all configuration from environment variables.

        Raises:
            ConfigError: If any value is missing its required shape
        """
        try:
            return cls(
                health_check_timeout_ms=_env_int("HEALTH_CHECK_TIMEOUT_MS", 5000),
                cancel_on_timeout=_env_bool("HEALTH_CANCEL_ON_TIMEOUT", False),
                abandoned_warning_threshold=_env_int("HEALTH_ABANDONED_WARNING_THRESHOLD", 100),
                retry_policy=RetryPolicy.from_env(),
                health_indicators=HealthIndicatorDefaults.from_env(),
                heap_dump=HeapDumpDefaults.from_env(),
                logging=LoggingDefaults.from_env(),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid diagnostics configuration: {e}") from e

    @classmethod
    def from_dict(cls, data: Optional[dict] = None) -> "DiagnosticsConfig":
        """Validate a plain mapping (e.g. parsed from a file)."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid diagnostics configuration: {e}") from e


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RetryPolicy",
    "HealthIndicatorDefaults",
    "HeapDumpDefaults",
    "LoggingDefaults",
    "DiagnosticsConfig",
]
