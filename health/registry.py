# ============================================================================
# HEALTH INDICATOR REGISTRY
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Health - Indicator registration
# PURPOSE: Register, remove, and snapshot named health indicators
# CREATED: 19 OCT 2026
# ============================================================================
"""
Health Indicator Registry

Ordered mapping of named indicators. The registry is the only mutable state
shared by health checks; the aggregator takes a snapshot at the start of
each check so later add/remove calls never affect an in-flight check.

There is no module-level registry. The process bootstrap constructs one and
passes it to the components that need it.

Usage:
    registry = HealthIndicatorRegistry()
    registry.add(HealthIndicator(name="db", probe=ping_db, critical=True))

    registry.list()       # [{"name": "db", "enabled": True, "critical": True}]
    registry.remove("db")
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from health.core import HealthIndicator

logger = logging.getLogger(__name__)

# Names taken by fixed routes under /health
RESERVED_NAMES = frozenset({"indicators"})


class HealthIndicatorRegistry:
    """
    Registry for health indicators.

    Insertion order is preserved. Re-adding a name replaces the prior entry
    in place (last write wins).
    """

    def __init__(self, indicators: Optional[List[HealthIndicator]] = None):
        self._indicators: Dict[str, HealthIndicator] = {}
        for indicator in indicators or []:
            self.add(indicator)

    def add(self, indicator: HealthIndicator) -> None:
        """
        Insert or replace an indicator by name.

        Args:
            indicator: Indicator to register

        Raises:
            ValueError: If the name is reserved
        """
        if indicator.name in RESERVED_NAMES:
            raise ValueError(f"Health indicator name is reserved: {indicator.name}")

        if indicator.name in self._indicators:
            logger.warning(f"Replacing health indicator: {indicator.name}")

        self._indicators[indicator.name] = indicator
        logger.debug(
            f"Registered health indicator: {indicator.name} "
            f"(enabled={indicator.enabled}, critical={indicator.critical})"
        )

    def remove(self, name: str) -> bool:
        """
        Remove an indicator by name. Unknown names are a no-op.

        Returns:
            True if an indicator was removed
        """
        if name in self._indicators:
            del self._indicators[name]
            logger.debug(f"Removed health indicator: {name}")
            return True
        return False

    def get(self, name: str) -> Optional[HealthIndicator]:
        """Get indicator by name."""
        return self._indicators.get(name)

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """
        Enable or disable an indicator without changing its position.

        Returns:
            True if the indicator exists
        """
        indicator = self._indicators.get(name)
        if indicator is None:
            return False
        self._indicators[name] = indicator.with_enabled(enabled)
        return True

    def snapshot(self) -> Tuple[HealthIndicator, ...]:
        """Consistent view of the enabled indicators, in insertion order."""
        return tuple(i for i in self._indicators.values() if i.enabled)

    def list(self) -> List[Dict[str, Any]]:
        """Enabled indicators as {name, enabled, critical}, in insertion order."""
        return [i.describe() for i in self.snapshot()]

    def list_all(self) -> List[Dict[str, Any]]:
        """All indicators, including disabled ones, as {name, enabled, critical}."""
        return [i.describe() for i in self._indicators.values()]

    def clear(self) -> None:
        """Remove all indicators."""
        self._indicators.clear()

    def __len__(self) -> int:
        return len(self._indicators)

    def __contains__(self, name: str) -> bool:
        return name in self._indicators


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "HealthIndicatorRegistry",
    "RESERVED_NAMES",
]
