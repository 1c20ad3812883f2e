# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Services - Component wiring
# PURPOSE: Long-lived diagnostics components built by the bootstrap
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services Module

Usage:
    from services import DiagnosticsServices

    services = DiagnosticsServices.create(config)
"""

from .diagnostics_service import DiagnosticsServices

__all__ = [
    "DiagnosticsServices",
]
