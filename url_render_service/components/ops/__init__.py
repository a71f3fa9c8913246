"""Operational helpers for the URL Render Service."""
from .restarter import ProcessRestarter, RestartResult

__all__ = [
    "ProcessRestarter",
    "RestartResult",
]
