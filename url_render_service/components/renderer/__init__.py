"""
Renderer component for the URL Render Service.

This sub-package owns the headless browser: its lifecycle, the per-context
fingerprint policy, and the in-page wait for dynamic content.
"""
from .playwright_manager import BrowserLifecycleManager
from .readiness import ContentReadinessWaiter, ReadinessResult
from .stealth import FingerprintPolicy, NullFingerprintPolicy, fingerprint_policy_from_config

__all__ = [
    "BrowserLifecycleManager",
    "ContentReadinessWaiter",
    "ReadinessResult",
    "FingerprintPolicy",
    "NullFingerprintPolicy",
    "fingerprint_policy_from_config",
]
