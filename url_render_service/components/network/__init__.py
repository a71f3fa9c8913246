"""Network helpers for the URL Render Service."""
from .public_ip import PublicIpResolver

__all__ = [
    "PublicIpResolver",
]
