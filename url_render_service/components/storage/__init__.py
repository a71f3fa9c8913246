"""
Storage component for the URL Render Service.

Holds the date-partitioned screenshot tree.
"""
from .screenshot_storage import ScreenshotStorage

__all__ = [
    "ScreenshotStorage",
]
