"""
Broadcast component for the URL Render Service.

Fans out status and heartbeat events to SSE and WebSocket observers.
"""
from .status_broadcaster import EventSink, QueueSink, StatusBroadcaster

__all__ = [
    "EventSink",
    "QueueSink",
    "StatusBroadcaster",
]
