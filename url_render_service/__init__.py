"""
URL Render Service.

Renders a URL in a headless browser, waits for application-specific content,
and returns the HTML, a screenshot and timing. Exposed over HTTP polling,
Server-Sent Events and a WebSocket channel.
"""

__version__ = "1.0.0"
