"""FastAPI dependencies and URL helpers shared by the route modules."""
from typing import Optional

from fastapi import Request
from starlette.requests import HTTPConnection

from url_render_service.core.models import RenderOutcome
from url_render_service.core.service import RenderService


def get_render_service(request: Request) -> RenderService:
    return request.app.state.render_service


def connection_service(connection: HTTPConnection) -> RenderService:
    return connection.app.state.render_service


def public_url(base_url: str, relative_path: str) -> str:
    """Joins the request base URL (`<scheme>://<host>[:<port>]/`) with a relative file path."""
    if relative_path.startswith("./"):
        relative_path = relative_path[2:]
    return base_url.rstrip("/") + "/" + relative_path.lstrip("/")


def websocket_base_url(connection: HTTPConnection) -> str:
    """
    Base URL for links handed out over the socket channel.

    Uses the handshake `Host` header and an optional `protocol` header, falling
    back to http/https according to ws/wss.
    """
    scheme: Optional[str] = connection.headers.get("protocol")
    if not scheme:
        scheme = "https" if connection.url.scheme == "wss" else "http"
    host = connection.headers.get("host") or connection.url.netloc
    return f"{scheme}://{host}/"


def publish_screenshot(outcome: RenderOutcome, base_url: str) -> RenderOutcome:
    """Rewrites the relative screenshot path of a successful outcome into a public URL."""
    return outcome.map_data(lambda result: result.with_screenshot(public_url(base_url, result.screenshot)))
