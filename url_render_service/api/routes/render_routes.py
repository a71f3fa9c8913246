"""
Render routes: the polling endpoint, the status/ping SSE streams, and the
public IP lookup.
"""
import time

from fastapi import APIRouter, Depends, Request

from url_render_service.api.dependencies import get_render_service, publish_screenshot
from url_render_service.api.models import IpResponse, RenderResponse
from url_render_service.api.sse import observer_stream, sse_response
from url_render_service.core.exceptions import OperationsError
from url_render_service.core.logger import get_logger
from url_render_service.core.models import StatusEvent
from url_render_service.core.service import RenderService

logger = get_logger(__name__)

RENDER_ROUTE = "/api/render-url"
STATUS_ROUTE = "/api/render-url/status"
PING_ROUTE = "/api/ping"
IP_ROUTE = "/api/ip"

router = APIRouter()


@router.get(
    RENDER_ROUTE,
    response_model=RenderResponse,
    response_model_exclude_none=True,
    summary="Render a URL to HTML and a screenshot",
    description="Loads the URL in a headless browser, waits for the configured success markers "
                "(or the readiness timeout), and returns the HTML, a public screenshot URL and the "
                "seconds taken. Only one render runs at a time; concurrent requests are rejected.",
)
async def render_url(request: Request, url: str = "", service: RenderService = Depends(get_render_service)):
    logger.info(f"Render request: {url}")
    started = time.monotonic()
    outcome = await service.orchestrator.render(url)
    outcome = publish_screenshot(outcome, str(request.base_url))
    logger.info(f"Finished render ({time.monotonic() - started:.2f} s): {url}")
    return outcome.to_dict()


@router.get(STATUS_ROUTE, summary="Stream render status (SSE)")
async def render_status_stream(request: Request, service: RenderService = Depends(get_render_service)):
    return sse_response(
        observer_stream(request, service.status_broadcaster, service.current_status_event(), service.sink_queue_size)
    )


@router.get(PING_ROUTE, summary="Heartbeat stream (SSE)")
async def ping_stream(request: Request, service: RenderService = Depends(get_render_service)):
    return sse_response(observer_stream(request, service.ping_broadcaster, StatusEvent.ping(), service.sink_queue_size))


@router.get(IP_ROUTE, response_model=IpResponse, response_model_exclude_none=True, summary="Public IPv4 of this server")
async def public_ip(service: RenderService = Depends(get_render_service)):
    try:
        ip = await service.ip_resolver.get_ip()
    except OperationsError as e:
        return {"success": False, "error": e.detail}
    return {"success": True, "data": ip}
