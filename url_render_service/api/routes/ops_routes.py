"""
Operational routes: health, browser restart, application restart.
"""
from fastapi import APIRouter, Depends

from url_render_service.api.dependencies import get_render_service
from url_render_service.api.models import OperationResponse
from url_render_service.core.exceptions import OperationsError
from url_render_service.core.logger import get_logger
from url_render_service.core.service import RenderService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/health", response_model=OperationResponse, response_model_exclude_none=True, summary="Service health")
async def health(service: RenderService = Depends(get_render_service)):
    return {"success": True, "data": service.health()}


@router.get("/api/restart-browser", response_model=OperationResponse, response_model_exclude_none=True, summary="Close the browser; the next render relaunches it")
async def restart_browser(service: RenderService = Depends(get_render_service)):
    released = await service.browser_manager.release(reason="manual restart")
    return {"success": True, "data": {"released": released}}


@router.get("/api/restart-app", response_model=OperationResponse, response_model_exclude_none=True, summary="Restart the application via the process manager")
async def restart_app(service: RenderService = Depends(get_render_service)):
    try:
        result = await service.restarter.restart()
    except OperationsError as e:
        logger.error(f"Application restart failed: {e.detail}")
        return {"success": False, "error": e.detail}
    return {"success": True, "data": {"command": result.command, "returncode": result.returncode, "output": result.output}}
