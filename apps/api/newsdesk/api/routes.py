from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from newsdesk.access.api import admin_router, me_router, public_router
from newsdesk.access.dependencies import require_permission
from newsdesk.core.auth import AuthUser
from newsdesk.core.config import get_settings
from newsdesk.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(admin_router)
router.include_router(me_router)
router.include_router(public_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(_user: AuthUser = Depends(require_permission("system.metrics.read"))) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
