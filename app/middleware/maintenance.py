from fastapi import Request, status
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.security import user_from_authorization


def is_bypassed_path(path: str) -> bool:
    #health, login and the maintenance endpoints themselves stay reachable
    if path == settings.LOGIN_PATH or path.startswith(settings.LOGIN_PATH + "/"):
        return True
    if path.startswith(f"{settings.API_V1_STR}/admin/maintenance"):
        return True
    if path == f"{settings.API_V1_STR}/maintenance/status":
        return True
    return path in settings.MAINTENANCE_BYPASS_PATHS


async def maintenance_mode_middleware(request: Request, call_next):
    """Check if maintenance mode is enabled"""

    if is_bypassed_path(request.url.path):
        return await call_next(request)

    service = getattr(request.app.state, "maintenance", None)
    context = service.context if service is not None else None

    if context is not None and context.is_maintenance_mode:
        #admins bypass maintenance mode
        user = user_from_authorization(request.headers.get("Authorization"))
        if user is not None and user.is_admin:
            return await call_next(request)

        retry_after = str(settings.MAINTENANCE_RETRY_AFTER)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": context.message,
                "status": "maintenance",
                "retry_after": settings.MAINTENANCE_RETRY_AFTER
            },
            headers={"Retry-After": retry_after}
        )

    return await call_next(request)
