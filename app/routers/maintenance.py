from fastapi import APIRouter, Depends, HTTPException, Request, Security, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import Optional
import logging

from app import schemas
from app.core.config import settings
from app.core.exceptions import DocumentStoreError, MaintenanceSyncError
from app.core.maintenance import MaintenanceService
from app.core.security import CurrentUser, get_current_admin, audit_log
from app.dependencies import get_maintenance_service

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(tags=["maintenance"])


def store_error_to_http(e: Exception) -> HTTPException:
    """convert maintenance failures to the responses shown to the admin"""
    if isinstance(e, MaintenanceSyncError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": "Maintenance settings were only partially updated, run synchronize again",
                "resolved": e.resolved,
                "written": e.written,
            }
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Maintenance settings are unavailable, please retry"
    )


def current_status(service: MaintenanceService) -> schemas.MaintenanceStatus:
    context = service.context
    return schemas.MaintenanceStatus(
        enabled=context.is_maintenance_mode,
        message=context.message,
        phase=context.phase.value
    )

# ============= PUBLIC ENDPOINTS =============

@router.get("/maintenance/status", response_model=schemas.MaintenanceStatus)
def get_maintenance_status(service: MaintenanceService = Depends(get_maintenance_service)):
    """Get current maintenance mode status (public endpoint)"""
    return current_status(service)

# ============= ADMIN ENDPOINTS =============

@router.get("/admin/maintenance/report", response_model=schemas.MaintenanceReport)
async def get_maintenance_report(
    current_user: CurrentUser = Security(get_current_admin),
    service: MaintenanceService = Depends(get_maintenance_service)
):
    """Both stored copies side by side and which one an auto synchronize would pick"""
    try:
        resolution = await service.reconciler.resolve()
    except DocumentStoreError as e:
        logger.error(f"Maintenance report failed: {e}")
        raise store_error_to_http(e)

    site = resolution.site_state
    return schemas.MaintenanceReport(
        global_copy=resolution.global_flag,
        site_copy=schemas.SiteMaintenanceCopy(
            is_active=site.is_active,
            updated_at=site.updated_at,
            message=site.message
        ),
        diverged=resolution.diverged,
        winner=resolution.source,
        resolved=resolution.value,
        context_enabled=service.context.is_maintenance_mode,
        context_phase=service.context.phase.value
    )


@router.post("/admin/maintenance/toggle", response_model=schemas.MaintenanceStatus)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def toggle_maintenance(
    request: Request,
    toggle: schemas.MaintenanceToggle,
    current_user: CurrentUser = Security(get_current_admin),
    service: MaintenanceService = Depends(get_maintenance_service)
):
    """Enable or disable maintenance mode on the site settings (admin only)"""
    try:
        await service.context.set_maintenance_mode(toggle.enabled, message=toggle.message)
    except DocumentStoreError as e:
        audit_log(f"Admin {current_user.id} failed to set maintenance mode to {toggle.enabled}")
        raise store_error_to_http(e)

    audit_log(f"Admin {current_user.id} set maintenance mode to {toggle.enabled}")
    return current_status(service)


@router.post("/admin/maintenance/status", response_model=schemas.MaintenanceStatus)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def set_maintenance_status(
    request: Request,
    toggle: schemas.MaintenanceToggle,
    current_user: CurrentUser = Security(get_current_admin),
    service: MaintenanceService = Depends(get_maintenance_service)
):
    """Write the dedicated maintenance document and project it onto the site settings"""
    try:
        await service.set_status(toggle.enabled, actor=current_user.id, message=toggle.message)
    except (DocumentStoreError, MaintenanceSyncError) as e:
        audit_log(f"Admin {current_user.id} failed to write maintenance status {toggle.enabled}: {e}")
        raise store_error_to_http(e)

    audit_log(f"Admin {current_user.id} wrote maintenance status {toggle.enabled}")
    return current_status(service)


@router.post("/admin/maintenance/synchronize", response_model=schemas.SynchronizeResult)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def synchronize_maintenance(
    request: Request,
    sync: Optional[schemas.SynchronizeRequest] = None,
    current_user: CurrentUser = Security(get_current_admin),
    service: MaintenanceService = Depends(get_maintenance_service)
):
    """Reconcile both copies, most recent wins unless a source is forced"""
    forced_source = sync.forced_source if sync else None
    try:
        resolution = await service.reconcile(forced_source, actor=current_user.id)
    except (DocumentStoreError, MaintenanceSyncError) as e:
        audit_log(f"Admin {current_user.id} maintenance synchronize failed: {e}")
        raise store_error_to_http(e)

    audit_log(
        f"Admin {current_user.id} synchronized maintenance mode to {resolution.value} "
        f"from {resolution.source.value}"
    )
    return schemas.SynchronizeResult(
        enabled=resolution.value,
        source=resolution.source,
        diverged=resolution.diverged
    )


@router.post("/admin/maintenance/force", response_model=schemas.MaintenanceStatus)
@limiter.limit(settings.RATE_LIMIT_ADMIN_WRITE)
async def force_maintenance(
    request: Request,
    force: schemas.ForceSetRequest,
    current_user: CurrentUser = Security(get_current_admin),
    service: MaintenanceService = Depends(get_maintenance_service)
):
    """Write the same value to both copies regardless of their state (admin only)"""
    try:
        await service.force_set(force.enabled, actor=current_user.id)
    except (DocumentStoreError, MaintenanceSyncError) as e:
        audit_log(f"Admin {current_user.id} failed to force maintenance mode {force.enabled}: {e}")
        raise store_error_to_http(e)

    audit_log(f"Admin {current_user.id} forced maintenance mode to {force.enabled}")
    return current_status(service)
