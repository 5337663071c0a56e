from fastapi import Request

from .core.maintenance import MaintenanceService


def get_maintenance_service(request: Request) -> MaintenanceService:
    return request.app.state.maintenance
