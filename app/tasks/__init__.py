from .drift_check import check_maintenance_drift

__all__ = [
    'check_maintenance_drift'
]
