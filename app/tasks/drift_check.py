import logging

from app.core.exceptions import DocumentStoreError
from app.core.maintenance_reconciler import MaintenanceReconciler

logger = logging.getLogger(__name__)


async def check_maintenance_drift(reconciler: MaintenanceReconciler) -> bool:
    """
    compare the two stored copies of the maintenance flag and log when they disagree

    read only: divergence is left for an admin synchronize to correct.
    returns True when the copies disagree
    """
    try:
        resolution = await reconciler.resolve()
    except DocumentStoreError as e:
        logger.error(f"Maintenance drift check could not read the settings documents: {e}")
        return False

    if resolution.diverged:
        logger.warning(
            f"Maintenance copies disagree: global={resolution.global_flag.is_active} "
            f"site={resolution.site_state.is_active}, auto synchronize would pick "
            f"{resolution.source.value} ({resolution.value})"
        )
        return True

    logger.info(f"Maintenance copies agree (enabled={resolution.value})")
    return False
