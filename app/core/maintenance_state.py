"""Maintenance mode state manager"""
import logging
from enum import Enum
from typing import Optional

from app.core.config import settings
from app.core.maintenance_reconciler import MaintenanceReconciler, Resolution
from app.core.maintenance_store import MaintenanceStore

logger = logging.getLogger(__name__)


class MaintenancePhase(str, Enum):
    UNKNOWN = "unknown"
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class MaintenanceContext:
    """
    In-memory maintenance state shared by every request of this process.

    Loaded from SiteDoc once at startup; toggles are optimistic: the local
    value flips first, the SiteDoc write follows, and a failed write puts the
    last confirmed value back. Overlapping toggles are not serialized, each
    response is applied as it arrives so the last one to arrive wins.
    """

    def __init__(self, store: MaintenanceStore, reconciler: MaintenanceReconciler):
        self.store = store
        self.reconciler = reconciler
        self._value: Optional[bool] = None
        self._confirmed: Optional[bool] = None
        self._message = settings.DEFAULT_MAINTENANCE_MESSAGE
        self._pending = 0
        self.phase = MaintenancePhase.UNKNOWN
        self.last_error: Optional[Exception] = None

    @property
    def is_known(self) -> bool:
        return self._value is not None

    @property
    def is_maintenance_mode(self) -> bool:
        """Unknown gates as not in maintenance"""
        return bool(self._value)

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    @property
    def message(self) -> str:
        return self._message

    async def initialize(self) -> bool:
        """Unknown -> Known(v) from SiteDoc"""
        state = await self.store.read_site_state()
        self.apply(state.is_active, state.message)
        logger.info(f"Maintenance context initialized: enabled={state.is_active}")
        return state.is_active

    def apply(self, value: bool, message: Optional[str] = None) -> None:
        """adopt a value already confirmed by the store"""
        self._value = value
        self._confirmed = value
        if message:
            self._message = message
        self.last_error = None
        self.phase = MaintenancePhase.PENDING if self.is_pending else MaintenancePhase.IDLE

    async def set_maintenance_mode(self, value: bool, message: Optional[str] = None) -> bool:
        """
        Known(v) -> Pending(v) -> Committed(value) | RolledBack(v)
        Unknown -> Pending -> Committed(value) | Unknown

        raises the store error after rolling back
        """
        self._value = value
        self._pending += 1
        self.phase = MaintenancePhase.PENDING
        try:
            await self.store.write_site_flag(value, message=message)
        except Exception as e:
            self._value = self._confirmed
            self.last_error = e
            # nothing was ever confirmed, so there is no value to roll back to
            self.phase = MaintenancePhase.UNKNOWN if self._confirmed is None else MaintenancePhase.ROLLED_BACK
            logger.warning(f"Maintenance toggle to {value} failed, rolled back to {self._confirmed}: {e}")
            raise
        else:
            self._value = value
            self._confirmed = value
            if message:
                self._message = message
            self.last_error = None
            self.phase = MaintenancePhase.COMMITTED
            logger.info(f"Maintenance mode set to {value}")
            return value
        finally:
            self._pending -= 1

    async def reconcile(self, forced_source=None, actor: Optional[str] = None) -> Resolution:
        resolution = await self.reconciler.reconcile(forced_source, actor=actor)
        self.apply(resolution.value)
        return resolution

    async def synchronize(self, forced_source=None, actor: Optional[str] = None) -> bool:
        resolution = await self.reconcile(forced_source, actor=actor)
        return resolution.value

    def teardown(self) -> None:
        self._value = None
        self._confirmed = None
        self._pending = 0
        self._message = settings.DEFAULT_MAINTENANCE_MESSAGE
        self.last_error = None
        self.phase = MaintenancePhase.UNKNOWN
