import logging
from datetime import datetime
from typing import Callable, Optional

from app import schemas
from app.core.documents import DocumentSnapshot, DocumentStore
from app.core.exceptions import DocumentStoreError, MaintenanceSyncError
from app.core.maintenance_reconciler import MaintenanceReconciler, Resolution
from app.core.maintenance_state import MaintenanceContext
from app.core.maintenance_store import MaintenanceStore

logger = logging.getLogger(__name__)


class MaintenanceService:
    """entry point the rest of the application uses for maintenance mode"""

    def __init__(self, documents: DocumentStore, clock: Optional[Callable[[], datetime]] = None):
        self.documents = documents
        self.store = MaintenanceStore(documents, clock=clock)
        self.reconciler = MaintenanceReconciler(self.store)
        self.context = MaintenanceContext(self.store, self.reconciler)

    async def get_status(self) -> bool:
        flag = await self.store.read_global()
        return flag.is_active

    async def set_status(self, is_active: bool, actor: Optional[str] = None, message: Optional[str] = None) -> None:
        """write GlobalDoc, then project the value onto SiteDoc"""
        await self.store.write_global(is_active, actor=actor, message=message)
        try:
            await self.store.write_site_flag(is_active, message=message)
        except DocumentStoreError as e:
            raise MaintenanceSyncError(resolved=is_active, written=[schemas.MaintenanceSource.GLOBAL.value], cause=e) from e
        self.context.apply(is_active, message)

    def on_status_change(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """live updates of GlobalDoc only, returns the unsubscribe function"""

        def listener(snapshot: DocumentSnapshot):
            flag = schemas.MaintenanceFlag.model_validate(snapshot.data) if snapshot.exists else schemas.MaintenanceFlag()
            callback(flag.is_active)

        return self.documents.watch(self.store.collection, self.store.global_doc_id, listener)

    async def reconcile(self, forced_source=None, actor: Optional[str] = None) -> Resolution:
        """synchronize and return which copy won, for callers reporting on it"""
        return await self.context.reconcile(forced_source, actor=actor)

    async def synchronize(self, forced_source=None, actor: Optional[str] = None) -> bool:
        return await self.context.synchronize(forced_source, actor=actor)

    async def force_set(self, is_active: bool, actor: Optional[str] = None) -> None:
        await self.reconciler.force_set(is_active, actor=actor)
        self.context.apply(is_active)
