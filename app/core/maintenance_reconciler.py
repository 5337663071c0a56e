"""Resolve the GlobalDoc and SiteDoc copies of the maintenance flag into one value"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from app import schemas
from app.core.documents import as_utc
from app.core.exceptions import DocumentStoreError, MaintenanceSyncError
from app.core.maintenance_store import MaintenanceStore, SiteMaintenanceState

logger = logging.getLogger(__name__)

MaintenanceSource = schemas.MaintenanceSource


@dataclass
class Resolution:
    value: bool
    source: MaintenanceSource
    global_flag: Optional[schemas.MaintenanceFlag] = None
    site_state: Optional[SiteMaintenanceState] = None

    @property
    def diverged(self) -> bool:
        if self.global_flag is None or self.site_state is None:
            return False
        return self.global_flag.is_active != self.site_state.is_active


def _coerce_source(forced_source: Union[str, MaintenanceSource, None]) -> Optional[MaintenanceSource]:
    if forced_source is None:
        return None
    try:
        return MaintenanceSource(forced_source)
    except ValueError:
        raise ValueError(f"Unknown maintenance source '{forced_source}', expected 'global' or 'site'")


class MaintenanceReconciler:
    def __init__(self, store: MaintenanceStore):
        self.store = store

    async def resolve(self, forced_source: Union[str, MaintenanceSource, None] = None) -> Resolution:
        """
        read phase of synchronize, never writes

        with a forced source only that copy is read and it wins outright.
        otherwise the copy with the more recent timestamp wins; a tie or a
        site copy without any timestamp goes to GlobalDoc. A copy this read
        had to create from defaults has no timestamp, so a real value in the
        other copy is never overridden by it
        """
        source = _coerce_source(forced_source)

        if source == MaintenanceSource.GLOBAL:
            flag = await self.store.read_global()
            return Resolution(value=flag.is_active, source=source, global_flag=flag)

        if source == MaintenanceSource.SITE:
            site = await self.store.read_site_state()
            return Resolution(value=site.is_active, source=source, site_state=site)

        flag, global_created = await self.store.load_global()
        site = await self.store.read_site_state()

        global_at = None if global_created else as_utc(flag.updated_at)
        site_at = None if site.created else as_utc(site.updated_at)

        if site_at is not None and (global_at is None or site_at > global_at):
            winner = MaintenanceSource.SITE
            value = site.is_active
        else:
            winner = MaintenanceSource.GLOBAL
            value = flag.is_active

        return Resolution(value=value, source=winner, global_flag=flag, site_state=site)

    async def _write_both(self, is_active: bool, actor: Optional[str] = None, message: Optional[str] = None) -> None:
        written = []
        try:
            await self.store.write_global(is_active, actor=actor, message=message)
            written.append(MaintenanceSource.GLOBAL.value)
            await self.store.write_site_flag(is_active, message=message)
            written.append(MaintenanceSource.SITE.value)
        except DocumentStoreError as e:
            if not written:
                raise
            logger.error(f"Maintenance copies may disagree: wrote {written} before failing: {e}")
            raise MaintenanceSyncError(resolved=is_active, written=written, cause=e) from e

    async def reconcile(self, forced_source: Union[str, MaintenanceSource, None] = None, actor: Optional[str] = None) -> Resolution:
        """synchronize, returning the resolution that was written"""
        resolution = await self.resolve(forced_source)
        logger.info(
            f"Synchronizing maintenance mode to {resolution.value} "
            f"(source={resolution.source.value}, forced={forced_source is not None}, diverged={resolution.diverged})"
        )
        await self._write_both(resolution.value, actor=actor)
        return resolution

    async def synchronize(self, forced_source: Union[str, MaintenanceSource, None] = None, actor: Optional[str] = None) -> bool:
        resolution = await self.reconcile(forced_source, actor=actor)
        return resolution.value

    async def force_set(self, is_active: bool, actor: Optional[str] = None) -> None:
        logger.info(f"Forcing maintenance mode to {is_active} on both copies")
        await self._write_both(is_active, actor=actor)
