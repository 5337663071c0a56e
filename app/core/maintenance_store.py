"""Read/write access to the two documents holding the maintenance flag"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from app import schemas
from app.core.config import settings
from app.core.documents import DocumentStore, DocumentSnapshot, as_utc, merge_fields
from app.core.exceptions import MalformedDocumentError

logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(Optional[datetime])


@dataclass
class SiteMaintenanceState:
    is_active: bool
    updated_at: Optional[datetime]
    message: Optional[str]
    # SiteDoc did not exist and was just written from defaults
    created: bool = False


def default_message(is_active: bool) -> str:
    return "Maintenance mode enabled" if is_active else "Maintenance mode disabled"


class MaintenanceStore:
    """
    GlobalDoc: settings/maintenance_status, a dedicated flag document
    SiteDoc: settings/site_settings, the site settings aggregate carrying
    general.maintenanceMode

    both documents are created with defaults the first time they are read.
    stored data that does not validate raises MalformedDocumentError, a
    DocumentStoreError like any other store failure
    """

    def __init__(
        self,
        documents: DocumentStore,
        collection: str = settings.SETTINGS_COLLECTION,
        global_doc_id: str = settings.MAINTENANCE_DOC_ID,
        site_doc_id: str = settings.SITE_SETTINGS_DOC_ID,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.documents = documents
        self.collection = collection
        self.global_doc_id = global_doc_id
        self.site_doc_id = site_doc_id
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _validate(self, model, doc_id: str, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid data in {self.collection}/{doc_id}: {e}")
            raise MalformedDocumentError(self.collection, doc_id, cause=e) from e

    # ============= GLOBAL DOC =============

    async def load_global(self) -> Tuple[schemas.MaintenanceFlag, bool]:
        """GlobalDoc and whether this call had to create it"""
        snapshot = await self.documents.get_document(self.collection, self.global_doc_id)
        if snapshot.exists:
            return self._validate(schemas.MaintenanceFlag, self.global_doc_id, snapshot.data), False

        flag = schemas.MaintenanceFlag(
            is_active=False,
            updated_at=self.clock(),
            message="Maintenance mode initialized"
        )
        await self.documents.set_document(self.collection, self.global_doc_id, flag.to_document())
        logger.info(f"Created {self.collection}/{self.global_doc_id} with maintenance disabled")
        return flag, True

    async def read_global(self) -> schemas.MaintenanceFlag:
        flag, _ = await self.load_global()
        return flag

    async def write_global(self, is_active: bool, actor: Optional[str] = None, message: Optional[str] = None) -> schemas.MaintenanceFlag:
        flag = schemas.MaintenanceFlag(
            is_active=is_active,
            updated_at=self.clock(),
            updated_by=actor or "system",
            message=message or default_message(is_active)
        )
        await self.documents.set_document(self.collection, self.global_doc_id, flag.to_document())
        return flag

    # ============= SITE DOC =============

    async def _site_snapshot(self) -> Tuple[DocumentSnapshot, bool]:
        snapshot = await self.documents.get_document(self.collection, self.site_doc_id)
        if snapshot.exists:
            return snapshot, False

        now = self.clock()
        defaults = schemas.SiteSettings(updated_at=now).to_document()
        await self.documents.set_document(self.collection, self.site_doc_id, defaults)
        logger.info(f"Created {self.collection}/{self.site_doc_id} from default site settings")
        return DocumentSnapshot(
            collection=self.collection,
            doc_id=self.site_doc_id,
            exists=True,
            data=defaults,
            update_time=now
        ), True

    async def read_site_settings(self) -> schemas.SiteSettings:
        snapshot, _ = await self._site_snapshot()
        return self._validate(schemas.SiteSettings, self.site_doc_id, snapshot.data)

    def _site_timestamp(self, snapshot: DocumentSnapshot) -> Optional[datetime]:
        raw = snapshot.get("general.maintenanceUpdatedAt")
        try:
            updated_at = _datetime_adapter.validate_python(raw)
        except ValidationError:
            logger.warning(
                f"Ignoring unparseable general.maintenanceUpdatedAt {raw!r} "
                f"in {self.collection}/{self.site_doc_id}"
            )
            updated_at = None
        if updated_at is None:
            updated_at = snapshot.update_time
        return as_utc(updated_at)

    async def read_site_state(self) -> SiteMaintenanceState:
        """
        the flag plus the timestamp used to compare it against GlobalDoc

        general.maintenanceUpdatedAt is preferred; documents written before that
        field existed, or holding something that is not a timestamp, fall back
        to the store's update time for the whole doc
        """
        snapshot, created = await self._site_snapshot()
        message = snapshot.get("general.maintenanceMessage")
        return SiteMaintenanceState(
            is_active=bool(snapshot.get("general.maintenanceMode", False)),
            updated_at=self._site_timestamp(snapshot),
            message=message if isinstance(message, str) else None,
            created=created
        )

    async def read_site_flag(self) -> bool:
        state = await self.read_site_state()
        return state.is_active

    async def write_site_flag(self, is_active: bool, message: Optional[str] = None) -> None:
        # whole document is written back, a concurrent writer of another
        # section between the read and the write loses its update
        snapshot, _ = await self._site_snapshot()
        now = self.clock()
        overlay = {
            "general.maintenanceMode": is_active,
            "general.maintenanceUpdatedAt": now,
            "updatedAt": now,
        }
        if message is not None:
            overlay["general.maintenanceMessage"] = message
        data = merge_fields(snapshot.data, overlay)
        await self.documents.set_document(self.collection, self.site_doc_id, data)
