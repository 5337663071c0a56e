"""
document store client

the maintenance code only talks to the DocumentStore interface; SqlDocumentStore
keeps every document as a JSON row of the documents table
"""
import copy
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app import models
from app.core.exceptions import DocumentNotFoundError, DocumentStoreError

logger = logging.getLogger(__name__)

Listener = Callable[["DocumentSnapshot"], None]


@dataclass
class DocumentSnapshot:
    collection: str
    doc_id: str
    exists: bool
    data: Dict[str, Any] = field(default_factory=dict)
    update_time: Optional[datetime] = None

    def get(self, path: str, default: Any = None) -> Any:
        """read a dotted path such as general.maintenanceMode"""
        node: Any = self.data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node


def merge_fields(data: Dict[str, Any], partial: Dict[str, Any]) -> Dict[str, Any]:
    """
    apply a field merge the way a document update does

    dotted keys address nested fields, intermediate maps are created when
    missing; plain keys replace the whole top-level value
    """
    merged = copy.deepcopy(data)
    for key, value in partial.items():
        parts = key.split(".")
        node = merged
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return merged


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DocumentStore:
    """async get/set/update on named collections plus in-process change listeners"""

    def __init__(self):
        self._listeners: Dict[Tuple[str, str], List[Listener]] = defaultdict(list)

    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        raise NotImplementedError

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def update_document(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        raise NotImplementedError

    def watch(self, collection: str, doc_id: str, callback: Listener) -> Callable[[], None]:
        """register callback for writes to one document, returns the unsubscribe function"""
        key = (collection, doc_id)
        self._listeners[key].append(callback)

        def unsubscribe():
            try:
                self._listeners[key].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self, snapshot: DocumentSnapshot) -> None:
        for callback in list(self._listeners.get((snapshot.collection, snapshot.doc_id), [])):
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f"Listener for {snapshot.collection}/{snapshot.doc_id} failed")


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory: sessionmaker, clock: Optional[Callable[[], datetime]] = None):
        super().__init__()
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _find(self, db: Session, collection: str, doc_id: str) -> Optional[models.Document]:
        return db.query(models.Document).filter(
            models.Document.collection == collection,
            models.Document.doc_id == doc_id
        ).first()

    def _snapshot(self, collection: str, doc_id: str, row: Optional[models.Document]) -> DocumentSnapshot:
        if row is None:
            return DocumentSnapshot(collection=collection, doc_id=doc_id, exists=False)
        return DocumentSnapshot(
            collection=collection,
            doc_id=doc_id,
            exists=True,
            data=copy.deepcopy(row.data or {}),
            update_time=as_utc(row.updated_at)
        )

    def _get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        db = self.session_factory()
        try:
            return self._snapshot(collection, doc_id, self._find(db, collection, doc_id))
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Failed to read {collection}/{doc_id}: {e}") from e
        finally:
            db.close()

    def _set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> DocumentSnapshot:
        now = self.clock()
        db = self.session_factory()
        try:
            row = self._find(db, collection, doc_id)
            if row is None:
                row = models.Document(collection=collection, doc_id=doc_id, created_at=now)
                db.add(row)
            row.data = jsonable_encoder(data)
            row.updated_at = now
            db.commit()
            db.refresh(row)
            return self._snapshot(collection, doc_id, row)
        except SQLAlchemyError as e:
            db.rollback()
            raise DocumentStoreError(f"Failed to write {collection}/{doc_id}: {e}") from e
        finally:
            db.close()

    def _update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> DocumentSnapshot:
        now = self.clock()
        db = self.session_factory()
        try:
            row = self._find(db, collection, doc_id)
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            row.data = merge_fields(row.data or {}, jsonable_encoder(partial))
            row.updated_at = now
            db.commit()
            db.refresh(row)
            return self._snapshot(collection, doc_id, row)
        except SQLAlchemyError as e:
            db.rollback()
            raise DocumentStoreError(f"Failed to update {collection}/{doc_id}: {e}") from e
        finally:
            db.close()

    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        return await run_in_threadpool(self._get, collection, doc_id)

    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        snapshot = await run_in_threadpool(self._set, collection, doc_id, data)
        self._notify(snapshot)

    async def update_document(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        snapshot = await run_in_threadpool(self._update, collection, doc_id, partial)
        self._notify(snapshot)
