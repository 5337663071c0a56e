import asyncio
import copy
from collections import deque
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.encoders import jsonable_encoder
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest import mock


def passthrough_decorator(*args, **kwargs):
    """Passthrough decorator that doesn't do rate limiting"""

    def decorator(func):
        return func

    return decorator


mock.patch("slowapi.Limiter.limit", passthrough_decorator).start()
mock.patch("slowapi.Limiter.shared_limit", passthrough_decorator).start()

# ruff: noqa: E402
from app.main import app
from app.database import Base
from app.core.documents import DocumentSnapshot, DocumentStore, SqlDocumentStore, merge_fields
from app.core.exceptions import DocumentNotFoundError, DocumentStoreError
from app.core.maintenance import MaintenanceService
from app.core.security import create_access_token

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """deterministic clock, every call moves time forward by step"""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        now = self.current
        self.current = self.current + self.step
        return now


class InMemoryDocumentStore(DocumentStore):
    """dict backed store without any suspension point of its own"""

    def __init__(self, clock=None):
        super().__init__()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.docs = {}

    def _snapshot(self, collection, doc_id):
        entry = self.docs.get((collection, doc_id))
        if entry is None:
            return DocumentSnapshot(collection=collection, doc_id=doc_id, exists=False)
        data, update_time = entry
        return DocumentSnapshot(collection=collection, doc_id=doc_id, exists=True, data=copy.deepcopy(data), update_time=update_time)

    async def get_document(self, collection, doc_id):
        return self._snapshot(collection, doc_id)

    async def set_document(self, collection, doc_id, data):
        self.docs[(collection, doc_id)] = (jsonable_encoder(data), self.clock())
        self._notify(self._snapshot(collection, doc_id))

    async def update_document(self, collection, doc_id, partial):
        if (collection, doc_id) not in self.docs:
            raise DocumentNotFoundError(collection, doc_id)
        data, _ = self.docs[(collection, doc_id)]
        self.docs[(collection, doc_id)] = (merge_fields(data, jsonable_encoder(partial)), self.clock())
        self._notify(self._snapshot(collection, doc_id))


class FakeDocumentStore(DocumentStore):
    """wraps a real store to inject failures and hold writes open"""

    def __init__(self, inner):
        super().__init__()
        self.inner = inner
        self.failing_reads = set()
        self.failing_writes = set()
        self.held = deque()
        self.waiting = 0
        self.writes = []

    def hold_next_write(self):
        event = asyncio.Event()
        self.held.append(event)
        return event

    async def get_document(self, collection, doc_id):
        if doc_id in self.failing_reads:
            raise DocumentStoreError(f"read of {collection}/{doc_id} refused")
        return await self.inner.get_document(collection, doc_id)

    async def _before_write(self, collection, doc_id):
        if self.held:
            event = self.held.popleft()
            self.waiting += 1
            try:
                await event.wait()
            finally:
                self.waiting -= 1
        if doc_id in self.failing_writes:
            raise DocumentStoreError(f"write of {collection}/{doc_id} refused")

    async def set_document(self, collection, doc_id, data):
        await self._before_write(collection, doc_id)
        await self.inner.set_document(collection, doc_id, data)
        self.writes.append(doc_id)

    async def update_document(self, collection, doc_id, partial):
        await self._before_write(collection, doc_id)
        await self.inner.update_document(collection, doc_id, partial)
        self.writes.append(doc_id)

    def watch(self, collection, doc_id, callback):
        return self.inner.watch(collection, doc_id, callback)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def session_factory():
    """fresh tables for each test"""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sql_documents(session_factory, clock):
    return SqlDocumentStore(session_factory, clock=clock)


@pytest.fixture
def documents(sql_documents):
    return FakeDocumentStore(sql_documents)


@pytest.fixture
def service(documents, clock):
    return MaintenanceService(documents, clock=clock)


@pytest.fixture
def memory_documents(clock):
    return FakeDocumentStore(InMemoryDocumentStore(clock=clock))


@pytest.fixture
def memory_service(memory_documents, clock):
    return MaintenanceService(memory_documents, clock=clock)


@pytest.fixture(scope="function")
def client(session_factory):
    """test client whose lifespan builds the service on the test database"""
    documents = FakeDocumentStore(SqlDocumentStore(session_factory))
    app.state.document_store = documents

    async def passthrough_middleware(self, request, call_next):
        """passthrough middleware that doesnt do rate limiting"""
        response = await call_next(request)
        return response

    with (
        mock.patch("app.core.scheduler.init_scheduler"),
        mock.patch("app.core.scheduler.start_scheduler"),
        mock.patch("app.core.scheduler.shutdown_scheduler"),
        mock.patch("slowapi.middleware.SlowAPIMiddleware.dispatch", passthrough_middleware),
    ):
        with TestClient(app, base_url="http://localhost:8000") as test_client:
            test_client.documents = documents
            yield test_client

    del app.state.document_store


@pytest.fixture
def admin_headers():
    token = create_access_token("admin-1", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    token = create_access_token("reader-1", role="user")
    return {"Authorization": f"Bearer {token}"}
