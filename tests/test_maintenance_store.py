"""tests for reading and writing the two maintenance documents"""
from datetime import datetime, timezone

import pytest

from app.core.config import settings
from app.core.exceptions import DocumentStoreError, MalformedDocumentError
from app.core.maintenance_store import MaintenanceStore

pytestmark = pytest.mark.anyio

COLLECTION = settings.SETTINGS_COLLECTION


@pytest.fixture
def store(documents, clock):
    return MaintenanceStore(documents, clock=clock)


async def test_read_global_creates_missing_document(store, documents):
    """test a fresh GlobalDoc reads as disabled and now exists"""
    flag = await store.read_global()
    assert flag.is_active is False
    assert flag.updated_at is not None

    snapshot = await documents.get_document(COLLECTION, settings.MAINTENANCE_DOC_ID)
    assert snapshot.exists is True
    assert snapshot.data["isActive"] is False


async def test_write_then_read_global(store):
    """test writeGlobal(true) is visible to the next readGlobal"""
    await store.write_global(True)
    flag = await store.read_global()
    assert flag.is_active is True
    assert flag.updated_by == "system"
    assert flag.message == "Maintenance mode enabled"


async def test_write_global_records_actor_and_message(store, clock):
    """test provenance and banner text are stored"""
    expected_at = clock.current
    await store.write_global(True, actor="admin-7", message="Back at noon")
    flag = await store.read_global()
    assert flag.updated_by == "admin-7"
    assert flag.message == "Back at noon"
    assert flag.updated_at == expected_at


async def test_read_site_flag_creates_default_settings(store, documents):
    """test a missing SiteDoc is created from the full defaults"""
    assert await store.read_site_flag() is False

    snapshot = await documents.get_document(COLLECTION, settings.SITE_SETTINGS_DOC_ID)
    assert snapshot.exists is True
    assert snapshot.get("general.siteName") == "TruthBeacon"
    assert snapshot.get("content.maxArticleLength") == 10000
    assert snapshot.get("email.emailTemplates.welcomeEmail") == "Welcome to TruthBeacon!"
    assert snapshot.get("security.passwordMinLength") == 8


async def test_write_site_flag_keeps_other_sections(store, documents):
    """test writing the flag preserves unrelated settings"""
    site = await store.read_site_settings()
    data = site.to_document()
    data["content"]["featuredArticlesCount"] = 9
    data["custom"] = {"keep": True}
    await documents.set_document(COLLECTION, settings.SITE_SETTINGS_DOC_ID, data)

    await store.write_site_flag(True, message="Upgrading the database")

    snapshot = await documents.get_document(COLLECTION, settings.SITE_SETTINGS_DOC_ID)
    assert snapshot.get("general.maintenanceMode") is True
    assert snapshot.get("general.maintenanceMessage") == "Upgrading the database"
    assert snapshot.get("content.featuredArticlesCount") == 9
    assert snapshot.get("custom.keep") is True


async def test_write_site_flag_without_message_keeps_banner(store):
    """test the banner text is only replaced when given"""
    await store.write_site_flag(True, message="First banner")
    await store.write_site_flag(False)

    state = await store.read_site_state()
    assert state.is_active is False
    assert state.message == "First banner"


async def test_site_state_uses_field_timestamp(store, clock):
    """test the per-field timestamp is reported for the flag"""
    await store.read_site_state()
    clock.current = datetime(2026, 5, 1, tzinfo=timezone.utc)
    await store.write_site_flag(True)

    state = await store.read_site_state()
    assert state.updated_at == datetime(2026, 5, 1, tzinfo=timezone.utc)


async def test_site_state_falls_back_to_document_time(store, documents, clock):
    """test a SiteDoc without the per-field timestamp uses the store's update time"""
    clock.current = datetime(2026, 2, 2, tzinfo=timezone.utc)
    await documents.set_document(COLLECTION, settings.SITE_SETTINGS_DOC_ID, {"general": {"maintenanceMode": True}})

    state = await store.read_site_state()
    assert state.is_active is True
    assert state.updated_at == datetime(2026, 2, 2, tzinfo=timezone.utc)


async def test_store_failure_propagates(store, documents):
    """test an unreachable store is reported, not hidden"""
    documents.failing_reads.add(settings.MAINTENANCE_DOC_ID)
    with pytest.raises(DocumentStoreError):
        await store.read_global()


async def test_site_write_failure_propagates(store, documents):
    """test a failed SiteDoc write is reported to the caller"""
    await store.read_site_flag()
    documents.failing_writes.add(settings.SITE_SETTINGS_DOC_ID)
    with pytest.raises(DocumentStoreError):
        await store.write_site_flag(True)
    documents.failing_writes.clear()
    assert await store.read_site_flag() is False


async def test_unparseable_site_timestamp_falls_back_to_update_time(store, documents, clock):
    """test a foreign value in maintenanceUpdatedAt is ignored instead of failing the read"""
    expected = clock.current
    await documents.set_document(
        COLLECTION,
        settings.SITE_SETTINGS_DOC_ID,
        {"general": {"maintenanceMode": True, "maintenanceUpdatedAt": "last tuesday"}},
    )

    state = await store.read_site_state()
    assert state.is_active is True
    assert state.updated_at == expected
    assert state.created is False


async def test_malformed_global_is_a_store_error(store, documents):
    """test GlobalDoc data that does not validate surfaces as a store error"""
    await documents.set_document(COLLECTION, settings.MAINTENANCE_DOC_ID, {"isActive": "maybe"})

    with pytest.raises(MalformedDocumentError) as exc_info:
        await store.read_global()
    assert isinstance(exc_info.value, DocumentStoreError)
    assert exc_info.value.doc_id == settings.MAINTENANCE_DOC_ID


async def test_malformed_site_settings_is_a_store_error(store, documents):
    """test a SiteDoc section of the wrong type cannot be loaded as settings"""
    await documents.set_document(COLLECTION, settings.SITE_SETTINGS_DOC_ID, {"general": "oops"})

    with pytest.raises(MalformedDocumentError):
        await store.read_site_settings()
    assert await store.read_site_flag() is False


async def test_created_documents_are_reported(store, clock):
    """test the first read reports creation and reuses the written timestamp"""
    expected = clock.current
    flag, created = await store.load_global()
    assert created is True
    assert flag.updated_at == expected

    _, created = await store.load_global()
    assert created is False

    state = await store.read_site_state()
    assert state.created is True
    assert (await store.read_site_state()).created is False
