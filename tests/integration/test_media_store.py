"""MediaStore ordering between database rows and files on disk."""
import pytest

from cms.db.models.media import MediaItem
from cms.services.media.store import MediaStore

pytestmark = pytest.mark.asyncio


@pytest.fixture
def store(db, settings):
    return MediaStore(db, settings)


async def test_delete_keeps_file_until_caller_removes_it(store, db, settings):
    item = await store.upload(b"%PDF-1.4", original_name="doc.pdf", mime_type="application/pdf")
    await db.commit()
    path = settings.upload_dir / item.path

    filename = await store.delete(item.id)
    assert filename == item.path
    assert path.exists()

    # A failed commit rolls the row back and the file is still there to serve.
    await db.rollback()
    assert await db.get(MediaItem, item.id) is not None
    assert path.exists()

    await store.delete(item.id)
    await db.commit()
    await store.remove_file(filename)
    assert not path.exists()
    assert await db.get(MediaItem, item.id) is None


async def test_abandoned_upload_file_can_be_removed(store, db, settings):
    item = await store.upload(b"%PDF-1.4", original_name="doc.pdf", mime_type="application/pdf")
    path = settings.upload_dir / item.path
    assert path.exists()

    await db.rollback()
    await store.remove_file(item.path)
    assert not path.exists()


async def test_remove_file_ignores_missing_files(store):
    await store.remove_file("0123abcd.png")
