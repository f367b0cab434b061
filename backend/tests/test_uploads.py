import logging

import pytest

from app.core.errors import (
    InvalidContentType,
    MissingField,
    ObjectNotFound,
    StoreUnavailable,
)
from app.main import create_app
from app.schemas import RenameRequest, UpdateRequest, UploadRequest
from app.services.uploads import UploadService

PDF_BYTES = b"%PDF-1.5\n1 0 obj\n<< >>\nendobj\n"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01"


@pytest.fixture
def uploads(store):
    return UploadService(store, ["application/pdf", "image/jpeg"])


@pytest.mark.asyncio
async def test_create_keeps_extension_and_title(uploads, store):
    listing = await uploads.create(
        UploadRequest(title="tax_2024", file_bytes=PDF_BYTES, filename="return.final.pdf")
    )

    (entry,) = listing
    assert entry.key.endswith(".pdf")
    assert entry.key.startswith("tax_2024_")
    # Truncating at the last delimiter gives back the submitted title.
    assert entry.key[: entry.key.rindex("_")] == "tax_2024"
    assert entry.title == "tax_2024"
    assert [call[0] for call in store.calls] == ["put", "list"]


@pytest.mark.asyncio
async def test_create_rejects_disallowed_type(uploads, store):
    with pytest.raises(InvalidContentType):
        await uploads.create(
            UploadRequest(title="x", file_bytes=b"GIF89a\x01\x00", filename="a.gif")
        )
    assert store.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("title", "data", "field"),
    [
        ("", PDF_BYTES, "title"),
        ("   ", PDF_BYTES, "title"),
        ("x", None, "file"),
        ("x", b"", "file content"),
    ],
)
async def test_create_missing_fields(uploads, store, title, data, field):
    with pytest.raises(MissingField) as excinfo:
        await uploads.create(UploadRequest(title=title, file_bytes=data, filename="a.pdf"))
    assert excinfo.value.field == field
    assert store.calls == []


@pytest.mark.asyncio
async def test_round_trip_listing_and_preview(uploads):
    listing = await uploads.create(
        UploadRequest(title="x", file_bytes=JPEG_BYTES, filename="photo.jpg")
    )
    (entry,) = [obj for obj in listing if obj.title == "x"]
    assert await uploads.preview(entry.key)


@pytest.mark.asyncio
async def test_preview_requires_key(uploads):
    with pytest.raises(MissingField):
        await uploads.preview("")


@pytest.mark.asyncio
async def test_update_deletes_old_then_writes_new(uploads, store):
    store.objects["invoice_1.pdf"] = (PDF_BYTES, "application/pdf")

    new_key = await uploads.update(
        UpdateRequest(
            title="invoice",
            file_bytes=JPEG_BYTES,
            filename="scan.jpg",
            key="invoice_1.pdf",
        )
    )

    assert new_key.startswith("invoice_") and new_key.endswith(".jpg")
    assert store.mutations == [("delete", "invoice_1.pdf"), ("put", new_key)]


@pytest.mark.asyncio
async def test_update_failure_after_delete_leaves_nothing(uploads, store, monkeypatch):
    store.objects["invoice_1.pdf"] = (PDF_BYTES, "application/pdf")

    async def broken_put(key, data, content_type, length):
        raise StoreUnavailable("connection reset")

    monkeypatch.setattr(store, "put", broken_put)

    with pytest.raises(StoreUnavailable):
        await uploads.update(
            UpdateRequest(title="invoice", file_bytes=PDF_BYTES, filename="a.pdf", key="invoice_1.pdf")
        )
    assert store.objects == {}


@pytest.mark.asyncio
async def test_update_unknown_key(uploads, store):
    with pytest.raises(ObjectNotFound):
        await uploads.update(
            UpdateRequest(title="invoice", file_bytes=PDF_BYTES, filename="a.pdf", key="ghost.pdf")
        )
    assert store.mutations == []


@pytest.mark.asyncio
async def test_rename_moves_object(uploads, store):
    store.objects["invoice_1.pdf"] = (PDF_BYTES, "application/pdf")

    new_key = await uploads.rename(RenameRequest(old_key="invoice_1.pdf", new_key="paid_1"))

    assert new_key == "paid_1.pdf"
    assert not await store.head("invoice_1.pdf")
    assert await store.head("paid_1.pdf")


@pytest.mark.asyncio
async def test_rename_failed_delete_leaves_duplicate(uploads, store, monkeypatch):
    store.objects["invoice_1.pdf"] = (PDF_BYTES, "application/pdf")

    async def broken_delete(key):
        raise StoreUnavailable("error deleting file")

    monkeypatch.setattr(store, "delete", broken_delete)

    with pytest.raises(StoreUnavailable):
        await uploads.rename(RenameRequest(old_key="invoice_1.pdf", new_key="paid_1"))
    assert set(store.objects) == {"invoice_1.pdf", "paid_1.pdf"}


@pytest.mark.asyncio
async def test_delete_absent_key_is_not_found_each_time(uploads, store):
    for _ in range(2):
        with pytest.raises(ObjectNotFound):
            await uploads.delete("ghost_1.pdf")
    assert store.mutations == []


@pytest.mark.asyncio
async def test_failures_reach_root_handlers(uploads, store, settings, caplog):
    # The app factory configures the `app` logger; records must still propagate.
    create_app(settings, store=store)
    assert logging.getLogger("app").propagate is True

    with caplog.at_level(logging.ERROR):
        with pytest.raises(InvalidContentType):
            await uploads.create(
                UploadRequest(title="x", file_bytes=b"GIF89a\x01\x00", filename="a.gif")
            )
    assert "usecase UploadFile failed" in caplog.text
    assert any(record.name == "app.services.uploads" for record in caplog.records)
