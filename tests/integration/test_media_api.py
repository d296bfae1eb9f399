"""Integration tests for the media library endpoints."""
import io

import pytest
from PIL import Image

pytestmark = pytest.mark.asyncio

UPLOAD = "/api/cms/media/upload"


@pytest.fixture
def settings(settings):
    return settings.model_copy(update={"max_upload_size": 4096})


def _png(width: int = 4, height: int = 3) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


async def _upload(client, headers, content=None, name="photo.PNG", mime="image/png", **form):
    files = {"file": (name, content if content is not None else _png(), mime)}
    return await client.post(UPLOAD, files=files, data=form, headers=headers)


async def test_upload_image_records_dimensions(client, admin_headers, settings):
    resp = await _upload(client, admin_headers, alt="A red square")
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["width"] == 4
    assert body["height"] == 3
    assert body["mime_type"] == "image/png"
    assert body["original_name"] == "photo.PNG"
    assert body["alt"] == "A red square"
    assert body["filename"].endswith(".png")
    assert body["filename"] != "photo.png"
    assert body["url"].endswith("/" + body["filename"])
    assert (settings.upload_dir / body["filename"]).read_bytes() == _png()


async def test_upload_non_image_has_no_dimensions(client, admin_headers):
    resp = await _upload(client, admin_headers, content=b"%PDF-1.4 fake", name="doc.pdf", mime="application/pdf")
    assert resp.status_code == 201
    assert resp.json()["width"] is None


async def test_upload_rejects_disallowed_mime_type(client, admin_headers):
    resp = await _upload(client, admin_headers, content=b"MZ", name="tool.exe", mime="application/x-msdownload")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "MED_002"


async def test_upload_rejects_oversized_file(client, admin_headers):
    resp = await _upload(client, admin_headers, content=b"\0" * 5000, name="big.pdf", mime="application/pdf")
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "MED_003"


async def test_upload_requires_create_permission(client, headers_for):
    headers = await headers_for("viewer")
    resp = await _upload(client, headers)
    assert resp.status_code == 403


async def test_list_filters_by_type_and_search(client, admin_headers):
    await _upload(client, admin_headers, alt="Sunset over hills")
    await _upload(client, admin_headers, content=b"%PDF-1.4", name="report.pdf", mime="application/pdf")

    resp = await client.get("/api/cms/media", params={"type": "image"}, headers=admin_headers)
    body = resp.json()
    assert body["total"] == 1
    assert body["items"][0]["mime_type"] == "image/png"
    assert "metadata" in body["items"][0]

    resp = await client.get("/api/cms/media", params={"search": "sunset"}, headers=admin_headers)
    assert resp.json()["total"] == 1

    resp = await client.get(
        "/api/cms/media", params={"orderBy": "size", "orderDir": "asc"}, headers=admin_headers
    )
    sizes = [m["size"] for m in resp.json()["items"]]
    assert sizes == sorted(sizes)


async def test_serve_uploaded_file(client, admin_headers):
    filename = (await _upload(client, admin_headers)).json()["filename"]

    resp = await client.get(f"/api/cms/media/file/{filename}")
    assert resp.status_code == 200
    assert resp.content == _png()
    assert resp.headers["content-type"] == "image/png"
    assert "immutable" in resp.headers["cache-control"]


@pytest.mark.parametrize("filename", ["..secret", ".env", "a%20b.png"])
async def test_serve_rejects_unsafe_filenames(client, filename):
    resp = await client.get(f"/api/cms/media/file/{filename}")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "MED_004"


async def test_serve_missing_file_is_404(client):
    resp = await client.get("/api/cms/media/file/0123abcd.png")
    assert resp.status_code == 404


async def test_delete_removes_row_and_file(client, admin_headers, settings):
    body = (await _upload(client, admin_headers)).json()

    resp = await client.delete(f"/api/cms/media/{body['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert not (settings.upload_dir / body["filename"]).exists()
    assert (await client.get(f"/api/cms/media/file/{body['filename']}")).status_code == 404
    assert (await client.delete(f"/api/cms/media/{body['id']}", headers=admin_headers)).status_code == 404
