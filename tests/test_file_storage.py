import io

import pytest
from starlette.datastructures import Headers, UploadFile

from app.core.exceptions import InternalError, ValidationError
from app.utils.file_storage import (
    MAX_IMAGES_PER_REQUEST,
    BlobStore,
    LocalBlobStore,
    filename_from_local_url,
    prepare_images,
    public_id_from_url,
    resolve_content_type,
    save_property_images,
)


def upload(filename="photo.jpg", content_type="image/jpeg", data=b"\xff\xd8\xff"):
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


class TestUrlParsing:

    def test_versioned_cloudinary_url(self):
        url = "https://res.cloudinary.com/demo/image/upload/v1712345678/imoveis/abc123.jpg"
        assert public_id_from_url(url) == "imoveis/abc123"

    def test_unversioned_cloudinary_url(self):
        url = "https://res.cloudinary.com/demo/image/upload/imoveis/casa_01.png"
        assert public_id_from_url(url) == "imoveis/casa_01"

    def test_non_cloudinary_url(self):
        assert public_id_from_url("https://example.com/image/upload/x.jpg") is None
        assert public_id_from_url("") is None

    def test_local_url(self):
        url = "http://localhost:8000/media/properties/0f3c.jpg"
        assert filename_from_local_url(url) == "0f3c.jpg"

    def test_local_url_cannot_escape_media_dir(self):
        url = "http://localhost:8000/media/properties/../../etc/passwd"
        assert filename_from_local_url(url) == "passwd"

    def test_foreign_url_is_not_local(self):
        assert filename_from_local_url("https://res.cloudinary.com/demo/x.jpg") is None


class TestUploadValidation:

    def test_declared_content_type_wins(self):
        assert resolve_content_type("image/png", "photo.jpg") == ("image/png", ".png")

    def test_octet_stream_falls_back_to_extension(self):
        assert resolve_content_type("application/octet-stream", "photo.JPEG") == ("image/jpeg", ".jpg")

    def test_unsupported_type_is_rejected(self):
        with pytest.raises(ValidationError):
            resolve_content_type("application/pdf", "deed.pdf")

    async def test_prepare_reads_every_file(self):
        prepared = await prepare_images([upload(), upload("b.webp", "image/webp")])
        assert [p.extension for p in prepared] == [".jpg", ".webp"]
        assert prepared[0].data == b"\xff\xd8\xff"

    async def test_too_many_files(self):
        files = [upload(f"{i}.jpg") for i in range(MAX_IMAGES_PER_REQUEST + 1)]
        with pytest.raises(ValidationError):
            await prepare_images(files)

    async def test_no_files(self):
        assert await prepare_images(None) == []


class TestLocalBlobStore:

    async def test_upload_then_delete(self, tmp_path):
        store = LocalBlobStore(str(tmp_path), "http://localhost:8000/")
        url = await store.upload(b"data", "image/jpeg", ".jpg")

        assert url.startswith("http://localhost:8000/media/properties/")
        stored = tmp_path / "properties" / filename_from_local_url(url)
        assert stored.read_bytes() == b"data"

        await store.delete_one(url)
        assert not stored.exists()

    async def test_deleting_missing_file_is_quiet(self, tmp_path):
        store = LocalBlobStore(str(tmp_path), "http://localhost:8000")
        await store.delete_one("http://localhost:8000/media/properties/missing.jpg")
        await store.delete_one("https://elsewhere.test/x.jpg")


class FlakyStore(BlobStore):
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.stored = []
        self.deleted = []

    async def upload(self, data, content_type, extension):
        if len(self.stored) == self.fail_on:
            raise RuntimeError("provider unavailable")
        url = f"https://blobs.test/{len(self.stored)}{extension}"
        self.stored.append(url)
        return url

    async def delete_one(self, url):
        self.deleted.append(url)


async def test_failed_batch_removes_partial_uploads():
    store = FlakyStore(fail_on=2)
    images = await prepare_images([upload(f"{i}.jpg") for i in range(3)])

    with pytest.raises(InternalError):
        await save_property_images(store, images)
    assert store.deleted == store.stored
    assert len(store.deleted) == 2
