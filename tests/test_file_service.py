"""
Tests for the storage drivers and FileService.
"""
import io
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from botocore.exceptions import ClientError

from moddocs.core.config import get_settings
from moddocs.core.exceptions import (
    ExternalServiceException,
    ResourceNotFoundException,
    ValidationException,
)
from moddocs.modules.files.drivers import (
    LocalStorageDriver,
    S3StorageDriver,
    StorageError,
    StorageObjectNotFound,
    get_storage_driver,
)
from moddocs.modules.files.models import human_readable_size
from moddocs.modules.files.service import FileService, guess_mime_type, storage_filename
from moddocs.modules.mods.models import StorageDriver
from moddocs.modules.mods.schemas import ModCreate
from moddocs.modules.mods.service import ModService
from moddocs.modules.pages.schemas import PageCreate
from moddocs.modules.pages.service import PageService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "operation")


class TestLocalStorageDriver:
    """Test the filesystem driver."""

    async def test_put_get_delete(self, local_driver, storage_root):
        await local_driver.put("mods/1/files/a.txt", b"hello", "text/plain")

        assert (storage_root / "mods/1/files/a.txt").read_bytes() == b"hello"
        assert await local_driver.exists("mods/1/files/a.txt")
        assert await local_driver.get("mods/1/files/a.txt") == b"hello"

        await local_driver.delete("mods/1/files/a.txt")
        assert not await local_driver.exists("mods/1/files/a.txt")

    async def test_missing_object(self, local_driver):
        with pytest.raises(StorageObjectNotFound):
            await local_driver.get("nope.txt")

    async def test_delete_missing_is_quiet(self, local_driver):
        await local_driver.delete("nope.txt")

    async def test_keys_cannot_escape_root(self, local_driver):
        with pytest.raises(StorageError):
            await local_driver.put("../outside.txt", b"x", "text/plain")

    def test_url(self, local_driver):
        assert local_driver.url("mods/1/a.png") == "http://testserver/storage/mods/1/a.png"


class TestS3StorageDriver:
    """Test the S3 driver against a mocked boto3 client."""

    @pytest.fixture
    def s3_client(self):
        return MagicMock()

    @pytest.fixture
    def driver(self, s3_client):
        return S3StorageDriver(bucket_name="docs", region_name="eu-west-1", client=s3_client)

    async def test_put(self, driver, s3_client):
        await driver.put("k.png", b"data", "image/png")

        s3_client.put_object.assert_called_once_with(
            Bucket="docs", Key="k.png", Body=b"data", ContentType="image/png"
        )

    async def test_get(self, driver, s3_client):
        s3_client.get_object.return_value = {"Body": io.BytesIO(b"payload")}
        assert await driver.get("k.png") == b"payload"

    async def test_get_missing(self, driver, s3_client):
        s3_client.get_object.side_effect = client_error("NoSuchKey")

        with pytest.raises(StorageObjectNotFound):
            await driver.get("k.png")

    async def test_upload_failure(self, driver, s3_client):
        s3_client.put_object.side_effect = client_error("AccessDenied")

        with pytest.raises(StorageError):
            await driver.put("k.png", b"data", "image/png")

    async def test_exists(self, driver, s3_client):
        assert await driver.exists("k.png")

        s3_client.head_object.side_effect = client_error("404")
        assert not await driver.exists("k.png")

    def test_urls(self, s3_client):
        aws = S3StorageDriver(bucket_name="docs", region_name="eu-west-1", client=s3_client)
        minio = S3StorageDriver(bucket_name="docs", endpoint_url="http://minio:9000/", client=s3_client)

        assert aws.url("a/b.png") == "https://docs.s3.eu-west-1.amazonaws.com/a/b.png"
        assert minio.url("a/b.png") == "http://minio:9000/docs/a/b.png"

    def test_factory(self, storage_root):
        assert isinstance(get_storage_driver(StorageDriver.LOCAL), LocalStorageDriver)
        assert get_storage_driver("s3").name == "s3"


class TestFileHelpers:
    """Test naming and formatting helpers."""

    def test_storage_filename_keeps_extension(self):
        name = storage_filename("Screen Shot.PNG")
        assert name.endswith(".png")
        assert len(name) == 36 + 4

    def test_storage_filename_drops_oversized_extension(self):
        assert len(storage_filename("notes." + "x" * 40)) == 36

    def test_guess_mime_type(self):
        assert guess_mime_type("a.png") == "image/png"
        assert guess_mime_type("a.png", "application/octet-stream") == "image/png"
        assert guess_mime_type("blob", None) == "application/octet-stream"
        assert guess_mime_type("a.bin", "image/webp") == "image/webp"

    @pytest.mark.parametrize(
        "size, expected",
        [(0, "0 B"), (1536, "1.5 KB"), (10 * 1024 * 1024, "10 MB")],
    )
    def test_human_readable_size(self, size, expected):
        assert human_readable_size(size) == expected


class TestFileService:
    """Test uploads, listing and deletion."""

    @pytest.fixture
    def service(self, db_session, private_mod, local_driver) -> FileService:
        return FileService(db_session, private_mod, local_driver)

    async def test_upload_stores_blob_and_metadata(self, service, private_mod, owner, storage_root):
        stored = await service.upload(
            original_name="shot.png", data=PNG_BYTES, user=owner, content_type="image/png"
        )

        assert stored.path == f"mods/{private_mod.id}/files/{stored.filename}"
        assert stored.url == f"http://testserver/storage/{stored.path}"
        assert stored.size == len(PNG_BYTES)
        assert stored.storage_driver == "local"
        assert stored.is_image
        assert (storage_root / stored.path).read_bytes() == PNG_BYTES
        assert await service.read(stored) == PNG_BYTES

    async def test_upload_too_large(self, service, owner, monkeypatch):
        monkeypatch.setattr(get_settings(), "storage_max_file_size", 8)

        with pytest.raises(ValidationException) as exc_info:
            await service.upload(original_name="big.txt", data=b"x" * 9, user=owner)
        assert exc_info.value.errors[0]["field"] == "file"

    async def test_overlong_filename_rejected(self, service, owner):
        with pytest.raises(ValidationException) as exc_info:
            await service.upload(original_name="a" * 252 + ".txt", data=b"x", user=owner)
        assert exc_info.value.errors[0]["field"] == "file"

        stored = await service.upload(original_name="a" * 251 + ".txt", data=b"x", user=owner)
        assert len(stored.original_name) == 255

    async def test_upload_type_filter(self, service, owner):
        allowed = get_settings().storage_quick_upload_types

        with pytest.raises(ValidationException, match="File type not allowed"):
            await service.upload(
                original_name="run.exe", data=b"MZ", user=owner, allowed_types=allowed
            )

        stored = await service.upload(
            original_name="shot.png", data=PNG_BYTES, user=owner, allowed_types=allowed
        )
        assert stored.mime_type == "image/png"

    async def test_attach_to_page(self, db_session, service, private_mod, owner):
        page = await PageService(db_session, private_mod).create_page(PageCreate(title="Gallery"), owner)

        stored = await service.upload(original_name="a.png", data=PNG_BYTES, user=owner, page_id=page.id)

        assert [f.id for f in await service.get_page_files(page)] == [stored.id]

    async def test_foreign_page_rejected(self, db_session, service, owner):
        other = await ModService(db_session).create_mod(ModCreate(name="Other"), owner)
        foreign = await PageService(db_session, other).create_page(PageCreate(title="Foreign"), owner)

        with pytest.raises(ValidationException) as exc_info:
            await service.upload(original_name="a.png", data=PNG_BYTES, user=owner, page_id=foreign.id)
        assert exc_info.value.errors[0]["field"] == "page_id"

    async def test_storage_failure(self, db_session, private_mod, owner):
        driver = MagicMock(spec=LocalStorageDriver)
        driver.name = "local"
        driver.put.side_effect = StorageError("disk full")

        with pytest.raises(ExternalServiceException):
            await FileService(db_session, private_mod, driver).upload(
                original_name="a.png", data=PNG_BYTES, user=owner
            )

    async def test_list_files_paginates(self, service, owner):
        for i in range(3):
            await service.upload(original_name=f"{i}.txt", data=b"x", user=owner)

        items, total = await service.list_files(page=1, per_page=2)
        assert (len(items), total) == (2, 3)

        items, total = await service.list_files(page=2, per_page=2)
        assert (len(items), total) == (1, 3)

    async def test_delete_file(self, service, owner, storage_root):
        stored = await service.upload(original_name="a.txt", data=b"x", user=owner)

        await service.delete_file(stored)

        assert not (storage_root / stored.path).exists()
        with pytest.raises(ResourceNotFoundException):
            await service.get_file(stored.id)

    async def test_files_are_scoped_to_mod(self, db_session, service, owner, local_driver):
        stored = await service.upload(original_name="a.txt", data=b"x", user=owner)
        other = await ModService(db_session).create_mod(ModCreate(name="Other"), owner)

        with pytest.raises(ResourceNotFoundException):
            await FileService(db_session, other, local_driver).get_file(stored.id)

    async def test_missing_blob_is_not_found(self, service, owner, storage_root):
        stored = await service.upload(original_name="a.txt", data=b"x", user=owner)
        (storage_root / stored.path).unlink()

        with pytest.raises(ResourceNotFoundException):
            await service.read(stored)

    async def test_unknown_file(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.get_file(uuid4())
