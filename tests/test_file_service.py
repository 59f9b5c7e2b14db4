from __future__ import annotations

import asyncio
import io
import time

import pytest

from core.errors import AppException, ErrorCode
from core.storage.errors import StorageUnavailable
from core.storage.memory_provider import MemoryStorageProvider
from core.storage.types import UploadNamingMode
from services.file_service import FileGateway, UploadLimits


class _Source:
    def __init__(self, filename: str, payload: bytes) -> None:
        self.filename = filename
        self._buffer = io.BytesIO(payload)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


class _FailingProvider(MemoryStorageProvider):
    def __init__(self, failing_keys: set[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self._failing_keys = failing_keys

    def put_object(self, *, key, **kwargs) -> None:
        if key in self._failing_keys:
            raise StorageUnavailable("connection reset", key=key)
        super().put_object(key=key, **kwargs)

    def get_object(self, *, key):
        if key in self._failing_keys:
            raise StorageUnavailable("connection reset", key=key)
        return super().get_object(key=key)

    def delete_object(self, *, key) -> None:
        if key in self._failing_keys:
            raise StorageUnavailable("connection reset", key=key)
        super().delete_object(key=key)

    def list_keys(self, *, prefix, continuation_token=None):
        if prefix in self._failing_keys:
            raise StorageUnavailable("listing failed")
        return super().list_keys(prefix=prefix, continuation_token=continuation_token)


class _SlowFirstProvider(MemoryStorageProvider):
    def __init__(self) -> None:
        super().__init__()
        self.completed: list[str] = []

    def put_object(self, *, key, **kwargs) -> None:
        if key.endswith("first.txt"):
            time.sleep(0.2)
        super().put_object(key=key, **kwargs)
        self.completed.append(key)


def _gateway(provider: MemoryStorageProvider, **limits) -> FileGateway:
    return FileGateway(provider, UploadLimits(**limits))


@pytest.mark.asyncio
async def test_preserve_upload_returns_filenames_in_input_order():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider)
    sources = [_Source(f"file-{index}.txt", f"payload {index}".encode()) for index in range(5)]

    stored = await gateway.upload_files("docs", sources, UploadNamingMode.PRESERVE)

    assert stored == [f"file-{index}.txt" for index in range(5)]
    assert provider.get_object(key="docs/file-3.txt").content == b"payload 3"
    assert provider.get_object(key="docs/file-3.txt").content_type == "text/plain"


@pytest.mark.asyncio
async def test_upload_attaches_informational_metadata():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider)

    await gateway.upload_files("docs", [_Source("report.pdf", b"%PDF-1.7")])

    assert provider.metadata_for("docs/report.pdf") == {
        "filename": "report.pdf",
        "content-type": "application/pdf",
        "content-length": "8",
    }


@pytest.mark.asyncio
async def test_upload_order_follows_input_not_completion():
    provider = _SlowFirstProvider()
    gateway = _gateway(provider, concurrency=2)

    stored = await gateway.upload_files("docs", [_Source("first.txt", b"1"), _Source("second.txt", b"2")])

    assert stored == ["first.txt", "second.txt"]
    assert provider.completed == ["docs/second.txt", "docs/first.txt"]


@pytest.mark.asyncio
async def test_generate_mode_replaces_names_and_keeps_extensions():
    provider = MemoryStorageProvider()
    identifiers = iter(["id-1", "id-2"])
    gateway = FileGateway(provider, identifier_factory=lambda: next(identifiers))

    stored = await gateway.upload_files(
        "images",
        [_Source("cat.jpeg", b"c"), _Source("LICENSE", b"l")],
        UploadNamingMode.GENERATE,
    )

    assert stored == ["id-1.jpeg", "id-2"]
    assert provider.keys() == ["images/id-1.jpeg", "images/id-2"]


@pytest.mark.asyncio
async def test_generate_mode_accepts_client_names_with_directories():
    provider = MemoryStorageProvider()
    gateway = FileGateway(provider, identifier_factory=lambda: "id-1")

    stored = await gateway.upload_files("images", [_Source("dir\\photo.jpg", b"p")], UploadNamingMode.GENERATE)

    assert stored == ["id-1.jpg"]
    assert provider.keys() == ["images/id-1.jpg"]


@pytest.mark.asyncio
async def test_upload_rejects_traversal_before_storing_anything():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider)

    with pytest.raises(AppException) as exc_info:
        await gateway.upload_files("docs", [_Source("ok.txt", b"1"), _Source("..", b"2")])

    assert exc_info.value.status_code == 400
    assert exc_info.value.code is ErrorCode.VALIDATION_FAILED
    assert provider.keys() == []


@pytest.mark.asyncio
async def test_upload_rejects_empty_part_list():
    with pytest.raises(AppException) as exc_info:
        await _gateway(MemoryStorageProvider()).upload_files("docs", [])

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_too_many_parts():
    gateway = _gateway(MemoryStorageProvider(), max_upload_count=2)

    with pytest.raises(AppException) as exc_info:
        await gateway.upload_files("docs", [_Source(f"{index}.txt", b"x") for index in range(3)])

    assert exc_info.value.status_code == 413
    assert exc_info.value.code is ErrorCode.UPLOAD_REJECTED


@pytest.mark.asyncio
async def test_upload_rejects_oversized_part_without_storing():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider, max_part_size=4, max_in_memory_size=2)

    with pytest.raises(AppException) as exc_info:
        await gateway.upload_files("docs", [_Source("small.txt", b"abc"), _Source("big.txt", b"abcde")])

    assert exc_info.value.status_code == 413
    assert exc_info.value.detail["details"]["filename"] == "big.txt"  # type: ignore[index]
    assert provider.keys() == []


@pytest.mark.asyncio
async def test_upload_spills_large_parts_and_stores_full_content():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider, max_in_memory_size=16)
    payload = bytes(range(256)) * 1024

    await gateway.upload_files("bin", [_Source("blob.bin", payload)])

    assert provider.get_object(key="bin/blob.bin").content == payload


@pytest.mark.asyncio
async def test_failing_part_aborts_and_reports_stored_parts():
    provider = _FailingProvider({"docs/b.txt"})
    gateway = _gateway(provider)

    with pytest.raises(AppException) as exc_info:
        await gateway.upload_files("docs", [_Source("a.txt", b"a"), _Source("b.txt", b"b"), _Source("c.txt", b"c")])

    error = exc_info.value
    assert error.status_code == 503
    assert error.code is ErrorCode.UPLOAD_FAILED
    assert error.detail["details"]["failed"] == "b.txt"  # type: ignore[index]
    assert error.detail["details"]["stored"] == ["a.txt", "c.txt"]  # type: ignore[index]


@pytest.mark.asyncio
async def test_fetch_returns_stored_content_and_type():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider)
    await gateway.upload_files("docs", [_Source("hello.txt", b"hello")])

    blob = await gateway.fetch_file("docs", "hello.txt")

    assert blob.content == b"hello"
    assert blob.content_type == "text/plain"


@pytest.mark.asyncio
async def test_fetch_missing_key_is_not_found():
    with pytest.raises(AppException) as exc_info:
        await _gateway(MemoryStorageProvider()).fetch_file("docs", "never.txt")

    assert exc_info.value.status_code == 404
    assert exc_info.value.code is ErrorCode.RESOURCE_NOT_FOUND


@pytest.mark.asyncio
async def test_fetch_storage_failure_is_distinct_from_not_found():
    with pytest.raises(AppException) as exc_info:
        await _gateway(_FailingProvider({"docs/x.txt"})).fetch_file("docs", "x.txt")

    assert exc_info.value.status_code == 503
    assert exc_info.value.code is ErrorCode.STORAGE_UNAVAILABLE


@pytest.mark.asyncio
async def test_concurrent_deletes_of_missing_key_both_succeed():
    gateway = _gateway(MemoryStorageProvider())

    first, second = await asyncio.gather(
        gateway.delete_file("docs", "ghost.txt"),
        gateway.delete_file("docs", "ghost.txt"),
    )

    assert first.success and second.success
    assert first.message == "File [ghost.txt] deleted successfully"


@pytest.mark.asyncio
async def test_delete_file_removes_object():
    provider = MemoryStorageProvider()
    gateway = _gateway(provider)
    await gateway.upload_files("docs", [_Source("a.txt", b"a")])

    outcome = await gateway.delete_file("docs", "a.txt")

    assert outcome.success is True
    assert provider.keys() == []


@pytest.mark.asyncio
async def test_delete_file_failure_is_typed_with_compatible_message():
    outcome = await _gateway(_FailingProvider({"docs/a.txt"})).delete_file("docs", "a.txt")

    assert outcome.success is False
    assert outcome.message == "Unable to delete file: a.txt"


@pytest.mark.asyncio
async def test_delete_empty_folder_skips_batch_delete():
    provider = MemoryStorageProvider()

    outcome = await _gateway(provider).delete_folder("nothing-here")

    assert outcome.success is True
    assert outcome.message == "Folder [nothing-here] deleted successfully"
    assert outcome.deleted_keys == 0
    assert provider.batch_delete_calls == 0


@pytest.mark.asyncio
async def test_delete_folder_follows_every_listing_page():
    provider = MemoryStorageProvider(page_size=2)
    gateway = _gateway(provider)
    await gateway.upload_files("album", [_Source(f"{index}.jpg", b"x") for index in range(5)])
    await gateway.upload_files("album-2", [_Source("keep.jpg", b"k")])

    outcome = await gateway.delete_folder("album")

    assert outcome.success is True
    assert outcome.deleted_keys == 5
    assert provider.list_calls == 3
    assert provider.batch_delete_calls == 1
    assert provider.keys() == ["album-2/keep.jpg"]


@pytest.mark.asyncio
async def test_delete_folder_listing_failure_reports_unable_message():
    outcome = await _gateway(_FailingProvider({"album/"})).delete_folder("album")

    assert outcome.success is False
    assert outcome.message == "Unable to delete folder: album"
