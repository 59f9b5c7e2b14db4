from __future__ import annotations

import asyncio
from dataclasses import dataclass
from tempfile import SpooledTemporaryFile
from typing import Protocol, Sequence

from loguru import logger
from starlette.concurrency import run_in_threadpool

from core.errors import resource_not_found, storage_unavailable, upload_failed, upload_rejected, validation_failed
from core.settings import Settings
from core.storage import (
    Blob,
    BuiltKey,
    DeleteOutcome,
    InvalidStorageKey,
    ObjectMetadata,
    ObjectNotFound,
    ObjectStoreProvider,
    StorageError,
    UploadNamingMode,
    build_key,
    folder_prefix,
)
from core.storage.keys import IdentifierFactory, random_identifier

READ_CHUNK_SIZE = 64 * 1024


class UploadSource(Protocol):
    filename: str | None

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass(frozen=True)
class UploadLimits:
    max_upload_count: int = 10
    max_part_size: int = 50 * 1024 * 1024
    max_in_memory_size: int = 1024 * 1024
    concurrency: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadLimits":
        return cls(
            max_upload_count=settings.max_upload_count,
            max_part_size=settings.max_request_size,
            max_in_memory_size=settings.max_in_memory_size,
            concurrency=settings.upload_concurrency,
        )


@dataclass
class SpooledPart:
    built: BuiltKey
    original_filename: str
    body: SpooledTemporaryFile
    size: int

    def close(self) -> None:
        self.body.close()


def _key_or_400(directory: str, filename: str, mode: UploadNamingMode, identifier_factory: IdentifierFactory) -> BuiltKey:
    try:
        return build_key(directory, filename, mode, identifier_factory=identifier_factory)
    except InvalidStorageKey as err:
        raise validation_failed(str(err), details={"field": err.field, "reason": err.reason})


class FileGateway:
    """Directory-scoped upload, fetch and delete operations over an object store.

    Provider calls block, so they run on the threadpool; key building never does.
    """

    def __init__(
        self,
        provider: ObjectStoreProvider,
        limits: UploadLimits | None = None,
        *,
        identifier_factory: IdentifierFactory = random_identifier,
    ) -> None:
        self._provider = provider
        self._limits = limits or UploadLimits()
        self._identifier_factory = identifier_factory

    @property
    def limits(self) -> UploadLimits:
        return self._limits

    async def _spool(self, source: UploadSource, built: BuiltKey, original_filename: str) -> SpooledPart:
        body = SpooledTemporaryFile(max_size=self._limits.max_in_memory_size)
        size = 0
        try:
            while True:
                chunk = await source.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self._limits.max_part_size:
                    raise upload_rejected(
                        f"File {original_filename} exceeds the maximum part size",
                        details={"filename": original_filename, "max_part_size": self._limits.max_part_size},
                    )
                body.write(chunk)
        except BaseException:
            body.close()
            raise
        body.seek(0)
        return SpooledPart(built=built, original_filename=original_filename, body=body, size=size)

    def _put(self, part: SpooledPart) -> None:
        key = part.built.key
        part.body.seek(0)
        self._provider.put_object(
            key=key.render(),
            body=part.body,
            content_type=part.built.content_type,
            content_length=part.size,
            metadata=ObjectMetadata(
                filename=key.filename,
                content_type=part.built.content_type,
                content_length=part.size,
            ),
        )
        logger.info("File [{}] uploaded successfully to key [{}].", key.filename, key.render())

    async def upload_files(
        self,
        directory: str,
        sources: Sequence[UploadSource],
        mode: UploadNamingMode = UploadNamingMode.PRESERVE,
    ) -> list[str]:
        """Store every part under ``directory`` and return the stored names in input order.

        All parts are validated and spooled before the first store call. A failing part
        aborts the request; parts already stored are reported in the error and left in place.
        """
        logger.info("directory: {}", directory)
        if not sources:
            raise validation_failed("At least one file part is required", details={"field": "files"})
        if len(sources) > self._limits.max_upload_count:
            raise upload_rejected(
                "Too many file parts",
                details={"parts": len(sources), "max_upload_count": self._limits.max_upload_count},
            )

        planned = [
            (source, _key_or_400(directory, source.filename or "", mode, self._identifier_factory))
            for source in sources
        ]

        parts: list[SpooledPart] = []
        try:
            for source, built in planned:
                parts.append(await self._spool(source, built, source.filename or ""))
            return await self._store_all(parts)
        finally:
            for part in parts:
                part.close()

    async def _store_all(self, parts: list[SpooledPart]) -> list[str]:
        semaphore = asyncio.Semaphore(self._limits.concurrency)

        async def _store(part: SpooledPart) -> str:
            async with semaphore:
                await run_in_threadpool(self._put, part)
            return part.built.key.filename

        results = await asyncio.gather(*(_store(part) for part in parts), return_exceptions=True)

        stored = [result for result in results if isinstance(result, str)]
        for part, result in zip(parts, results):
            if isinstance(result, StorageError):
                logger.error("Upload of [{}] failed: {}", part.original_filename, result.message)
                raise upload_failed(failed_filename=part.original_filename, stored=stored, reason=result.message)
            if isinstance(result, BaseException):
                raise result
        return stored

    async def fetch_file(self, directory: str, filename: str) -> Blob:
        built = _key_or_400(directory, filename, UploadNamingMode.PRESERVE, self._identifier_factory)
        key = built.key.render()
        try:
            blob = await run_in_threadpool(self._provider.get_object, key=key)
        except ObjectNotFound:
            logger.info("File [{}] not found at key [{}]", filename, key)
            raise resource_not_found("File", key)
        except StorageError as err:
            logger.error("Error Occurred: [{}]", err.message)
            raise storage_unavailable(err.message, key=key)

        logger.info("File [{}] fetched from key [{}].", filename, key)
        return blob

    async def delete_file(self, directory: str, filename: str) -> DeleteOutcome:
        built = _key_or_400(directory, filename, UploadNamingMode.PRESERVE, self._identifier_factory)
        key = built.key.render()
        try:
            await run_in_threadpool(self._provider.delete_object, key=key)
        except StorageError as err:
            logger.error("Error Occurred: [{}]", err.message)
            return DeleteOutcome(success=False, message=f"Unable to delete file: {filename}")

        logger.info("File [{}] deleted successfully at key [{}]", filename, key)
        return DeleteOutcome(success=True, message=f"File [{filename}] deleted successfully", deleted_keys=1)

    def _list_all_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        token: str | None = None
        while True:
            page = self._provider.list_keys(prefix=prefix, continuation_token=token)
            keys.extend(page.keys)
            if page.is_last:
                return keys
            token = page.next_token

    async def delete_folder(self, directory: str) -> DeleteOutcome:
        try:
            prefix = folder_prefix(directory)
        except InvalidStorageKey as err:
            raise validation_failed(str(err), details={"field": err.field, "reason": err.reason})

        try:
            keys = await run_in_threadpool(self._list_all_keys, prefix)
            if not keys:
                logger.info("Folder [{}] is empty or does not exist", directory)
            else:
                await run_in_threadpool(self._provider.delete_objects, keys=keys)
        except StorageError as err:
            logger.error("Error Occurred: [{}]", err.message)
            return DeleteOutcome(success=False, message=f"Unable to delete folder: {directory}")

        logger.info("Folder [{}] deleted successfully ({} objects)", directory, len(keys))
        return DeleteOutcome(success=True, message=f"Folder [{directory}] deleted successfully", deleted_keys=len(keys))
