from __future__ import annotations

import shutil
from pathlib import Path
from typing import BinaryIO, Sequence

from loguru import logger

from core.storage.errors import ObjectNotFound, StorageUnavailable
from core.storage.keys import guess_content_type
from core.storage.provider import ObjectStoreProvider
from core.storage.types import Blob, KeyPage, ObjectMetadata, StorageBackend


class LocalStorageProvider(ObjectStoreProvider):
    """Filesystem-backed store for development; keys map to paths under ``root_dir``.

    Only the bytes are written. The ``content_type`` and metadata passed to ``put_object``
    are not kept, so ``get_object`` infers the type from the key's file name again. Use the
    S3 or memory backend where the stored type must differ from the name-based guess.
    """

    backend_name = StorageBackend.LOCAL.value

    def __init__(self, root_dir: str, page_size: int = 1000) -> None:
        self._root = Path(root_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._page_size = page_size

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise StorageUnavailable(f"Key {key} resolves outside the storage root", key=key)
        return path

    def put_object(
        self,
        *,
        key: str,
        body: BinaryIO,
        content_type: str,
        content_length: int,
        metadata: ObjectMetadata,
    ) -> None:
        file_path = self._path_for(key)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with file_path.open("wb") as target:
                shutil.copyfileobj(body, target)
        except OSError as err:
            raise StorageUnavailable(f"Could not write {key}: {err}", key=key) from err

    def get_object(self, *, key: str) -> Blob:
        file_path = self._path_for(key)
        try:
            payload = file_path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as err:
            raise ObjectNotFound(f"Object {key} does not exist", key=key) from err
        except OSError as err:
            raise StorageUnavailable(f"Could not read {key}: {err}", key=key) from err
        return Blob(content=payload, content_type=guess_content_type(file_path.name))

    def delete_object(self, *, key: str) -> None:
        file_path = self._path_for(key)
        try:
            file_path.unlink(missing_ok=True)
        except OSError as err:
            raise StorageUnavailable(f"Could not delete {key}: {err}", key=key) from err

    def list_keys(self, *, prefix: str, continuation_token: str | None = None) -> KeyPage:
        try:
            matching = sorted(
                key
                for key in (path.relative_to(self._root).as_posix() for path in self._root.rglob("*") if path.is_file())
                if key.startswith(prefix)
            )
        except OSError as err:
            raise StorageUnavailable(f"Could not list {prefix}: {err}") from err
        if continuation_token is not None:
            matching = [key for key in matching if key > continuation_token]
        page = matching[: self._page_size]
        next_token = page[-1] if len(matching) > self._page_size else None
        return KeyPage(keys=tuple(page), next_token=next_token)

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        for key in keys:
            self.delete_object(key=key)
        self._prune_empty_dirs()

    def _prune_empty_dirs(self) -> None:
        for path in sorted(self._root.rglob("*"), reverse=True):
            if path.is_dir() and not any(path.iterdir()):
                logger.debug("Removing empty directory {}", path)
                path.rmdir()
