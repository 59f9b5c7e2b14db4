from __future__ import annotations

from threading import Lock
from typing import BinaryIO, Sequence

from core.storage.errors import ObjectNotFound
from core.storage.provider import ObjectStoreProvider
from core.storage.types import Blob, KeyPage, ObjectMetadata, StorageBackend


class MemoryStorageProvider(ObjectStoreProvider):
    backend_name = StorageBackend.MEMORY.value

    def __init__(self, page_size: int = 1000) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._page_size = page_size
        self._objects: dict[str, tuple[bytes, str, dict[str, str]]] = {}
        self._lock = Lock()
        self.list_calls = 0
        self.batch_delete_calls = 0

    def put_object(
        self,
        *,
        key: str,
        body: BinaryIO,
        content_type: str,
        content_length: int,
        metadata: ObjectMetadata,
    ) -> None:
        payload = body.read()
        with self._lock:
            self._objects[key] = (payload, content_type, metadata.as_headers())

    def get_object(self, *, key: str) -> Blob:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise ObjectNotFound(f"Object {key} does not exist", key=key)
        payload, content_type, _metadata = stored
        return Blob(content=payload, content_type=content_type)

    def delete_object(self, *, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def list_keys(self, *, prefix: str, continuation_token: str | None = None) -> KeyPage:
        with self._lock:
            self.list_calls += 1
            matching = sorted(key for key in self._objects if key.startswith(prefix))
        if continuation_token is not None:
            matching = [key for key in matching if key > continuation_token]
        page = matching[: self._page_size]
        next_token = page[-1] if len(matching) > self._page_size else None
        return KeyPage(keys=tuple(page), next_token=next_token)

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        with self._lock:
            self.batch_delete_calls += 1
            for key in keys:
                self._objects.pop(key, None)

    def metadata_for(self, key: str) -> dict[str, str] | None:
        with self._lock:
            stored = self._objects.get(key)
        return dict(stored[2]) if stored else None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)
