from __future__ import annotations

from typing import BinaryIO, Protocol, Sequence

from core.storage.types import Blob, KeyPage, ObjectMetadata


class ObjectStoreProvider(Protocol):
    """Narrow capability surface the gateway needs from an object store.

    Implementations raise ``ObjectNotFound`` for a missing key on ``get_object``
    and ``StorageUnavailable`` for any transport or service failure.
    ``delete_object`` on a missing key is not an error.
    """

    backend_name: str

    def put_object(
        self,
        *,
        key: str,
        body: BinaryIO,
        content_type: str,
        content_length: int,
        metadata: ObjectMetadata,
    ) -> None:
        ...

    def get_object(self, *, key: str) -> Blob:
        ...

    def delete_object(self, *, key: str) -> None:
        ...

    def list_keys(self, *, prefix: str, continuation_token: str | None = None) -> KeyPage:
        """Return a single page of keys under ``prefix``; callers follow ``next_token``."""
        ...

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        ...
