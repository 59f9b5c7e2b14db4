from core.storage.errors import InvalidStorageKey, ObjectNotFound, StorageError, StorageUnavailable
from core.storage.keys import build_key, folder_prefix, guess_content_type
from core.storage.manager import ObjectStoreManager
from core.storage.provider import ObjectStoreProvider
from core.storage.types import (
    Blob,
    BuiltKey,
    DeleteOutcome,
    KeyPage,
    ObjectMetadata,
    StorageBackend,
    StorageKey,
    UploadNamingMode,
)

__all__ = [
    "Blob",
    "BuiltKey",
    "DeleteOutcome",
    "InvalidStorageKey",
    "KeyPage",
    "ObjectMetadata",
    "ObjectNotFound",
    "ObjectStoreManager",
    "ObjectStoreProvider",
    "StorageBackend",
    "StorageError",
    "StorageKey",
    "StorageUnavailable",
    "UploadNamingMode",
    "build_key",
    "folder_prefix",
    "guess_content_type",
]
