from __future__ import annotations


class StorageError(Exception):
    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key


class ObjectNotFound(StorageError):
    """The requested key does not exist in the bucket."""


class StorageUnavailable(StorageError):
    """Transport or service failure while talking to the object store."""


class InvalidStorageKey(ValueError):
    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid {field} {value!r}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason
