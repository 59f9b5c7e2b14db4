from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_CONTENT_TYPE = "application/octet-stream"
KEY_SEPARATOR = "/"


class StorageBackend(str, Enum):
    S3 = "s3"
    LOCAL = "local"
    MEMORY = "memory"


class UploadNamingMode(str, Enum):
    PRESERVE = "preserve"
    GENERATE = "generate"


@dataclass(frozen=True)
class StorageKey:
    directory: str
    filename: str

    def render(self) -> str:
        return f"{self.directory}{KEY_SEPARATOR}{self.filename}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class BuiltKey:
    key: StorageKey
    content_type: str


@dataclass(frozen=True)
class Blob:
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class KeyPage:
    keys: tuple[str, ...]
    next_token: str | None = None

    @property
    def is_last(self) -> bool:
        return self.next_token is None


@dataclass(frozen=True)
class DeleteOutcome:
    success: bool
    message: str
    deleted_keys: int = 0


@dataclass(frozen=True)
class ObjectMetadata:
    filename: str
    content_type: str
    content_length: int
    extra: dict[str, Any] = field(default_factory=dict)

    def as_headers(self) -> dict[str, str]:
        return {
            "filename": self.filename,
            "content-type": self.content_type,
            "content-length": str(self.content_length),
            **{key: str(value) for key, value in self.extra.items()},
        }
