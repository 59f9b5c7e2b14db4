from __future__ import annotations

import mimetypes
from typing import Callable
from uuid import uuid4

from core.storage.errors import InvalidStorageKey
from core.storage.types import DEFAULT_CONTENT_TYPE, KEY_SEPARATOR, BuiltKey, StorageKey, UploadNamingMode

IdentifierFactory = Callable[[], str]

_FORBIDDEN_SEGMENTS = frozenset({".", ".."})
_FORBIDDEN_CHARACTERS = frozenset({"/", "\\"})


def random_identifier() -> str:
    return str(uuid4())


def validate_segment(field: str, value: str | None) -> str:
    """Reject values that would escape or split a single key segment.

    Traversal segments are refused rather than normalized, so a stored key always
    equals ``directory/filename`` exactly as the caller sent it.
    """
    candidate = (value or "").strip()
    if not candidate:
        raise InvalidStorageKey(field, value or "", "must not be empty")
    if candidate in _FORBIDDEN_SEGMENTS:
        raise InvalidStorageKey(field, value or "", "path traversal segments are not allowed")
    if any(char in _FORBIDDEN_CHARACTERS for char in candidate):
        raise InvalidStorageKey(field, value or "", "path separators are not allowed")
    if any(ord(char) < 32 or ord(char) == 127 for char in candidate):
        raise InvalidStorageKey(field, value or "", "control characters are not allowed")
    return candidate


def base_name(filename: str) -> str:
    """Last path segment of a client-supplied name, splitting on either separator."""
    return filename.replace("\\", KEY_SEPARATOR).rsplit(KEY_SEPARATOR, 1)[-1]


def file_extension(filename: str) -> str:
    dot_index = filename.rfind(".")
    if dot_index == -1:
        return ""
    return filename[dot_index:]


def guess_content_type(filename: str) -> str:
    # Name-based only: the bytes are never inspected.
    content_type, _encoding = mimetypes.guess_type(filename, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def effective_filename(
    filename: str,
    mode: UploadNamingMode,
    *,
    identifier_factory: IdentifierFactory = random_identifier,
) -> str:
    if mode is UploadNamingMode.GENERATE:
        return f"{identifier_factory()}{file_extension(filename)}"
    return filename


def build_key(
    directory: str,
    filename: str,
    mode: UploadNamingMode = UploadNamingMode.PRESERVE,
    *,
    identifier_factory: IdentifierFactory = random_identifier,
) -> BuiltKey:
    clean_directory = validate_segment("directory", directory)
    if mode is UploadNamingMode.GENERATE:
        # Only the extension survives, so directory parts of the client name are dropped.
        filename = base_name(filename or "")
    clean_filename = validate_segment("filename", filename)
    final_name = effective_filename(clean_filename, mode, identifier_factory=identifier_factory)
    return BuiltKey(
        key=StorageKey(directory=clean_directory, filename=final_name),
        content_type=guess_content_type(final_name),
    )


def folder_prefix(directory: str) -> str:
    clean_directory = (directory or "").strip()
    if clean_directory.endswith(KEY_SEPARATOR):
        clean_directory = clean_directory.rstrip(KEY_SEPARATOR)
    validate_segment("directory", clean_directory)
    return f"{clean_directory}{KEY_SEPARATOR}"
