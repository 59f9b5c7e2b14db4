from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_ROLE_MISSING = "AUTH_ROLE_MISSING"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UPLOAD_REJECTED = "UPLOAD_REJECTED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code


def auth_missing_token() -> AppException:
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.AUTH_MISSING_TOKEN,
        message="Bearer token required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def auth_invalid_token(details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.AUTH_INVALID_TOKEN,
        message="Invalid token",
        details=details,
        headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
    )


def auth_role_missing(required_role: str, actual_roles: frozenset[str] | set[str]) -> AppException:
    return AppException(
        status_code=status.HTTP_403_FORBIDDEN,
        code=ErrorCode.AUTH_ROLE_MISSING,
        message="Insufficient role",
        details={"required_role": required_role, "actual_roles": sorted(actual_roles)},
    )


def validation_failed(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.VALIDATION_FAILED,
        message=message,
        details=details,
    )


def upload_rejected(message: str, *, status_code: int = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status_code,
        code=ErrorCode.UPLOAD_REJECTED,
        message=message,
        details=details,
    )


def upload_failed(*, failed_filename: str, stored: list[str], reason: str) -> AppException:
    return AppException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        code=ErrorCode.UPLOAD_FAILED,
        message=f"Failed to upload file: {failed_filename}",
        details={"failed": failed_filename, "stored": stored, "reason": reason},
    )


def resource_not_found(resource: str, resource_id: str | None = None) -> AppException:
    details = {"resource": resource}
    if resource_id:
        details["resource_id"] = resource_id
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


def storage_unavailable(reason: str, key: str | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        code=ErrorCode.STORAGE_UNAVAILABLE,
        message="Object storage unavailable",
        details={"reason": reason, "key": key},
    )
