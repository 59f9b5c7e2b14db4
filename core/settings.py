from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_STORAGE_BACKENDS = {"s3", "local", "memory"}

_POSITIVE_INT_DEFAULTS = {
    "MAX_UPLOAD_COUNT": 10,
    "MAX_REQUEST_SIZE": 50 * 1024 * 1024,
    "MAX_IN_MEMORY_SIZE": 1024 * 1024,
    "UPLOAD_CONCURRENCY": 4,
}


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in {"1", "true", "yes"}


def _env_positive_int(name: str) -> int:
    raw_value = _env(name)
    if raw_value is None:
        return _POSITIVE_INT_DEFAULTS[name]
    return int(raw_value)


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    if _env("AUTH_CLIENT_ID") is None:
        missing.append("AUTH_CLIENT_ID")

    if _env("AUTH_JWKS_URL") is None and _env("AUTH_SECRET_KEY") is None:
        missing.append("AUTH_JWKS_URL or AUTH_SECRET_KEY")

    storage_backend = (_env("STORAGE_BACKEND") or "s3").lower()
    if storage_backend == "s3" and _env("S3_BUCKET_NAME") is None:
        missing.append("S3_BUCKET_NAME")

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    storage_backend = (_env("STORAGE_BACKEND") or "s3").lower()
    if storage_backend not in SUPPORTED_STORAGE_BACKENDS:
        invalid_values.append("STORAGE_BACKEND must be one of: local, memory, s3")

    for var_name in _POSITIVE_INT_DEFAULTS:
        raw_value = _env(var_name)
        if raw_value is None:
            continue
        try:
            parsed = int(raw_value)
            if parsed <= 0:
                raise ValueError("must be positive")
        except ValueError:
            invalid_values.append(f"{var_name} must be a positive integer")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    debug_include_error_details: bool
    log_level: str
    json_logging: bool
    storage_backend: str
    storage_local_root: str
    s3_bucket_name: str | None
    s3_region: str | None
    s3_endpoint_url: str | None
    aws_access_key_id: str | None
    aws_secret_access_key: str | None
    max_upload_count: int
    max_request_size: int
    max_in_memory_size: int
    upload_concurrency: int
    auth_client_id: str
    auth_jwks_url: str | None
    auth_secret_key: str | None
    auth_algorithms: tuple[str, ...]
    auth_issuer: str | None
    auth_audience: str | None

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    settings = Settings(
        env=os.getenv("ENV", "development"),
        debug_include_error_details=_env_flag("DEBUG_INCLUDE_ERROR_DETAILS"),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        json_logging=_env_flag("JSON_LOGGING"),
        storage_backend=(_env("STORAGE_BACKEND") or "s3").lower(),
        storage_local_root=_env("STORAGE_LOCAL_ROOT") or "uploads",
        s3_bucket_name=_env("S3_BUCKET_NAME"),
        s3_region=_env("S3_REGION"),
        s3_endpoint_url=_env("S3_ENDPOINT_URL"),
        aws_access_key_id=_env("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=_env("AWS_SECRET_ACCESS_KEY"),
        max_upload_count=_env_positive_int("MAX_UPLOAD_COUNT"),
        max_request_size=_env_positive_int("MAX_REQUEST_SIZE"),
        max_in_memory_size=_env_positive_int("MAX_IN_MEMORY_SIZE"),
        upload_concurrency=_env_positive_int("UPLOAD_CONCURRENCY"),
        auth_client_id=_env("AUTH_CLIENT_ID") or "",
        auth_jwks_url=_env("AUTH_JWKS_URL"),
        auth_secret_key=_env("AUTH_SECRET_KEY"),
        auth_algorithms=_split_csv(os.getenv("AUTH_ALGORITHMS")) or ("RS256",),
        auth_issuer=_env("AUTH_ISSUER"),
        auth_audience=_env("AUTH_AUDIENCE"),
    )

    if settings.is_production and settings.storage_backend == "memory":
        raise RuntimeError("STORAGE_BACKEND=memory is not allowed when ENV=production")

    return settings
