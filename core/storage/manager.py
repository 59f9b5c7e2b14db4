from __future__ import annotations

from threading import Lock

from core.settings import Settings, get_settings
from core.storage.local_provider import LocalStorageProvider
from core.storage.memory_provider import MemoryStorageProvider
from core.storage.provider import ObjectStoreProvider
from core.storage.s3_provider import S3StorageProvider


class ObjectStoreManager:
    _instance: "ObjectStoreManager | None" = None
    _lock = Lock()

    def __init__(self, provider: ObjectStoreProvider) -> None:
        self._provider = provider

    @classmethod
    def configure(cls, provider: ObjectStoreProvider) -> "ObjectStoreManager":
        with cls._lock:
            cls._instance = cls(provider)
            return cls._instance

    @classmethod
    def configure_from_settings(cls, settings: Settings | None = None) -> "ObjectStoreManager":
        settings = settings or get_settings()
        if settings.storage_backend == "s3":
            if not settings.s3_bucket_name:
                raise RuntimeError("S3_BUCKET_NAME is required when STORAGE_BACKEND=s3")
            provider: ObjectStoreProvider = S3StorageProvider(
                bucket_name=settings.s3_bucket_name,
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                access_key_id=settings.aws_access_key_id,
                secret_access_key=settings.aws_secret_access_key,
            )
        elif settings.storage_backend == "memory":
            provider = MemoryStorageProvider()
        else:
            provider = LocalStorageProvider(root_dir=settings.storage_local_root)

        return cls.configure(provider)

    @classmethod
    def get_instance(cls) -> "ObjectStoreManager":
        if cls._instance is None:
            return cls.configure_from_settings()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    @property
    def provider(self) -> ObjectStoreProvider:
        return self._provider
