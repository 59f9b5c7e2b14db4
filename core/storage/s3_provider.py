from __future__ import annotations

from typing import BinaryIO, Sequence
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from core.storage.errors import ObjectNotFound, StorageUnavailable
from core.storage.provider import ObjectStoreProvider
from core.storage.types import DEFAULT_CONTENT_TYPE, Blob, KeyPage, ObjectMetadata, StorageBackend

# DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_LIMIT = 1000
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def _ascii_metadata(metadata: ObjectMetadata) -> dict[str, str]:
    # S3 user metadata travels as HTTP headers and must be ASCII.
    return {key: quote(value, safe=" ./-_;=") for key, value in metadata.as_headers().items()}


class S3StorageProvider(ObjectStoreProvider):
    backend_name = StorageBackend.S3.value

    def __init__(
        self,
        *,
        bucket_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        page_size: int = 1000,
        client=None,
    ) -> None:
        self._bucket = bucket_name
        self._page_size = page_size
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        logger.info("S3 storage provider initialized with bucket: {}", bucket_name)

    @property
    def bucket_name(self) -> str:
        return self._bucket

    def put_object(
        self,
        *,
        key: str,
        body: BinaryIO,
        content_type: str,
        content_length: int,
        metadata: ObjectMetadata,
    ) -> None:
        logger.debug("Uploading to S3 - Bucket: {}, Key: {}", self._bucket, key)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ContentLength=content_length,
                Metadata=_ascii_metadata(metadata),
            )
        except ClientError as err:
            raise StorageUnavailable(f"S3 rejected upload of {key}: {_error_code(err)}", key=key) from err
        except BotoCoreError as err:
            raise StorageUnavailable(f"S3 upload of {key} failed: {err}", key=key) from err

    def get_object(self, *, key: str) -> Blob:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            payload = response["Body"].read()
        except ClientError as err:
            if _error_code(err) in _NOT_FOUND_CODES:
                raise ObjectNotFound(f"Object {key} does not exist", key=key) from err
            raise StorageUnavailable(f"S3 rejected read of {key}: {_error_code(err)}", key=key) from err
        except BotoCoreError as err:
            raise StorageUnavailable(f"S3 read of {key} failed: {err}", key=key) from err

        content_type = (response.get("ContentType") or "").strip() or DEFAULT_CONTENT_TYPE
        return Blob(content=payload, content_type=content_type)

    def delete_object(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as err:
            raise StorageUnavailable(f"S3 delete of {key} failed: {err}", key=key) from err

    def list_keys(self, *, prefix: str, continuation_token: str | None = None) -> KeyPage:
        params = {"Bucket": self._bucket, "Prefix": prefix, "MaxKeys": self._page_size}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as err:
            raise StorageUnavailable(f"S3 listing of {prefix} failed: {err}") from err

        keys = tuple(item["Key"] for item in response.get("Contents", []))
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return KeyPage(keys=keys, next_token=next_token)

    def delete_objects(self, *, keys: Sequence[str]) -> None:
        for start in range(0, len(keys), DELETE_BATCH_LIMIT):
            batch = keys[start : start + DELETE_BATCH_LIMIT]
            try:
                response = self._client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as err:
                raise StorageUnavailable(f"S3 batch delete failed: {err}") from err

            errors = response.get("Errors") or []
            if errors:
                failed = ", ".join(str(item.get("Key")) for item in errors[:5])
                raise StorageUnavailable(f"S3 could not delete {len(errors)} object(s): {failed}")
