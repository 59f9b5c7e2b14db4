from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from core.storage import s3_provider
from core.storage.errors import ObjectNotFound, StorageUnavailable
from core.storage.s3_provider import S3StorageProvider
from core.storage.types import ObjectMetadata

BUCKET = "gateway-bucket"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class _FakeS3Client:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.responses: dict[str, list] = {}

    def queue(self, operation: str, response) -> None:
        self.responses.setdefault(operation, []).append(response)

    def _respond(self, operation: str, params: dict):
        self.calls.append((operation, params))
        queued = self.responses.get(operation) or [{}]
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, Exception):
            raise response
        return response

    def put_object(self, **params):
        params["Body"] = params["Body"].read()
        return self._respond("put_object", params)

    def get_object(self, **params):
        return self._respond("get_object", params)

    def delete_object(self, **params):
        return self._respond("delete_object", params)

    def list_objects_v2(self, **params):
        return self._respond("list_objects_v2", params)

    def delete_objects(self, **params):
        return self._respond("delete_objects", params)


def _provider(client: _FakeS3Client, **kwargs) -> S3StorageProvider:
    return S3StorageProvider(bucket_name=BUCKET, client=client, **kwargs)


def test_put_object_sends_type_length_and_ascii_metadata():
    client = _FakeS3Client()

    _provider(client).put_object(
        key="docs/café.txt",
        body=io.BytesIO(b"hello"),
        content_type="text/plain",
        content_length=5,
        metadata=ObjectMetadata(filename="café.txt", content_type="text/plain", content_length=5),
    )

    operation, params = client.calls[0]
    assert operation == "put_object"
    assert params == {
        "Bucket": BUCKET,
        "Key": "docs/café.txt",
        "Body": b"hello",
        "ContentType": "text/plain",
        "ContentLength": 5,
        "Metadata": {"filename": "caf%C3%A9.txt", "content-type": "text/plain", "content-length": "5"},
    }


def test_put_object_transport_failure_is_unavailable():
    client = _FakeS3Client()
    client.queue("put_object", EndpointConnectionError(endpoint_url="https://s3.example.com"))

    with pytest.raises(StorageUnavailable):
        _provider(client).put_object(
            key="docs/a.txt",
            body=io.BytesIO(b"a"),
            content_type="text/plain",
            content_length=1,
            metadata=ObjectMetadata(filename="a.txt", content_type="text/plain", content_length=1),
        )


def test_get_object_returns_blob_and_defaults_content_type():
    client = _FakeS3Client()
    client.queue("get_object", {"Body": io.BytesIO(b"hello"), "ContentType": ""})

    blob = _provider(client).get_object(key="docs/a.bin")

    assert blob.content == b"hello"
    assert blob.content_type == "application/octet-stream"
    assert client.calls == [("get_object", {"Bucket": BUCKET, "Key": "docs/a.bin"})]


def test_get_missing_object_raises_not_found():
    client = _FakeS3Client()
    client.queue("get_object", _client_error("NoSuchKey", "GetObject"))

    with pytest.raises(ObjectNotFound):
        _provider(client).get_object(key="docs/missing.txt")


def test_get_object_access_denied_is_unavailable():
    client = _FakeS3Client()
    client.queue("get_object", _client_error("AccessDenied", "GetObject"))

    with pytest.raises(StorageUnavailable):
        _provider(client).get_object(key="docs/secret.txt")


def test_list_keys_returns_one_page_with_continuation():
    client = _FakeS3Client()
    client.queue(
        "list_objects_v2",
        {
            "Contents": [{"Key": "album/1.png"}, {"Key": "album/2.png"}],
            "IsTruncated": True,
            "NextContinuationToken": "token-2",
        },
    )
    client.queue("list_objects_v2", {"Contents": [{"Key": "album/3.png"}], "IsTruncated": False})
    provider = _provider(client, page_size=2)

    first = provider.list_keys(prefix="album/")
    second = provider.list_keys(prefix="album/", continuation_token=first.next_token)

    assert first.keys == ("album/1.png", "album/2.png")
    assert first.next_token == "token-2"
    assert second.keys == ("album/3.png",)
    assert second.is_last
    assert client.calls[1] == (
        "list_objects_v2",
        {"Bucket": BUCKET, "Prefix": "album/", "MaxKeys": 2, "ContinuationToken": "token-2"},
    )


def test_list_keys_of_empty_prefix_has_no_contents():
    client = _FakeS3Client()
    client.queue("list_objects_v2", {"KeyCount": 0, "IsTruncated": False})

    page = _provider(client).list_keys(prefix="nothing/")

    assert page.keys == ()
    assert page.is_last


def test_delete_objects_is_chunked_by_batch_limit(monkeypatch):
    client = _FakeS3Client()
    monkeypatch.setattr(s3_provider, "DELETE_BATCH_LIMIT", 2)

    _provider(client).delete_objects(keys=["k/1", "k/2", "k/3"])

    batches = [params["Delete"]["Objects"] for _operation, params in client.calls]
    assert batches == [[{"Key": "k/1"}, {"Key": "k/2"}], [{"Key": "k/3"}]]


def test_delete_objects_reports_per_key_errors():
    client = _FakeS3Client()
    client.queue("delete_objects", {"Errors": [{"Key": "k/1", "Code": "AccessDenied", "Message": "denied"}]})

    with pytest.raises(StorageUnavailable):
        _provider(client).delete_objects(keys=["k/1"])


def test_delete_object_failure_is_unavailable():
    client = _FakeS3Client()
    client.queue("delete_object", _client_error("InternalError", "DeleteObject"))

    with pytest.raises(StorageUnavailable):
        _provider(client).delete_object(key="docs/a.txt")
