import pytest
from google.api_core import exceptions as gcs_exceptions

from app.utils.storage import StorageError, VideoAssetNotFoundError, VideoAssetStore


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", key: str):
        self.bucket = bucket
        self.key = key

    @property
    def size(self) -> int | None:
        data = self.bucket.objects.get(self.key)
        return None if data is None else len(data)

    def _check(self) -> None:
        if self.bucket.failure is not None:
            raise self.bucket.failure

    def exists(self) -> bool:
        self._check()
        return self.key in self.bucket.objects

    def upload_from_string(self, data: bytes, content_type: str) -> None:
        self._check()
        self.bucket.objects[self.key] = data
        self.bucket.content_types[self.key] = content_type

    def reload(self) -> None:
        self._check()
        if self.key not in self.bucket.objects:
            raise gcs_exceptions.NotFound(self.key)

    def download_as_bytes(self, start: int | None = None, end: int | None = None) -> bytes:
        self._check()
        self.bucket.downloads.append((self.key, start, end))
        if self.key not in self.bucket.objects:
            raise gcs_exceptions.NotFound(self.key)
        data = self.bucket.objects[self.key]
        # GCS ranges include the end byte
        return data[start or 0 : None if end is None else end + 1]

    def delete(self) -> None:
        self._check()
        if self.key not in self.bucket.objects:
            raise gcs_exceptions.NotFound(self.key)
        del self.bucket.objects[self.key]


class FakeBucket:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.downloads: list[tuple[str, int | None, int | None]] = []
        self.failure: Exception | None = None

    def blob(self, key: str) -> FakeBlob:
        return FakeBlob(self, key)

    def get_blob(self, key: str) -> FakeBlob | None:
        if self.failure is not None:
            raise self.failure
        return FakeBlob(self, key) if key in self.objects else None


class FakeClient:
    def __init__(self, bucket: FakeBucket):
        self._bucket = bucket
        self.bucket_names: list[str] = []

    def bucket(self, name: str) -> FakeBucket:
        self.bucket_names.append(name)
        return self._bucket


KEY = "cases/videos/3f1c-ct-scroll.mp4"


@pytest.fixture
def bucket() -> FakeBucket:
    return FakeBucket()


@pytest.fixture
def store(bucket) -> VideoAssetStore:
    return VideoAssetStore("case-videos", client=FakeClient(bucket))


def test_put_uploads_and_returns_gs_url(store, bucket):
    url = store.put(KEY, b"mp4-bytes")

    assert url == f"gs://case-videos/{KEY}"
    assert bucket.objects[KEY] == b"mp4-bytes"
    assert bucket.content_types[KEY] == "video/mp4"
    assert store.client.bucket_names == ["case-videos"]


def test_exists(store, bucket):
    assert not store.exists(KEY)
    bucket.objects[KEY] = b"data"
    assert store.exists(KEY)


def test_get_whole_object(store, bucket):
    bucket.objects[KEY] = b"0123456789"

    assert store.get(KEY) == b"0123456789"
    assert bucket.downloads == [(KEY, None, None)]


def test_get_byte_range_is_inclusive(store, bucket):
    bucket.objects[KEY] = b"0123456789"

    assert store.get(KEY, 2, 5) == b"2345"
    assert store.get(KEY, 9, 9) == b"9"
    assert bucket.downloads == [(KEY, 2, 5), (KEY, 9, 9)]


def test_get_missing_object(store):
    with pytest.raises(VideoAssetNotFoundError, match="File not found"):
        store.get(KEY)


def test_size(store, bucket):
    bucket.objects[KEY] = b"\0" * 2048

    assert store.size(KEY) == 2048


def test_size_of_missing_object(store):
    with pytest.raises(VideoAssetNotFoundError):
        store.size(KEY)


def test_delete(store, bucket):
    bucket.objects[KEY] = b"data"

    assert store.delete(KEY) is True
    assert KEY not in bucket.objects


def test_delete_missing_object_returns_false(store):
    assert store.delete(KEY) is False


@pytest.mark.parametrize(
    "operation",
    [
        lambda store: store.put(KEY, b"data"),
        lambda store: store.get(KEY, 0, 10),
        lambda store: store.size(KEY),
        lambda store: store.exists(KEY),
        lambda store: store.delete(KEY),
    ],
)
def test_google_api_errors_become_storage_errors(store, bucket, operation):
    bucket.objects[KEY] = b"data"
    bucket.failure = gcs_exceptions.ServiceUnavailable("backend unavailable")

    with pytest.raises(StorageError) as exc_info:
        operation(store)

    assert not isinstance(exc_info.value, VideoAssetNotFoundError)
    assert "backend unavailable" in str(exc_info.value)
