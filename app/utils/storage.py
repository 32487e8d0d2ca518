"""Google Cloud Storage access for stored case videos."""

from __future__ import annotations

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage


class StorageError(Exception):
    """Raised when storage operations fail."""

    pass


class VideoAssetNotFoundError(StorageError):
    """Raised when a requested video object does not exist."""

    pass


class VideoAssetStore:
    """
    Put/get/delete/exists for case videos in one GCS bucket.

    Keys are blob paths inside the bucket, e.g. "cases/videos/<uuid>-scan.mp4".
    """

    def __init__(self, bucket_name: str, client: storage.Client | None = None):
        self.bucket_name = bucket_name
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def _blob(self, key: str) -> storage.Blob:
        return self.client.bucket(self.bucket_name).blob(key)

    def url_for(self, key: str) -> str:
        return f"gs://{self.bucket_name}/{key}"

    def exists(self, key: str) -> bool:
        """
        Check if a video object exists.

        Raises:
            StorageError: If the existence check itself fails
        """
        try:
            return self._blob(key).exists()
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"GCS exists check failed for {self.url_for(key)}: {e}") from e

    def put(self, key: str, data: bytes, content_type: str = "video/mp4") -> str:
        """
        Upload video bytes, overwriting any existing object.

        Returns:
            gs:// URL of the stored object

        Raises:
            StorageError: If upload fails
        """
        try:
            blob = self._blob(key)
            blob.upload_from_string(data, content_type=content_type)

            # Verify upload succeeded by reloading blob metadata
            blob.reload()
            if not blob.exists():
                raise StorageError(
                    f"Upload appeared to succeed but blob doesn't exist at {self.url_for(key)}"
                )
            return self.url_for(key)

        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"GCS upload failed: {str(e)}") from e

    def size(self, key: str) -> int:
        """
        Size of a stored object in bytes.

        Raises:
            VideoAssetNotFoundError: If the object does not exist
            StorageError: On any other GCS failure
        """
        try:
            blob = self.client.bucket(self.bucket_name).get_blob(key)
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"GCS metadata lookup failed: {str(e)}") from e

        if blob is None or blob.size is None:
            raise VideoAssetNotFoundError(f"File not found: {self.url_for(key)}")
        return int(blob.size)

    def get(self, key: str, start: int | None = None, end: int | None = None) -> bytes:
        """
        Download a whole object, or the inclusive byte range [start, end].

        Raises:
            VideoAssetNotFoundError: If the object does not exist
            StorageError: On any other GCS failure
        """
        try:
            return self._blob(key).download_as_bytes(start=start, end=end)
        except gcs_exceptions.NotFound as e:
            raise VideoAssetNotFoundError(f"File not found: {self.url_for(key)}") from e
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"GCS download failed: {str(e)}") from e

    def delete(self, key: str) -> bool:
        """
        Delete a stored video.

        Returns:
            False if the object was already gone

        Raises:
            StorageError: On any other GCS failure
        """
        try:
            self._blob(key).delete()
            return True
        except gcs_exceptions.NotFound:
            return False
        except gcs_exceptions.GoogleAPIError as e:
            raise StorageError(f"GCS delete failed: {str(e)}") from e
