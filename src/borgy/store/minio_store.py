"""MinIO/S3 implementation of the object store protocol."""

from __future__ import annotations

import io
import logging
from typing import Iterator, Optional

import urllib3
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import MinioException

from borgy.config.models import StoreSettings

from .base import StoredObject
from .errors import EnumerationError, ObjectNotFoundError, StoreError, StoreMutationError

LOGGER = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NotFound"}
_CLIENT_ERRORS = (MinioException, urllib3.exceptions.HTTPError)


def _is_missing(exc: Exception) -> bool:
    return getattr(exc, "code", None) in _MISSING_CODES


class MinioObjectStore:
    """Adapter translating ``minio`` client calls into Borgy store primitives."""

    def __init__(self, client: Minio, bucket: str, *, region: Optional[str] = None) -> None:
        self._client = client
        self._bucket = bucket
        self._region = region

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "MinioObjectStore":
        """Build a store from the `store` configuration section.

        Args:
            settings: Connection settings for the MinIO endpoint.

        Returns:
            MinioObjectStore: Adapter bound to the configured bucket.
        """
        client = Minio(
            f"{settings.endpoint}:{settings.port}",
            access_key=settings.access_key,
            secret_key=settings.secret_key,
            secure=settings.use_ssl,
            region=settings.region,
        )
        return cls(client, settings.bucket, region=settings.region)

    @property
    def bucket(self) -> str:
        return self._bucket

    def ensure_bucket(self) -> bool:
        """Create the bucket when it does not exist.

        Returns:
            bool: True when the bucket was created by this call.

        Raises:
            StoreError: If the bucket cannot be inspected or created.
        """
        try:
            if self._client.bucket_exists(self._bucket):
                return False
            self._client.make_bucket(self._bucket, location=self._region)
        except _CLIENT_ERRORS as exc:
            raise StoreError(f"Unable to prepare bucket {self._bucket}: {exc}") from exc
        LOGGER.info("Created bucket %s", self._bucket)
        return True

    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[StoredObject]:
        try:
            for item in self._client.list_objects(
                self._bucket, prefix=prefix or None, recursive=recursive
            ):
                if item.is_dir or not item.object_name or item.object_name.endswith("/"):
                    continue
                yield StoredObject(
                    key=item.object_name,
                    size=item.size or 0,
                    last_modified=item.last_modified,
                    etag=item.etag,
                )
        except _CLIENT_ERRORS as exc:
            raise EnumerationError(f"Listing bucket {self._bucket} failed: {exc}") from exc

    def get_object(self, key: str) -> bytes:
        response = None
        try:
            response = self._client.get_object(self._bucket, key)
            return response.read()
        except _CLIENT_ERRORS as exc:
            if _is_missing(exc):
                raise ObjectNotFoundError(f"Object not found: {key}") from exc
            raise StoreError(f"Unable to read {key}: {exc}") from exc
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def put_object(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        try:
            result = self._client.put_object(
                self._bucket,
                key,
                io.BytesIO(data),
                len(data),
                content_type=content_type,
            )
        except _CLIENT_ERRORS as exc:
            raise StoreMutationError(f"Unable to write {key}: {exc}") from exc
        return StoredObject(key=key, size=len(data), etag=result.etag)

    def copy_object(self, source: str, destination: str) -> None:
        try:
            self._client.copy_object(self._bucket, destination, CopySource(self._bucket, source))
        except _CLIENT_ERRORS as exc:
            if _is_missing(exc):
                raise ObjectNotFoundError(f"Copy source not found: {source}") from exc
            raise StoreMutationError(f"Unable to copy {source} to {destination}: {exc}") from exc

    def remove_object(self, key: str) -> None:
        try:
            self._client.remove_object(self._bucket, key)
        except _CLIENT_ERRORS as exc:
            raise StoreMutationError(f"Unable to delete {key}: {exc}") from exc

    def stat_object(self, key: str) -> Optional[StoredObject]:
        try:
            item = self._client.stat_object(self._bucket, key)
        except _CLIENT_ERRORS as exc:
            if _is_missing(exc):
                return None
            raise StoreError(f"Unable to stat {key}: {exc}") from exc
        return StoredObject(
            key=key,
            size=item.size or 0,
            last_modified=item.last_modified,
            etag=item.etag,
        )


__all__ = ["MinioObjectStore"]
