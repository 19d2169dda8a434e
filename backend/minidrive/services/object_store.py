"""Object store: a thin MinIO adapter behind an abstract interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

from minio import Minio
from minio.error import MinioException, S3Error
from urllib3.exceptions import HTTPError as TransportError

from minidrive.config import Settings
from minidrive.exceptions import NotFound, StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CHUNK_SIZE = 64 * 1024  # 64 KB
PART_SIZE = 10 * 1024 * 1024  # multipart size when the length is unknown

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}


@dataclass(frozen=True)
class ObjectInfo:
    """One entry of a prefix scan."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None
    is_dir: bool = False


@dataclass(frozen=True)
class ObjectStat:
    key: str
    size: int
    last_modified: Optional[datetime]
    content_type: str = DEFAULT_CONTENT_TYPE
    etag: Optional[str] = None
    version_id: Optional[str] = None
    is_delete_marker: bool = False
    storage_class: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectDownload:
    """An open object body. ``release`` returns its connection and is safe to call twice."""

    key: str
    size: Optional[int]
    content_type: str
    chunks: Iterable[bytes]
    release: Callable[[], None]


class _ResponseBody:
    """Chunks of a MinIO response; the connection is released exactly once."""

    def __init__(self, response):
        self._response = response
        self._released = False

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._response.stream(CHUNK_SIZE)
        finally:
            self.release()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._response.close()
        self._response.release_conn()


class ObjectStore(ABC):
    """Byte-level operations the virtual filesystem delegates to the backing store.

    All methods block; callers in async code run them in a threadpool.
    """

    @abstractmethod
    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""

    @abstractmethod
    def put(self, key: str, data: BinaryIO, size: int, content_type: Optional[str] = None) -> None:
        """Store ``size`` bytes from ``data`` under ``key``, replacing any previous object."""

    @abstractmethod
    def stat(self, key: str) -> ObjectStat:
        """Metadata for ``key``; raises NotFound if absent."""

    @abstractmethod
    def get(self, key: str) -> ObjectDownload:
        """Open the object's body for streaming; raises NotFound if absent."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; removing an absent key is not an error."""

    @abstractmethod
    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[ObjectInfo]:
        """Scan keys starting with ``prefix`` in store order."""


class MinioObjectStore(ObjectStore):
    def __init__(self, client: Minio, bucket: str):
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioObjectStore":
        client = Minio(
            endpoint=settings.minio_host,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_tls,
        )
        return cls(client, settings.bucket_name)

    @property
    def bucket(self) -> str:
        return self._bucket

    def _storage_error(self, action: str, key: str, exc: Exception) -> Exception:
        if isinstance(exc, S3Error) and exc.code in _MISSING_CODES:
            return NotFound(f"File not found: {key}")
        logger.error("Object store %s failed for %r: %s", action, key, exc)
        return StorageUnavailable(f"{action.capitalize()} failed: {exc}")

    def ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(bucket_name=self._bucket):
                self._client.make_bucket(bucket_name=self._bucket)
                logger.info("Created bucket %s", self._bucket)
        except (MinioException, TransportError) as exc:
            raise self._storage_error("bucket check", self._bucket, exc)
        logger.info("Connected to object store, bucket %s", self._bucket)

    def put(self, key: str, data: BinaryIO, size: int, content_type: Optional[str] = None) -> None:
        length = size if size is not None and size >= 0 else -1
        try:
            self._client.put_object(
                bucket_name=self._bucket,
                object_name=key,
                data=data,
                length=length,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                part_size=0 if length >= 0 else PART_SIZE,
            )
        except (MinioException, TransportError) as exc:
            raise self._storage_error("upload", key, exc)
        logger.debug("Stored %s (%s bytes)", key, size)

    def stat(self, key: str) -> ObjectStat:
        try:
            obj = self._client.stat_object(bucket_name=self._bucket, object_name=key)
        except (MinioException, TransportError) as exc:
            raise self._storage_error("stat", key, exc)
        return ObjectStat(
            key=obj.object_name or key,
            size=obj.size or 0,
            last_modified=obj.last_modified,
            content_type=obj.content_type or DEFAULT_CONTENT_TYPE,
            etag=obj.etag,
            version_id=obj.version_id,
            is_delete_marker=bool(obj.is_delete_marker),
            storage_class=obj.storage_class,
            metadata={k: str(v) for k, v in (obj.metadata or {}).items()},
        )

    def get(self, key: str) -> ObjectDownload:
        try:
            response = self._client.get_object(bucket_name=self._bucket, object_name=key)
        except (MinioException, TransportError) as exc:
            raise self._storage_error("download", key, exc)
        # Size and type describe the body being streamed, not an earlier stat
        length = response.headers.get("Content-Length")
        body = _ResponseBody(response)
        return ObjectDownload(
            key=key,
            size=int(length) if length is not None else None,
            content_type=response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
            chunks=body,
            release=body.release,
        )

    def delete(self, key: str) -> None:
        try:
            self._client.remove_object(bucket_name=self._bucket, object_name=key)
        except (MinioException, TransportError) as exc:
            raise self._storage_error("delete", key, exc)
        logger.debug("Deleted %s", key)

    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[ObjectInfo]:
        try:
            for obj in self._client.list_objects(
                bucket_name=self._bucket,
                prefix=prefix or None,
                recursive=recursive,
                include_user_meta=True,
            ):
                yield ObjectInfo(
                    key=obj.object_name or "",
                    size=obj.size or 0,
                    last_modified=obj.last_modified,
                    content_type=obj.content_type,
                    is_dir=obj.is_dir,
                )
        except (MinioException, TransportError) as exc:
            raise self._storage_error("list", prefix, exc)
