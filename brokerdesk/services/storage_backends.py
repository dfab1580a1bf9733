"""Local filesystem and S3-compatible storage backends.

Both variants are synchronous (``pathlib`` and boto3 block); callers go through
``DocumentStorage``, which moves them off the event loop.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from brokerdesk.logger import get_logger, log_timing
from brokerdesk.services.storage_fallback import (
    FallbackChain,
    default_chain,
    error_code,
    is_missing_object,
)
from brokerdesk.services.storage_types import (
    DocumentKey,
    Failed,
    Found,
    NotFound,
    Resolution,
    StorageError,
    UploadedDocument,
)

logger = get_logger(__name__)


class StorageBackend(ABC):
    mode: str

    @abstractmethod
    def upload(self, key: DocumentKey, content: bytes, content_type: str | None) -> UploadedDocument:
        """Write ``content`` under ``key``."""

    @abstractmethod
    def resolve(self, key: DocumentKey, ttl_seconds: int) -> Resolution:
        """Locate ``key`` and return a readable location."""

    @abstractmethod
    def delete(self, key: DocumentKey) -> bool:
        """Remove ``key``; False when nothing was there."""

    @abstractmethod
    def ensure_container(self) -> None:
        """Create the backing container if needed."""


class LocalBackend(StorageBackend):
    """Documents stored as ``<root>/<client_id>/<document_type>/<file_name>``."""

    mode = "local"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: DocumentKey) -> Path:
        return self.root / key.client_id / key.document_type.value / key.file_name

    def ensure_container(self) -> None:
        return None

    def upload(self, key: DocumentKey, content: bytes, content_type: str | None) -> UploadedDocument:
        target = self.path_for(key)
        try:
            with log_timing("local.write", logger=logger, level="debug", key=key.path) as ctx:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content)
                ctx["size"] = len(content)
        except OSError as exc:
            logger.error("Failed to write document", key=key.path, error=str(exc))
            raise StorageError(f"Failed to store {key} on local disk") from exc
        return UploadedDocument(url=str(target), path=key.path)

    def resolve(self, key: DocumentKey, ttl_seconds: int) -> Resolution:
        target = self.path_for(key)
        try:
            exists = target.is_file()
        except OSError as exc:
            return Failed(f"Failed to read {key} from local disk", exc)
        if not exists:
            return NotFound(key.path)
        return Found(str(target))

    def delete(self, key: DocumentKey) -> bool:
        target = self.path_for(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Failed to delete document", key=key.path, error=str(exc))
            raise StorageError(f"Failed to delete {key} from local disk") from exc
        return True


class CloudBackend(StorageBackend):
    """S3/MinIO bucket with a read-only local fallback for historical uploads."""

    mode = "cloud"

    def __init__(
        self,
        client: Any,
        bucket: str,
        fallback_root: str | Path,
        *,
        region: str | None = None,
        endpoint: str | None = None,
        chain: FallbackChain | None = None,
        forbidden_as_missing: bool = False,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint
        self.forbidden_as_missing = forbidden_as_missing
        self.fallback = LocalBackend(fallback_root)
        self.chain = chain or default_chain(
            client, bucket, self.fallback.root, forbidden_as_missing=forbidden_as_missing
        )
        self._bucket_ready = False
        self._bucket_lock = threading.Lock()

    def ensure_container(self) -> None:
        with self._bucket_lock:
            if self._bucket_ready:
                return
            try:
                self.client.head_bucket(Bucket=self.bucket)
            except ClientError as exc:
                if error_code(exc) not in ("404", "NoSuchBucket", "NotFound"):
                    raise StorageError(f"Failed to access bucket {self.bucket}") from exc
                try:
                    if self.region and self.region != "us-east-1":
                        self.client.create_bucket(
                            Bucket=self.bucket,
                            CreateBucketConfiguration={"LocationConstraint": self.region},
                        )
                    else:
                        self.client.create_bucket(Bucket=self.bucket)
                except ClientError as create_exc:
                    if error_code(create_exc) not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                        raise StorageError(f"Failed to create bucket {self.bucket}") from create_exc
                except BotoCoreError as create_exc:
                    raise StorageError(f"Failed to create bucket {self.bucket}") from create_exc
                logger.info("Created storage bucket", bucket=self.bucket)
            except BotoCoreError as exc:
                raise StorageError(f"Failed to access bucket {self.bucket}") from exc
            self._bucket_ready = True

    def object_url(self, key: DocumentKey) -> str:
        base = self.endpoint or getattr(self.client.meta, "endpoint_url", "")
        return f"{base.rstrip('/')}/{self.bucket}/{key.path}"

    def upload(self, key: DocumentKey, content: bytes, content_type: str | None) -> UploadedDocument:
        self.ensure_container()
        extra_args: dict[str, Any] = {}
        if content_type:
            extra_args["ContentType"] = content_type
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key.path,
                Body=content,
                **extra_args,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to upload to S3", bucket=self.bucket, key=key.path, error=str(exc))
            raise StorageError(f"Failed to upload {key} to {self.bucket}") from exc
        return UploadedDocument(url=self.object_url(key), path=key.path)

    def resolve(self, key: DocumentKey, ttl_seconds: int) -> Resolution:
        return self.chain.resolve(key, ttl_seconds)

    def _object_exists(self, key: DocumentKey) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key.path)
        except ClientError as exc:
            if is_missing_object(exc, forbidden_as_missing=self.forbidden_as_missing):
                return False
            raise StorageError(f"Failed to look up {key} in {self.bucket}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to look up {key} in {self.bucket}") from exc
        return True

    def delete(self, key: DocumentKey) -> bool:
        deleted = False
        if self._object_exists(key):
            try:
                self.client.delete_object(Bucket=self.bucket, Key=key.path)
            except (BotoCoreError, ClientError) as exc:
                logger.error("Failed to delete from S3", bucket=self.bucket, key=key.path, error=str(exc))
                raise StorageError(f"Failed to delete {key} from {self.bucket}") from exc
            deleted = True

        # A mirrored copy would otherwise keep resolving through the fallback.
        if self.fallback.delete(key):
            logger.info("Removed local fallback copy", key=key.path)
            deleted = True
        return deleted
