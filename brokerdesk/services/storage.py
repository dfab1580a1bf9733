"""Document storage service.

``DocumentStorage`` is the async entry point for routers. It wraps one of the
two synchronous backends, chosen once by ``build_storage``:

- ``LocalBackend`` when no S3 credentials are configured, or when building
  the boto3 client fails (logged, startup continues)
- ``CloudBackend`` otherwise, with the local upload root as read-only fallback
"""

import uuid
from pathlib import PurePosixPath
from typing import Any

import boto3
from botocore.config import Config
from fastapi.concurrency import run_in_threadpool

from brokerdesk.config import Settings, settings
from brokerdesk.logger import async_log_timing, get_logger
from brokerdesk.services.storage_backends import CloudBackend, LocalBackend, StorageBackend
from brokerdesk.services.storage_types import (
    DocumentKey,
    DocumentType,
    Failed,
    Found,
    NotFound,
    Resolution,
    StorageError,
    UploadedDocument,
)

logger = get_logger(__name__)

DEFAULT_URL_TTL_SECONDS = 900

__all__ = [
    "DEFAULT_URL_TTL_SECONDS",
    "DocumentKey",
    "DocumentStorage",
    "DocumentType",
    "Failed",
    "Found",
    "NotFound",
    "Resolution",
    "StorageError",
    "UploadedDocument",
    "build_storage",
    "generate_file_name",
    "normalize_file_name",
]


def generate_file_name(original_name: str | None) -> str:
    """Random stored name that keeps the original extension."""
    suffix = PurePosixPath((original_name or "").replace("\\", "/")).suffix.lower()
    return f"{uuid.uuid4().hex}{suffix}"


def normalize_file_name(file_name: str) -> str:
    """Reduce a name that embeds path separators to its basename."""
    return PurePosixPath(file_name.replace("\\", "/")).name


class DocumentStorage:
    """Async facade over a storage backend."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    @property
    def mode(self) -> str:
        return self.backend.mode

    async def ensure_container(self) -> None:
        await run_in_threadpool(self.backend.ensure_container)

    async def upload_file(
        self,
        client_id: str,
        document_type: DocumentType | str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> UploadedDocument:
        key = DocumentKey(client_id, document_type, file_name)
        async with async_log_timing(
            "storage.upload", logger=logger, key=key.path, mode=self.mode
        ) as ctx:
            uploaded = await run_in_threadpool(self.backend.upload, key, content, content_type)
            ctx["size"] = len(content)
        return uploaded

    async def generate_secure_url(
        self,
        client_id: str,
        document_type: DocumentType | str,
        file_name: str,
        ttl_seconds: int = DEFAULT_URL_TTL_SECONDS,
    ) -> Resolution:
        """Resolve a document to a presigned URL (cloud) or a server-side path (local).

        Returns ``Found``, ``NotFound`` or ``Failed``; never raises for a
        missing document.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        key = DocumentKey(client_id, document_type, file_name)
        async with async_log_timing(
            "storage.resolve", logger=logger, key=key.path, mode=self.mode
        ) as ctx:
            result = await run_in_threadpool(self.backend.resolve, key, ttl_seconds)
            ctx["outcome"] = type(result).__name__
        return result

    async def delete_file(
        self,
        client_id: str,
        document_type: DocumentType | str,
        file_name: str,
    ) -> bool:
        key = DocumentKey(client_id, document_type, normalize_file_name(file_name))
        async with async_log_timing(
            "storage.delete", logger=logger, key=key.path, mode=self.mode
        ) as ctx:
            deleted = await run_in_threadpool(self.backend.delete, key)
            ctx["deleted"] = deleted
        return deleted


def _create_s3_client(credentials: dict[str, str], config: Settings) -> Any:
    return boto3.client(
        "s3",
        endpoint_url=credentials.get("endpoint"),
        aws_access_key_id=credentials["access_key"],
        aws_secret_access_key=credentials["secret_key"],
        region_name=config.s3_region,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def build_storage(config: Settings = settings) -> DocumentStorage:
    """Pick the backend once, from configured credentials."""
    if not config.has_s3_credentials:
        logger.info("No storage credentials configured, using local storage", root=config.upload_root)
        return DocumentStorage(LocalBackend(config.upload_root))

    credentials = config.storage_credentials
    try:
        client = _create_s3_client(credentials, config)
    except Exception as exc:
        logger.warning(
            "Failed to create S3 client, falling back to local storage",
            error=str(exc),
            error_type=type(exc).__name__,
            root=config.upload_root,
        )
        return DocumentStorage(LocalBackend(config.upload_root))

    logger.info("Using cloud storage", bucket=config.s3_bucket, endpoint=credentials.get("endpoint"))
    return DocumentStorage(
        CloudBackend(
            client,
            config.s3_bucket,
            config.upload_root,
            region=config.s3_region,
            endpoint=credentials.get("endpoint"),
            forbidden_as_missing=config.s3_forbidden_as_missing,
        )
    )
