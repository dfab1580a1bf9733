"""Ordered resolution strategies used by the cloud backend.

Documents were historically written to whichever backend was active at the
time, so a cloud miss is followed by a bounded search of the local upload
directory. Each strategy answers one question and can be exercised alone;
``FallbackChain`` walks them in order and stops at the first match.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from brokerdesk.logger import get_logger
from brokerdesk.services.storage_types import (
    DocumentKey,
    Failed,
    Found,
    NotFound,
    Resolution,
    StorageError,
)

logger = get_logger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_FORBIDDEN_CODES = {"403", "AccessDenied", "Forbidden"}


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_missing_object(exc: ClientError, *, forbidden_as_missing: bool = False) -> bool:
    code = error_code(exc)
    if forbidden_as_missing and code in _FORBIDDEN_CODES:
        return True
    return code in _MISSING_CODES


class ResolutionStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    def find(self, key: DocumentKey, ttl_seconds: int) -> Found | None:
        """Return a readable location for ``key`` or None when absent."""


class CloudObjectStrategy(ResolutionStrategy):
    """The object itself, handed out as a presigned ``get_object`` URL."""

    name = "cloud_object"

    def __init__(self, client: Any, bucket: str, *, forbidden_as_missing: bool = False) -> None:
        self.client = client
        self.bucket = bucket
        self.forbidden_as_missing = forbidden_as_missing

    def find(self, key: DocumentKey, ttl_seconds: int) -> Found | None:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key.path)
        except ClientError as exc:
            if is_missing_object(exc, forbidden_as_missing=self.forbidden_as_missing):
                return None
            raise StorageError(f"Failed to look up {key} in {self.bucket}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to look up {key} in {self.bucket}") from exc

        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key.path},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to generate presigned URL for {key}") from exc
        return Found(url)


class _LocalStrategy(ResolutionStrategy):
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def directory(self, key: DocumentKey) -> Path:
        return self.root / key.client_id / key.document_type.value


class LocalExactPathStrategy(_LocalStrategy):
    """The same logical key on the local upload root."""

    name = "local_exact_path"

    def find(self, key: DocumentKey, ttl_seconds: int) -> Found | None:
        candidate = self.directory(key) / key.file_name
        if candidate.is_file():
            return Found(str(candidate))
        return None


class LocalSameNameStrategy(_LocalStrategy):
    """A file with the same name anywhere below the client/type directory."""

    name = "local_same_name"

    def find(self, key: DocumentKey, ttl_seconds: int) -> Found | None:
        directory = self.directory(key)
        if not directory.is_dir():
            return None
        for candidate in sorted(directory.rglob(key.file_name)):
            if candidate.is_file():
                return Found(str(candidate))
        return None


class LocalAnyFileStrategy(_LocalStrategy):
    """Last resort: the first file in the client/type directory.

    Matches whatever name was asked for, so while any sibling remains a
    deleted or unknown name still resolves to that sibling.
    """

    name = "local_any_file"

    def find(self, key: DocumentKey, ttl_seconds: int) -> Found | None:
        directory = self.directory(key)
        if not directory.is_dir():
            return None
        for candidate in sorted(directory.iterdir()):
            if candidate.is_file():
                return Found(str(candidate))
        return None


class FallbackChain:
    def __init__(self, strategies: list[ResolutionStrategy]) -> None:
        self.strategies = list(strategies)

    def resolve(self, key: DocumentKey, ttl_seconds: int) -> Resolution:
        for position, strategy in enumerate(self.strategies):
            try:
                found = strategy.find(key, ttl_seconds)
            except (StorageError, OSError) as exc:
                logger.error(
                    "Document lookup failed",
                    key=key.path,
                    strategy=strategy.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return Failed(str(exc), exc)

            if found is None:
                logger.debug("Document not found by strategy", key=key.path, strategy=strategy.name)
                continue

            if position > 0:
                logger.warning(
                    "Document resolved through fallback",
                    key=key.path,
                    strategy=strategy.name,
                )
            return found

        logger.info("Document not found in any location", key=key.path)
        return NotFound(key.path)


def default_chain(
    client: Any,
    bucket: str,
    fallback_root: Path,
    *,
    forbidden_as_missing: bool = False,
) -> FallbackChain:
    return FallbackChain(
        [
            CloudObjectStrategy(client, bucket, forbidden_as_missing=forbidden_as_missing),
            LocalExactPathStrategy(fallback_root),
            LocalSameNameStrategy(fallback_root),
            LocalAnyFileStrategy(fallback_root),
        ]
    )
