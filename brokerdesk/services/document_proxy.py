"""Serve stored documents through the API instead of handing out storage URLs.

The bucket does not allow anonymous reads, so presigned URLs are fetched
server-side and re-served; local paths are streamed from disk.
"""

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from brokerdesk.logger import get_logger, log_external_api
from brokerdesk.services.storage import (
    DEFAULT_URL_TTL_SECONDS,
    DocumentStorage,
    DocumentType,
    Failed,
    Found,
    NotFound,
)

logger = get_logger(__name__)

MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}
DEFAULT_MEDIA_TYPE = "application/octet-stream"


def extract_file_name(reference: str) -> str:
    """Canonical file name from a blob URL or a stored (possibly Windows) path."""
    reference = reference.strip()
    if reference.startswith("http"):
        segments = urlsplit(reference).path.split("/")
    else:
        segments = reference.replace("\\", "/").split("/")
    for segment in reversed(segments):
        if segment:
            return segment
    return ""


def guess_media_type(file_name: str) -> str:
    return MEDIA_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_MEDIA_TYPE)


@dataclass(frozen=True)
class LocalDocument:
    path: Path
    media_type: str


@dataclass(frozen=True)
class RemoteDocument:
    content: bytes
    media_type: str


ProxyResult = LocalDocument | RemoteDocument | NotFound | Failed


class UpstreamError(Exception):
    """Raised when the object store answers a presigned GET with non-2xx."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Upstream returned HTTP {status_code}")
        self.status_code = status_code


class DocumentProxy:
    def __init__(self, storage: DocumentStorage, http_client: httpx.AsyncClient) -> None:
        self.storage = storage
        self.http_client = http_client

    @log_external_api("object-storage")
    async def fetch(self, url: str) -> httpx.Response:
        response = await self.http_client.get(url, follow_redirects=False)
        if not response.is_success:
            raise UpstreamError(response.status_code)
        return response

    async def resolve(
        self,
        client_id: str,
        document_type: DocumentType | str,
        file_name: str,
        ttl_seconds: int = DEFAULT_URL_TTL_SECONDS,
    ) -> ProxyResult:
        result = await self.storage.generate_secure_url(
            client_id, document_type, file_name, ttl_seconds
        )
        if not isinstance(result, Found):
            return result

        if not result.is_url:
            path = Path(result.value)
            if not path.is_file():
                return NotFound(str(path))
            return LocalDocument(path=path, media_type=guess_media_type(path.name))

        try:
            response = await self.fetch(result.value)
        except (httpx.HTTPError, UpstreamError) as exc:
            return Failed(f"Failed to fetch document from storage: {exc}", exc)

        media_type = response.headers.get("content-type") or guess_media_type(file_name)
        return RemoteDocument(content=response.content, media_type=media_type)
