"""Document upload, proxy and delete API router.

Documents are always served through this API: local files are streamed and
presigned cloud URLs are fetched server-side, so storage URLs never reach the
browser.
"""

from typing import NoReturn

from fastapi import APIRouter, File, Query, Request, UploadFile, status
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from brokerdesk.config import settings
from brokerdesk.deps import CurrentUser, DbSession, Proxy, Storage
from brokerdesk.logger import get_logger, log_exception
from brokerdesk.schemas import DocumentAccessToken, DocumentDeleteResponse, DocumentUploadResponse
from brokerdesk.services.access_tokens import (
    ACCESS_TOKEN_WINDOW_SECONDS,
    issue_access_token,
    validate_access_token,
)
from brokerdesk.services.clients import clear_document_path, set_document_path
from brokerdesk.services.document_proxy import (
    DocumentProxy,
    LocalDocument,
    ProxyResult,
    RemoteDocument,
    extract_file_name,
)
from brokerdesk.services.storage import (
    DocumentStorage,
    DocumentType,
    Failed,
    NotFound,
    StorageError,
    generate_file_name,
)
from brokerdesk.utils.exceptions import (
    raise_bad_request,
    raise_internal_error,
    raise_not_found,
    raise_too_large,
    raise_unauthorized,
)

router = APIRouter(prefix="/documents", tags=["documents"])
logger = get_logger(__name__)


def _detail(message: str, diagnostic: str) -> str:
    if settings.is_production:
        return message
    return f"{message}: {diagnostic}"


def _raise_invalid_key(exc: ValueError) -> NoReturn:
    raise_bad_request(str(exc), cause=exc)


def _document_response(result: ProxyResult, ttl_seconds: int) -> Response:
    headers = {
        "Cache-Control": f"private, max-age={ttl_seconds}",
        "Access-Control-Allow-Origin": "*",
    }
    if isinstance(result, LocalDocument):
        return FileResponse(result.path, media_type=result.media_type, headers=headers)
    if isinstance(result, RemoteDocument):
        return Response(content=result.content, media_type=result.media_type, headers=headers)
    if isinstance(result, NotFound):
        raise_not_found("Document", detail=_detail("Document not found", result.key))
    if isinstance(result, Failed):
        raise_internal_error(_detail("Failed to retrieve document", result.detail), cause=result.error)
    raise TypeError(f"Unexpected resolution result: {result!r}")


async def _serve(
    proxy: DocumentProxy,
    client_id: str,
    document_type: DocumentType,
    file_name: str,
) -> Response:
    ttl_seconds = settings.document_url_ttl_seconds
    try:
        result = await proxy.resolve(client_id, document_type, file_name, ttl_seconds)
    except ValueError as exc:
        _raise_invalid_key(exc)
    return _document_response(result, ttl_seconds)


async def _delete(
    storage: DocumentStorage,
    db: AsyncSession,
    client_id: str,
    document_type: DocumentType,
    file_name: str,
) -> DocumentDeleteResponse:
    try:
        deleted = await storage.delete_file(client_id, document_type, file_name)
    except ValueError as exc:
        _raise_invalid_key(exc)
    except StorageError as exc:
        log_exception(logger, exc, "Document delete failed", client_id=client_id)
        raise_internal_error(_detail("Failed to delete document", str(exc)), cause=exc)

    path = f"{client_id}/{document_type.value}/{file_name}"
    if not deleted:
        raise_not_found("Document", detail=_detail("Document not found", path))

    if await clear_document_path(db, client_id, document_type, path):
        await db.commit()
    logger.info("Document deleted", path=path)
    return DocumentDeleteResponse(deleted=True, path=path)


@router.post(
    "/upload/{client_id}/{document_type}",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    client_id: str,
    document_type: DocumentType,
    storage: Storage,
    db: DbSession,
    user: CurrentUser,
    file: UploadFile = File(...),
) -> DocumentUploadResponse:
    """Store a supporting document and record its path on the client."""
    content_type = file.content_type or ""
    if content_type not in settings.allowed_upload_types:
        raise_bad_request(
            f"Invalid file type {content_type or 'unknown'}. "
            f"Allowed types: {', '.join(settings.allowed_upload_types)}"
        )

    # Read one byte past the limit so oversize uploads are detected without
    # buffering the whole body.
    content = await file.read(settings.max_upload_bytes + 1)
    if not content:
        raise_bad_request("No file uploaded")
    if len(content) > settings.max_upload_bytes:
        raise_too_large(f"File exceeds the {settings.max_upload_bytes} byte limit")

    file_name = generate_file_name(file.filename)
    try:
        uploaded = await storage.upload_file(client_id, document_type, file_name, content, content_type)
    except ValueError as exc:
        _raise_invalid_key(exc)
    except StorageError as exc:
        log_exception(logger, exc, "Document upload failed", client_id=client_id)
        raise_internal_error(_detail("Failed to upload document", str(exc)), cause=exc)

    await set_document_path(db, client_id, document_type, uploaded.path)
    await db.commit()

    logger.info(
        "Document uploaded",
        path=uploaded.path,
        size=len(content),
        uploaded_by=str(user.id),
    )
    return DocumentUploadResponse(
        client_id=client_id,
        document_type=document_type,
        file_name=file_name,
        path=uploaded.path,
        download_url=f"{router.prefix}/{uploaded.path}",
        content_type=content_type,
        size=len(content),
    )


@router.get("/public/{token}/{client_id}/{document_type}/{filename}")
async def get_public_document(
    token: str,
    client_id: str,
    document_type: DocumentType,
    filename: str,
    proxy: Proxy,
) -> Response:
    """Serve a document to holders of a short-lived access token."""
    if not validate_access_token(token):
        logger.warning("Rejected document access token", client_id=client_id)
        raise_unauthorized("Invalid or expired access token")
    return await _serve(proxy, client_id, document_type, extract_file_name(filename))


@router.get("/{client_id}/{document_type}")
async def get_document_by_reference(
    client_id: str,
    document_type: DocumentType,
    proxy: Proxy,
    _: CurrentUser,
    blob_url: str = Query(..., alias="blobUrl", min_length=1),
) -> Response:
    """Serve a document addressed by a stored URL or path."""
    file_name = extract_file_name(blob_url)
    if not file_name:
        raise_bad_request("blobUrl does not contain a file name")
    return await _serve(proxy, client_id, document_type, file_name)


@router.get("/{client_id}/{document_type}/{filename}")
async def get_document(
    client_id: str,
    document_type: DocumentType,
    filename: str,
    proxy: Proxy,
    _: CurrentUser,
) -> Response:
    return await _serve(proxy, client_id, document_type, extract_file_name(filename))


@router.post("/{client_id}/{document_type}/{filename}/token", response_model=DocumentAccessToken)
async def create_document_token(
    request: Request,
    client_id: str,
    document_type: DocumentType,
    filename: str,
    user: CurrentUser,
) -> DocumentAccessToken:
    """Issue a token for the public document route."""
    token = issue_access_token()
    file_name = extract_file_name(filename)
    url = request.url_for(
        "get_public_document",
        token=token,
        client_id=client_id,
        document_type=document_type.value,
        filename=file_name,
    )
    logger.info(
        "Issued document access token",
        client_id=client_id,
        document_type=document_type.value,
        issued_to=str(user.id),
    )
    return DocumentAccessToken(token=token, expires_in=ACCESS_TOKEN_WINDOW_SECONDS, url=url.path)


@router.delete("/{client_id}/{document_type}", response_model=DocumentDeleteResponse)
async def delete_document_by_reference(
    client_id: str,
    document_type: DocumentType,
    storage: Storage,
    db: DbSession,
    _: CurrentUser,
    blob_url: str = Query(..., alias="blobUrl", min_length=1),
) -> DocumentDeleteResponse:
    file_name = extract_file_name(blob_url)
    if not file_name:
        raise_bad_request("blobUrl does not contain a file name")
    return await _delete(storage, db, client_id, document_type, file_name)


@router.delete("/{client_id}/{document_type}/{filename}", response_model=DocumentDeleteResponse)
async def delete_document(
    client_id: str,
    document_type: DocumentType,
    filename: str,
    storage: Storage,
    db: DbSession,
    _: CurrentUser,
) -> DocumentDeleteResponse:
    return await _delete(storage, db, client_id, document_type, extract_file_name(filename))
