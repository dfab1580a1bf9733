"""Pydantic schemas for document endpoints."""

from pydantic import BaseModel

from brokerdesk.services.storage import DocumentType


class DocumentUploadResponse(BaseModel):
    client_id: str
    document_type: DocumentType
    file_name: str
    path: str
    download_url: str
    content_type: str
    size: int


class DocumentAccessToken(BaseModel):
    token: str
    expires_in: int
    url: str


class DocumentDeleteResponse(BaseModel):
    deleted: bool
    path: str
