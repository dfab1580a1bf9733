"""Pydantic schemas."""

from brokerdesk.schemas.auth import AuthResponse, LoginRequest, UserCreate, UserResponse
from brokerdesk.schemas.base import BaseResponse, ListResponse
from brokerdesk.schemas.client import ClientCreate, ClientResponse, ClientSearch, ClientUpdate
from brokerdesk.schemas.document import (
    DocumentAccessToken,
    DocumentDeleteResponse,
    DocumentUploadResponse,
)

__all__ = [
    "AuthResponse",
    "BaseResponse",
    "ClientCreate",
    "ClientResponse",
    "ClientSearch",
    "ClientUpdate",
    "DocumentAccessToken",
    "DocumentDeleteResponse",
    "DocumentUploadResponse",
    "ListResponse",
    "LoginRequest",
    "UserCreate",
    "UserResponse",
]
