"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from brokerdesk.deps import CurrentUser, DbSession, Storage

    async def my_endpoint(db: DbSession, user: CurrentUser, storage: Storage):
        ...

Shared objects (connection manager, storage, HTTP client) live on
``app.state`` and are set by ``create_app``.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from brokerdesk.auth import get_current_user
from brokerdesk.connection import ConnectionManager
from brokerdesk.database import get_connection_manager, get_db
from brokerdesk.models import User
from brokerdesk.services.document_proxy import DocumentProxy
from brokerdesk.services.storage import DocumentStorage


def get_storage(request: Request) -> DocumentStorage:
    return request.app.state.storage


def get_document_proxy(request: Request) -> DocumentProxy:
    return DocumentProxy(request.app.state.storage, request.app.state.http_client)


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
Connections = Annotated[ConnectionManager, Depends(get_connection_manager)]
Storage = Annotated[DocumentStorage, Depends(get_storage)]
Proxy = Annotated[DocumentProxy, Depends(get_document_proxy)]

__all__ = ["Connections", "CurrentUser", "DbSession", "Proxy", "Storage"]
