"""Client record service."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerdesk.models import Client, generate_client_id
from brokerdesk.schemas.client import ClientCreate, ClientSearch, ClientUpdate
from brokerdesk.services.storage_types import DocumentType

SEARCH_LIMIT = 100


class ClientServiceError(Exception):
    """Base exception for client service errors."""


class ClientNotFoundError(ClientServiceError):
    """Client not found error."""


class ClientExistsError(ClientServiceError):
    """A client with the requested id already exists."""


async def create_client(db: AsyncSession, client_data: ClientCreate) -> Client:
    client_id = client_data.id or generate_client_id()
    if await db.get(Client, client_id) is not None:
        raise ClientExistsError(f"Client {client_id} already exists")

    values = client_data.model_dump(exclude_none=True, exclude={"id"})
    client = Client(id=client_id, **values)
    db.add(client)
    await db.flush()
    await db.refresh(client)
    return client


async def get_client(db: AsyncSession, client_id: str) -> Client:
    client = await db.get(Client, client_id)
    if client is None:
        raise ClientNotFoundError(f"Client {client_id} not found")
    return client


async def list_clients(
    db: AsyncSession,
    *,
    sales_rep_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Client], int]:
    base_query = select(Client)
    if sales_rep_id is not None:
        base_query = base_query.where(Client.sales_rep_id == sales_rep_id)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = base_query.order_by(Client.created_at.desc(), Client.id).limit(limit).offset(offset)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def update_client(db: AsyncSession, client_id: str, client_data: ClientUpdate) -> Client:
    client = await get_client(db, client_id)
    for field, value in client_data.model_dump(exclude_unset=True).items():
        if hasattr(client, field):
            setattr(client, field, value)
    await db.flush()
    await db.refresh(client)
    return client


async def delete_client(db: AsyncSession, client_id: str) -> None:
    client = await get_client(db, client_id)
    await db.delete(client)
    await db.flush()


async def search_clients(
    db: AsyncSession,
    criteria: ClientSearch,
    *,
    sales_rep_id: UUID | None = None,
) -> list[Client]:
    """Case-insensitive substring match; a client qualifies if any field matches."""
    conditions = [
        getattr(Client, field).ilike(f"%{value}%")
        for field, value in criteria.model_dump(exclude_none=True).items()
        if value.strip()
    ]
    query = select(Client)
    if conditions:
        query = query.where(or_(*conditions))
    if sales_rep_id is not None:
        query = query.where(Client.sales_rep_id == sales_rep_id)
    query = query.order_by(Client.client_name).limit(SEARCH_LIMIT)
    result = await db.execute(query)
    return list(result.scalars().all())


async def set_document_path(
    db: AsyncSession,
    client_id: str,
    document_type: DocumentType,
    path: str,
) -> Client | None:
    """Record the stored path in the client's column for ``document_type``."""
    client = await db.get(Client, client_id)
    if client is None:
        return None
    setattr(client, document_type.value, path)
    await db.flush()
    return client


async def clear_document_path(
    db: AsyncSession,
    client_id: str,
    document_type: DocumentType,
    path: str,
) -> bool:
    """Null the client's column for ``document_type`` if it still points at ``path``."""
    client = await db.get(Client, client_id)
    if client is None or getattr(client, document_type.value) != path:
        return False
    setattr(client, document_type.value, None)
    await db.flush()
    return True
