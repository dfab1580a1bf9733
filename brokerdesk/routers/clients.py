"""Client records API router."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError

from brokerdesk.auth import require_roles
from brokerdesk.deps import DbSession
from brokerdesk.logger import get_logger
from brokerdesk.models import Client, User, UserRole
from brokerdesk.schemas import ClientCreate, ClientResponse, ClientSearch, ClientUpdate, ListResponse
from brokerdesk.services import clients as client_service
from brokerdesk.services.clients import ClientExistsError, ClientNotFoundError
from brokerdesk.utils.exceptions import raise_conflict, raise_forbidden, raise_not_found

router = APIRouter(prefix="/clients", tags=["clients"])
logger = get_logger(__name__)

staff = require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.SALES)
supervisors = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def _is_sales(user: User) -> bool:
    return user.role == UserRole.SALES.value


def _check_ownership(user: User, client: Client) -> None:
    if _is_sales(user) and client.sales_rep_id != user.id:
        raise_forbidden("Sales representatives can only access their own clients")


@router.get("", response_model=ListResponse[ClientResponse])
async def list_clients(
    db: DbSession,
    user: User = Depends(staff),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ListResponse[ClientResponse]:
    """List clients; sales representatives see only their own."""
    clients, total = await client_service.list_clients(
        db,
        sales_rep_id=user.id if _is_sales(user) else None,
        limit=limit,
        offset=offset,
    )
    return ListResponse(items=[ClientResponse.model_validate(c) for c in clients], total=total)


@router.post("/search", response_model=ListResponse[ClientResponse])
async def search_clients(
    criteria: ClientSearch,
    db: DbSession,
    user: User = Depends(staff),
) -> ListResponse[ClientResponse]:
    clients = await client_service.search_clients(
        db,
        criteria,
        sales_rep_id=user.id if _is_sales(user) else None,
    )
    items = [ClientResponse.model_validate(c) for c in clients]
    return ListResponse(items=items, total=len(items))


@router.get("/sales-rep/{sales_rep_id}", response_model=ListResponse[ClientResponse])
async def list_clients_for_sales_rep(
    sales_rep_id: UUID,
    db: DbSession,
    _: User = Depends(supervisors),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ListResponse[ClientResponse]:
    clients, total = await client_service.list_clients(
        db, sales_rep_id=sales_rep_id, limit=limit, offset=offset
    )
    return ListResponse(items=[ClientResponse.model_validate(c) for c in clients], total=total)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    db: DbSession,
    user: User = Depends(staff),
) -> ClientResponse:
    try:
        client = await client_service.get_client(db, client_id)
    except ClientNotFoundError as exc:
        logger.debug("Client not found", client_id=client_id)
        raise_not_found("Client", cause=exc)
    _check_ownership(user, client)
    return ClientResponse.model_validate(client)


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    db: DbSession,
    user: User = Depends(staff),
) -> ClientResponse:
    """Create a client. A sales representative becomes the owner by default."""
    if _is_sales(user) and client_data.sales_rep_id is None:
        client_data = client_data.model_copy(update={"sales_rep_id": user.id})

    try:
        client = await client_service.create_client(db, client_data)
        await db.commit()
    except (ClientExistsError, IntegrityError) as exc:
        await db.rollback()
        raise_conflict("Client already exists", cause=exc)
    await db.refresh(client)

    logger.info("Client created", client_id=client.id, created_by=str(user.id))
    return ClientResponse.model_validate(client)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    client_data: ClientUpdate,
    db: DbSession,
    user: User = Depends(staff),
) -> ClientResponse:
    try:
        existing = await client_service.get_client(db, client_id)
    except ClientNotFoundError as exc:
        raise_not_found("Client", cause=exc)
    _check_ownership(user, existing)

    client = await client_service.update_client(db, client_id, client_data)
    await db.commit()
    await db.refresh(client)

    logger.info("Client updated", client_id=client_id, updated_by=str(user.id))
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    db: DbSession,
    user: User = Depends(supervisors),
) -> None:
    try:
        await client_service.delete_client(db, client_id)
    except ClientNotFoundError as exc:
        raise_not_found("Client", cause=exc)
    await db.commit()
    logger.info("Client deleted", client_id=client_id, deleted_by=str(user.id))
