"""
Contacts API

Every endpoint requires a bearer token. The owner of every read and write is
the verified token subject; contacts of other users answer 404 exactly like
ids that do not exist.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import get_current_user_id
from models.schemas import (
    ContactCreate, ContactResponse, ContactUpdate, DeletedContactResponse, PagedResponse
)
from services.audit import AuditAction, log_contact_action
from services.contacts import ContactResult, ContactService
from services.errors import Outcome
from services.query_engine import DEFAULT_PAGE_SIZE, PagedResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/contacts", tags=["Contacts"])

CONTACT_NOT_FOUND = "Contact not found"
DUPLICATE_CONTACT_EMAIL = "A contact with this email already exists"


def get_contact_service(request: Request, db: AsyncSession = Depends(get_db)) -> ContactService:
    return ContactService(
        db,
        timeout=request.app.state.settings.DB_OPERATION_TIMEOUT_SECONDS,
    )


class ListingParams:
    """Query string of the listing endpoints"""

    def __init__(
        self,
        page: int = Query(1, description="1-based page number"),
        page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize", description="Items per page (max 100)"),
        sort_by: Optional[str] = Query(None, alias="sortBy", description="name, birthdate, email or createdat"),
        sort_descending: bool = Query(False, alias="sortDescending"),
        search: Optional[str] = Query(None, description="Case-insensitive match on name, email or phone"),
    ):
        self.page = page
        self.page_size = page_size
        self.sort_by = sort_by
        self.sort_descending = sort_descending
        self.search = search

    def as_kwargs(self) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "sort_by": self.sort_by,
            "sort_descending": self.sort_descending,
            "search": self.search,
        }


def _page_response(result: PagedResult, item_model) -> PagedResponse:
    return PagedResponse[item_model](
        items=[item_model.model_validate(item) for item in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_next_page=result.has_next_page,
        has_previous_page=result.has_previous_page,
    )


def _raise_for(result: ContactResult):
    if result.error == Outcome.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CONTACT_NOT_FOUND)
    if result.error == Outcome.DUPLICATE_EMAIL:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_CONTACT_EMAIL)


# ==================== LISTING ====================

@router.get("", response_model=PagedResponse[ContactResponse])
async def list_contacts(
    params: ListingParams = Depends(),
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    """List the caller's contacts with search, sorting and pagination"""
    result = await service.list_contacts(owner_id, **params.as_kwargs())
    return _page_response(result, ContactResponse)


@router.get("/deleted", response_model=PagedResponse[DeletedContactResponse])
async def list_deleted_contacts(
    params: ListingParams = Depends(),
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    """List the caller's soft-deleted contacts"""
    result = await service.list_deleted_contacts(owner_id, **params.as_kwargs())
    return _page_response(result, DeletedContactResponse)


# ==================== SINGLE CONTACT ====================

@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: int,
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    contact = await service.get_contact(owner_id, contact_id)
    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CONTACT_NOT_FOUND)
    return contact


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact_data: ContactCreate,
    request: Request,
    response: Response,
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    result = await service.create_contact(owner_id, contact_data)
    _raise_for(result)

    log_contact_action(AuditAction.CONTACT_CREATE, result.contact.id, user_id=owner_id, request=request)
    response.headers["Location"] = str(request.url_for("get_contact", contact_id=result.contact.id))
    return result.contact


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    contact_data: ContactUpdate,
    request: Request,
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    result = await service.update_contact(owner_id, contact_id, contact_data)
    _raise_for(result)

    log_contact_action(AuditAction.CONTACT_UPDATE, contact_id, user_id=owner_id, request=request)
    return result.contact


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: int,
    request: Request,
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    """Soft delete: the contact moves to the deleted listing"""
    if not await service.delete_contact(owner_id, contact_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CONTACT_NOT_FOUND)

    log_contact_action(AuditAction.CONTACT_DELETE, contact_id, user_id=owner_id, request=request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{contact_id}/restore", response_model=DeletedContactResponse)
async def restore_contact(
    contact_id: int,
    request: Request,
    owner_id: str = Depends(get_current_user_id),
    service: ContactService = Depends(get_contact_service),
):
    """Bring a soft-deleted contact back into the active listing"""
    result = await service.restore_contact(owner_id, contact_id)
    _raise_for(result)

    log_contact_action(AuditAction.CONTACT_RESTORE, contact_id, user_id=owner_id, request=request)
    return result.contact
