"""
Contact Service

Owns contact records. Every operation takes the caller's identity (the
owner id extracted from a verified token) as its first argument and scopes
every read and write to it, so a contact owned by someone else behaves
exactly like a contact that does not exist.

Lifecycle:
- create:  new active row
- update:  in place, owner never changes
- delete:  soft delete (is_deleted + deleted_at), row retained
- restore: clears the soft-delete state
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database import run_with_timeout
from database.models import ACTIVE_EMAIL_INDEX, ContactDB
from models.schemas import ContactInput
from services import query_engine
from services.errors import Outcome
from services.query_engine import ContactQuery, PagedResult

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_TIMEOUT = 5.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ContactResult:
    """Contact on success, otherwise the business-rule failure"""
    contact: Optional[ContactDB] = None
    error: Optional[Outcome] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_fields(data: ContactInput) -> dict:
    """Trim text fields and lower-case the email"""
    return {
        "first_name": data.first_name.strip(),
        "last_name": data.last_name.strip(),
        "email": str(data.email).strip().lower(),
        "phone_number": _clean(data.phone_number),
        "birth_date": data.birth_date,
        "address": _clean(data.address),
        "notes": _clean(data.notes),
    }


class ContactService:
    """
    Owner-scoped contact store.

    Usage:
        service = ContactService(db)
        page = await service.list_contacts(user.id, page=2, page_size=5)
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        timeout: float = DEFAULT_OPERATION_TIMEOUT,
    ):
        self.db = db
        self.clock = clock
        self.timeout = timeout

    # ==================== READS ====================

    async def list_contacts(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = query_engine.DEFAULT_PAGE_SIZE,
        sort_by: Optional[str] = None,
        sort_descending: bool = False,
        search: Optional[str] = None,
    ) -> PagedResult[ContactDB]:
        """List the owner's active contacts"""
        query = ContactQuery.build(page, page_size, sort_by, sort_descending, search)
        return await run_with_timeout(
            self._list(query_engine.owned_by(owner_id, deleted=False), query),
            self.timeout,
            "contacts.list",
        )

    async def list_deleted_contacts(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = query_engine.DEFAULT_PAGE_SIZE,
        sort_by: Optional[str] = None,
        sort_descending: bool = False,
        search: Optional[str] = None,
    ) -> PagedResult[ContactDB]:
        """List the owner's soft-deleted contacts"""
        query = ContactQuery.build(page, page_size, sort_by, sort_descending, search)
        return await run_with_timeout(
            self._list(query_engine.owned_by(owner_id, deleted=True), query),
            self.timeout,
            "contacts.list_deleted",
        )

    async def _list(self, predicate, query: ContactQuery) -> PagedResult[ContactDB]:
        filtered = query_engine.filtered_statement(predicate, query)

        total_count = (await self.db.execute(query_engine.count_statement(filtered))).scalar_one()
        result = await self.db.execute(query_engine.page_statement(filtered, query))
        items = result.scalars().all()

        return query_engine.build_page(items, total_count, query)

    async def get_contact(
        self,
        owner_id: str,
        contact_id: int,
        include_deleted: bool = False,
    ) -> Optional[ContactDB]:
        """
        Get one of the owner's contacts.

        Returns None when the id does not exist, belongs to another owner,
        or is soft-deleted (unless include_deleted is set).
        """
        deleted = None if include_deleted else False
        return await run_with_timeout(
            self._find(owner_id, contact_id, deleted),
            self.timeout,
            "contacts.get",
        )

    async def _find(self, owner_id: str, contact_id: int, deleted: Optional[bool]) -> Optional[ContactDB]:
        stmt = select(ContactDB).where(
            ContactDB.id == contact_id,
            query_engine.owned_by(owner_id, deleted=deleted),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== WRITES ====================

    async def create_contact(self, owner_id: str, data: ContactInput) -> ContactResult:
        return await run_with_timeout(
            self._create(owner_id, data), self.timeout, "contacts.create"
        )

    async def _create(self, owner_id: str, data: ContactInput) -> ContactResult:
        if not owner_id:
            raise ValueError("owner_id is required")

        contact = ContactDB(
            owner_id=owner_id,
            created_at=self.clock(),
            is_deleted=False,
            **normalize_fields(data),
        )
        self.db.add(contact)

        if not await self._commit():
            logger.info(f"Duplicate contact email rejected for user {owner_id}")
            return ContactResult(error=Outcome.DUPLICATE_EMAIL)

        logger.info(f"Contact {contact.id} created for user {owner_id}")
        return ContactResult(contact=contact)

    async def update_contact(self, owner_id: str, contact_id: int, data: ContactInput) -> ContactResult:
        return await run_with_timeout(
            self._update(owner_id, contact_id, data), self.timeout, "contacts.update"
        )

    async def _update(self, owner_id: str, contact_id: int, data: ContactInput) -> ContactResult:
        contact = await self._find(owner_id, contact_id, deleted=False)
        if contact is None:
            return ContactResult(error=Outcome.NOT_FOUND)

        for key, value in normalize_fields(data).items():
            setattr(contact, key, value)
        contact.updated_at = self.clock()

        if not await self._commit():
            return ContactResult(error=Outcome.DUPLICATE_EMAIL)

        logger.info(f"Contact {contact_id} updated by user {owner_id}")
        return ContactResult(contact=contact)

    async def delete_contact(self, owner_id: str, contact_id: int) -> bool:
        """Soft delete. False when the owner has no such active contact."""
        return await run_with_timeout(
            self._delete(owner_id, contact_id), self.timeout, "contacts.delete"
        )

    async def _delete(self, owner_id: str, contact_id: int) -> bool:
        contact = await self._find(owner_id, contact_id, deleted=False)
        if contact is None:
            return False

        contact.is_deleted = True
        contact.deleted_at = self.clock()
        await self.db.commit()

        logger.info(f"Contact {contact_id} deleted by user {owner_id}")
        return True

    async def restore_contact(self, owner_id: str, contact_id: int) -> ContactResult:
        """Reactivate one of the owner's soft-deleted contacts"""
        return await run_with_timeout(
            self._restore(owner_id, contact_id), self.timeout, "contacts.restore"
        )

    async def _restore(self, owner_id: str, contact_id: int) -> ContactResult:
        contact = await self._find(owner_id, contact_id, deleted=True)
        if contact is None:
            return ContactResult(error=Outcome.NOT_FOUND)

        contact.is_deleted = False
        contact.deleted_at = None
        contact.updated_at = self.clock()

        if not await self._commit():
            logger.info(f"Restore of contact {contact_id} blocked by an active duplicate email")
            return ContactResult(error=Outcome.DUPLICATE_EMAIL)

        logger.info(f"Contact {contact_id} restored by user {owner_id}")
        return ContactResult(contact=contact)

    async def _commit(self) -> bool:
        """Commit the unit of work; False when the active-email index rejected it"""
        try:
            await self.db.commit()
            return True
        except IntegrityError as e:
            await self.db.rollback()
            if ACTIVE_EMAIL_INDEX in str(e.orig):
                return False
            raise
