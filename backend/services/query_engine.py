"""
Contact listing engine.

Turns listing parameters into a filtered, sorted, paginated SELECT over the
contacts table. Ownership and the soft-delete rule are an explicit predicate
(owned_by) that every contact query passes in; nothing is filtered
implicitly.

Sort keys:
- name       last name, then first name (default)
- birthdate  birth date, missing dates last
- email      email
- createdat  creation time
Ties fall back to the name ordering and finally the id, in the same
direction, so page boundaries are stable.
"""

import math
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from database.models import ContactDB

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT = "name"
SORT_KEYS = ("name", "birthdate", "email", "createdat")


@dataclass(frozen=True)
class ContactQuery:
    """Listing parameters after clamping"""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort_by: str = DEFAULT_SORT
    sort_descending: bool = False
    search: Optional[str] = None

    @classmethod
    def build(
        cls,
        page: Optional[int] = 1,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        sort_by: Optional[str] = None,
        sort_descending: bool = False,
        search: Optional[str] = None,
    ) -> "ContactQuery":
        """Clamp raw inputs: page >= 1, 1 <= page_size <= 100, unknown sort -> name"""
        page = page if page and page >= 1 else 1
        if not page_size or page_size < 1:
            page_size = DEFAULT_PAGE_SIZE
        elif page_size > MAX_PAGE_SIZE:
            page_size = MAX_PAGE_SIZE

        sort_key = (sort_by or "").strip().lower()
        if sort_key not in SORT_KEYS:
            sort_key = DEFAULT_SORT

        term = search.strip() if search else None
        return cls(
            page=page,
            page_size=page_size,
            sort_by=sort_key,
            sort_descending=bool(sort_descending),
            search=term or None,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class PagedResult(Generic[T]):
    items: List[T]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


# ==================== PREDICATES ====================

def owned_by(owner_id: str, deleted: Optional[bool] = False) -> ColumnElement:
    """
    Ownership predicate for every contact query.

    deleted=False selects active rows, True selects soft-deleted rows and
    None selects both.
    """
    if not owner_id:
        raise ValueError("owner_id is required")

    clause = ContactDB.owner_id == owner_id
    if deleted is None:
        return clause
    return and_(clause, ContactDB.is_deleted.is_(deleted))


def search_filter(term: str) -> ColumnElement:
    """Case-insensitive substring match on names, email and phone"""
    needle = term.lower()
    return or_(
        func.lower(ContactDB.first_name).contains(needle, autoescape=True),
        func.lower(ContactDB.last_name).contains(needle, autoescape=True),
        func.lower(ContactDB.email).contains(needle, autoescape=True),
        func.lower(ContactDB.phone_number).contains(needle, autoescape=True),
    )


def sort_columns(sort_by: str, descending: bool) -> List[ColumnElement]:
    name_keys = [func.lower(ContactDB.last_name), func.lower(ContactDB.first_name)]

    if sort_by == "birthdate":
        keys = [ContactDB.birth_date] + name_keys
    elif sort_by == "email":
        keys = [ContactDB.email] + name_keys
    elif sort_by == "createdat":
        keys = [ContactDB.created_at] + name_keys
    else:
        keys = list(name_keys)
    keys.append(ContactDB.id)

    ordered = [key.desc() if descending else key.asc() for key in keys]
    if sort_by == "birthdate":
        ordered[0] = ordered[0].nulls_last()
    return ordered


# ==================== STATEMENTS ====================

def filtered_statement(predicate: ColumnElement, query: ContactQuery) -> Select:
    stmt = select(ContactDB).where(predicate)
    if query.search:
        stmt = stmt.where(search_filter(query.search))
    return stmt


def count_statement(filtered: Select) -> Select:
    return select(func.count()).select_from(filtered.order_by(None).subquery())


def page_statement(filtered: Select, query: ContactQuery) -> Select:
    return (
        filtered
        .order_by(*sort_columns(query.sort_by, query.sort_descending))
        .offset(query.offset)
        .limit(query.page_size)
    )


def build_page(items: Sequence[T], total_count: int, query: ContactQuery) -> PagedResult[T]:
    return PagedResult(
        items=list(items),
        total_count=total_count,
        page=query.page,
        page_size=query.page_size,
    )
