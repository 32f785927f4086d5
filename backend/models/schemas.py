import re
from datetime import date, datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

PHONE_PATTERN = re.compile(r"^[\d\s+\-()]*$")
EMAIL_MAX_LENGTH = 255


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def check_email_length(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must not exceed {EMAIL_MAX_LENGTH} characters")
    return value


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(ApiModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ==================== AUTH ====================

class RegisterRequest(RequestModel):
    """Registration request body"""
    email: EmailStr
    password: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def email_length(cls, value: str) -> str:
        return check_email_length(value)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        problems = []
        if len(value) < 8:
            problems.append("at least 8 characters")
        if not re.search(r"[A-Z]", value):
            problems.append("an uppercase letter")
        if not re.search(r"[a-z]", value):
            problems.append("a lowercase letter")
        if not re.search(r"\d", value):
            problems.append("a digit")
        if not re.search(r"[^A-Za-z0-9]", value):
            problems.append("a non-alphanumeric character")
        if problems:
            raise ValueError(f"Password must contain {', '.join(problems)}")
        return value


class LoginRequest(RequestModel):
    """Login request body"""
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(ApiModel):
    """Result of register/login. Failed results carry only errors."""
    succeeded: bool
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    errors: Optional[List[str]] = None


class CurrentUserResponse(ApiModel):
    user_id: str
    email: str


# ==================== CONTACTS ====================

class ContactInput(RequestModel):
    """Fields accepted by create and update. The owner is never an input."""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(default=None, max_length=20)
    birth_date: Optional[date] = None
    address: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("email")
    @classmethod
    def email_length(cls, value: str) -> str:
        return check_email_length(value)

    @field_validator("phone_number")
    @classmethod
    def phone_format(cls, value: Optional[str]) -> Optional[str]:
        if value and not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number format")
        return value

    @field_validator("birth_date")
    @classmethod
    def birth_date_not_future(cls, value: Optional[date]) -> Optional[date]:
        if value is not None and value > utc_today():
            raise ValueError("Birth date cannot be in the future")
        return value


class ContactCreate(ContactInput):
    pass


class ContactUpdate(ContactInput):
    pass


class ContactResponse(ApiModel):
    """Contact as returned to its owner; owner_id is never exposed"""
    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class DeletedContactResponse(ContactResponse):
    """Trash view, includes the soft-delete state"""
    is_deleted: bool
    deleted_at: Optional[datetime] = None


class PagedResponse(ApiModel, Generic[T]):
    items: List[T]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class ErrorResponse(ApiModel):
    """Body of a rejected request (validation failures)"""
    succeeded: bool = False
    message: str
    errors: List[str] = Field(default_factory=list)
