"""
Contact Manager - SQLAlchemy Database Models

Users own contacts through an explicit owner_id column. There are no
relationship collections: contacts are always loaded by an owner-scoped query.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Date, DateTime,
    ForeignKey, Index, func
)

from database.connection import Base


# ==================== HELPER FUNCTIONS ====================

def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==================== USERS ====================

class UserDB(Base):
    """
    Registered account.

    Holds both the authentication fields and the profile fields. Email is
    unique case-insensitively through normalized_email.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False)
    normalized_email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<UserDB id={self.id}>"


# ==================== CONTACTS ====================

class ContactDB(Base):
    """
    A contact record belonging to exactly one user.

    Soft-deleted rows keep their data with is_deleted set and deleted_at
    stamped; they stay out of the active-email uniqueness index.
    """
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=True)
    birth_date = Column(Date, nullable=True)
    address = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_contacts_owner_name', 'owner_id', 'last_name', 'first_name'),
    )

    def __repr__(self) -> str:
        return f"<ContactDB id={self.id} owner_id={self.owner_id}>"


ACTIVE_EMAIL_INDEX = "ux_contacts_owner_email_active"

# One active contact per (owner, email); deleted rows are exempt
Index(
    ACTIVE_EMAIL_INDEX,
    ContactDB.owner_id,
    func.lower(ContactDB.email),
    unique=True,
    postgresql_where=ContactDB.is_deleted.is_(False),
    sqlite_where=ContactDB.is_deleted.is_(False),
)
