"""
Audit Logging for the Contact Manager

Tracks key actions for traceability:
- Authentication (register, login, failed login)
- Contact lifecycle (create, update, delete, restore)

Entries go to the dedicated "audit" logger as structured records, so they
follow the process log pipeline (JSON lines in production). Passwords,
hashes and tokens are never part of an entry.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from logging_config import get_request_id

logger = logging.getLogger("audit")


# ==================== ENUMS ====================

class AuditAction(str, Enum):
    """All auditable actions in the system"""

    # Authentication
    USER_REGISTER = "user.register"
    USER_REGISTER_FAILED = "user.register_failed"
    USER_LOGIN = "user.login"
    USER_LOGIN_FAILED = "user.login_failed"

    # Contacts
    CONTACT_CREATE = "contact.create"
    CONTACT_UPDATE = "contact.update"
    CONTACT_DELETE = "contact.delete"
    CONTACT_RESTORE = "contact.restore"


class ResourceType(str, Enum):
    """Resource types for audit logging"""
    AUTH = "auth"
    CONTACT = "contact"


# ==================== MODELS ====================

class AuditLogEntry(BaseModel):
    """Audit log entry model"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None

    model_config = ConfigDict(extra="allow")


# ==================== HELPERS ====================

def _get_client_ip(request) -> Optional[str]:
    """Extract client IP from request, honouring proxy headers"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if getattr(request, "client", None):
        return request.client.host
    return None


def log_action(
    action: Union[AuditAction, str],
    resource_type: Union[ResourceType, str],
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    resource_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Any] = None,
    success: bool = True,
    error_message: Optional[str] = None
) -> AuditLogEntry:
    """
    Log an audit entry.

    Args:
        action: The action being performed
        resource_type: Type of resource affected
        user_id: ID of the user performing the action
        user_email: Email of the user (for display)
        resource_id: ID of the affected resource
        details: Additional details about the action
        request: FastAPI Request object (IP and user agent are extracted)
        success: Whether the action succeeded
        error_message: Error message if action failed

    Returns:
        The created audit log entry
    """
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = _get_client_ip(request)
        user_agent = request.headers.get("user-agent", "")[:500]

    action_str = action.value if isinstance(action, AuditAction) else action
    resource_type_str = resource_type.value if isinstance(resource_type, ResourceType) else resource_type

    entry = AuditLogEntry(
        user_id=user_id,
        user_email=user_email,
        action=action_str,
        resource_type=resource_type_str,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent,
        request_id=get_request_id(),
        success=success,
        error_message=error_message
    )

    log_level = logging.INFO if success else logging.WARNING
    logger.log(
        log_level,
        f"AUDIT: {action_str} on {resource_type_str}"
        f"{f'/{resource_id}' if resource_id is not None else ''}"
        f" by {user_id or 'anonymous'}"
        f"{f' - FAILED: {error_message}' if not success else ''}",
        extra={"audit": entry.model_dump()}
    )

    return entry


def log_auth_action(
    action: Union[AuditAction, str],
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Any] = None,
    success: bool = True,
    error_message: Optional[str] = None
) -> AuditLogEntry:
    """Convenience function for authentication-related logging"""
    return log_action(
        action=action,
        resource_type=ResourceType.AUTH,
        user_id=user_id,
        user_email=user_email,
        details=details,
        request=request,
        success=success,
        error_message=error_message
    )


def log_contact_action(
    action: Union[AuditAction, str],
    contact_id: Any,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Any] = None
) -> AuditLogEntry:
    """Convenience function for contact-related logging"""
    return log_action(
        action=action,
        resource_type=ResourceType.CONTACT,
        resource_id=contact_id,
        user_id=user_id,
        details=details,
        request=request
    )
