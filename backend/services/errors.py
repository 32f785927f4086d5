"""
Error taxonomy and typed outcomes shared by the auth and contact services.

Business-rule failures (duplicate email, bad credentials, missing contact)
are returned as Outcome values on result objects. Exceptions are reserved for
conditions the caller cannot act on as a business rule:

- ConfigurationError: fatal at startup
- InvalidTokenError: bearer token rejected at the request boundary
- TransientStorageError: storage timeout or connectivity failure, safe to retry
"""

from enum import Enum


class Outcome(str, Enum):
    """Business-rule failure codes returned by the services"""
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_FOUND = "not_found"


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""


class InvalidTokenError(Exception):
    """Token failed signature, issuer, audience, expiry or shape checks."""


class TransientStorageError(Exception):
    """
    Storage did not answer in time or the connection failed.

    Distinct from NOT_FOUND: the operation may succeed when retried.
    """

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason
