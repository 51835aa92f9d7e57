# ============================================================================
# EXCEPTIONS
# ============================================================================
# STATUS: Shared - used by every layer
# PURPOSE: Exception hierarchy separating contract violations from business failures
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues, mapped to HTTP responses)

An Enforcement Gate denial is NOT an exception. It is a normal decision
value (see core.models.access.AuthorizationDecision).

Exports:
    ContractViolationError, BusinessLogicError, ValidationError,
    NotFoundError, AuthenticationError, PermissionDeniedError, DatabaseError,
    BoundaryLoadError, ConfigurationError
"""

from typing import Any, Dict, Optional


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.

    Examples:
        - Repository receives a naive datetime instead of an aware UTC one
        - Service returns a dict instead of a TemporaryGrant
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    Subclasses carry the error code and HTTP status the API layer
    returns, so translation happens in exactly one place.
    """

    error_code: str = "BUSINESS_ERROR"
    http_status: int = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        """Error body for API responses."""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(BusinessLogicError):
    """
    Business validation failed.

    Note: This is different from ContractViolationError.
    This is for business rule validation, not type contracts.

    Examples:
        - expires_at is not in the future
        - Required field missing from a grant request
        - User already holds an active temporary grant for the region
    """
    error_code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(BusinessLogicError):
    """
    Requested resource does not exist.

    Examples:
        - Grant id never issued
        - Region id unknown or inactive
    """
    error_code = "RESOURCE_NOT_FOUND"
    http_status = 404


class AuthenticationError(BusinessLogicError):
    """
    Request carries no caller identity.

    Examples:
        - X-User-Id header missing or blank
    """
    error_code = "UNAUTHENTICATED"
    http_status = 401


class PermissionDeniedError(BusinessLogicError):
    """
    Caller lacks the role required for a grant-management operation.

    Examples:
        - A field engineer tries to issue a temporary grant
    """
    error_code = "PERMISSION_DENIED"
    http_status = 403


class DatabaseError(BusinessLogicError):
    """
    Database operation failures.

    Examples:
        - Connection lost
        - Query timeout
        - Transaction rollback
    """
    error_code = "DATABASE_ERROR"
    http_status = 503


class BoundaryLoadError(Exception):
    """
    Reference boundary dataset missing, unreachable, or malformed.

    Logged at startup. The boundary index then runs in fail-open mode,
    so this is never fatal for the service.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing required environment variables
        - Resolver cache TTL longer than the client poll interval
    """
    pass
