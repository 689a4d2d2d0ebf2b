"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authorization Errors
class AuthenticationError(DomainError):
    """Actor identity missing"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class PermissionDeniedError(DomainError):
    """Actor cannot act on this request or step"""
    error_code = "PERMISSION_DENIED"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class FormValidationError(ValidationError):
    """Submitted form data does not satisfy the template"""
    error_code = "FORM_VALIDATION_ERROR"

    def __init__(self, message: str, errors: Dict[str, str]):
        super().__init__(message, details={"errors": errors})
        self.errors = errors


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class RequestNotFoundError(NotFoundError):
    """Request not found"""
    error_code = "REQUEST_NOT_FOUND"


class TemplateNotFoundError(NotFoundError):
    """Form template not found"""
    error_code = "TEMPLATE_NOT_FOUND"


class WorkflowNotFoundError(NotFoundError):
    """Workflow template not found"""
    error_code = "WORKFLOW_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Conditional update lost against a concurrent writer"""
    error_code = "CONCURRENCY_CONFLICT"


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


# Infrastructure Errors
class PersistenceError(DomainError):
    """Backing store failure"""
    error_code = "PERSISTENCE_ERROR"
    http_status = 503


class NotificationError(DomainError):
    """Notification enqueue failure (logged, never surfaced by transitions)"""
    error_code = "NOTIFICATION_ERROR"
    http_status = 502
