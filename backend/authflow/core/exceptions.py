"""
AuthFlow Exception Hierarchy

All exceptions include code, message, and details for logging, plus the
HTTP status the API boundary answers with.

Exception Hierarchy:
    AuthFlowError
    ├── ValidationError
    ├── ConflictError
    ├── InvalidOrExpiredError
    ├── InvalidCredentialsError
    ├── UnverifiedAccountError
    ├── NotFoundError
    ├── DependencyError
    ├── IllegalTransitionError
    └── NotAuthenticatedError
"""
from typing import Optional, Dict, Any


class AuthFlowError(Exception):
    """
    Base exception for all AuthFlow errors.

    Attributes:
        message: Human-readable error description (safe to return to clients)
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging (never returned to clients)
        status_code: HTTP status used at the API boundary
    """

    default_code: str = "AUTHFLOW_ERROR"
    default_message: str = "Request failed"
    status_code: int = 400

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AuthFlowError):
    """Missing or malformed input."""
    default_code = "VALIDATION_FAILED"
    default_message = "All fields are required"


class ConflictError(AuthFlowError):
    """An account with this email already exists."""
    default_code = "ACCOUNT_EXISTS"
    default_message = "User already exists"


class InvalidOrExpiredError(AuthFlowError):
    """
    Bad or expired one-time secret.

    Wrong and expired secrets deliberately share this error.
    """
    default_code = "SECRET_INVALID_OR_EXPIRED"
    default_message = "Invalid or expired token"


class InvalidCredentialsError(AuthFlowError):
    """
    Login rejected.

    Unknown email and wrong password deliberately share one message.
    """
    default_code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class UnverifiedAccountError(AuthFlowError):
    """Login refused because the email address is not verified yet."""
    default_code = "ACCOUNT_NOT_VERIFIED"
    default_message = "Email address has not been verified"


class NotFoundError(AuthFlowError):
    """No such account."""
    default_code = "ACCOUNT_NOT_FOUND"
    default_message = "User not found"


class DependencyError(AuthFlowError):
    """Account store or notification sender failure."""
    default_code = "DEPENDENCY_FAILED"
    default_message = "A backing service failed, please try again"

    def __init__(
        self,
        message: Optional[str] = None,
        dependency: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["dependency"] = dependency
        super().__init__(message, details=details, **kwargs)


class IllegalTransitionError(AuthFlowError):
    """Account state does not allow the requested transition."""
    default_code = "ILLEGAL_TRANSITION"
    default_message = "Operation not allowed in the current account state"

    def __init__(
        self,
        message: Optional[str] = None,
        from_state: Optional[str] = None,
        transition: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "from_state": from_state,
            "transition": transition,
        })
        super().__init__(message, details=details, **kwargs)


class NotAuthenticatedError(AuthFlowError):
    """Missing, invalid or expired session token."""
    default_code = "NOT_AUTHENTICATED"
    default_message = "Unauthorized - invalid or missing session token"
    status_code = 401
