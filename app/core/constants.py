from enum import StrEnum


class UserRole(StrEnum):
    """Role assigned to a user account."""
    STANDARD = "user"
    ADMINISTRATOR = "admin"


class TokenType(StrEnum):
    """Value of the ``type`` claim carried by every issued token."""
    ACCESS = "access"
    REFRESH = "refresh"


class ErrorCode(StrEnum):
    """Machine-readable error codes returned in ``data.code`` of error responses."""
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    MISSING_TOKEN = "missing_token"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    INSUFFICIENT_ROLE = "insufficient_role"
    USER_NOT_FOUND = "user_not_found"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    HTTP_ERROR = "http_error"
    VALIDATION_ERROR = "validation_error"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


class AuthErrorDetails(StrEnum):
    """Authentication and authorization related error messages."""

    PASSWORD_TOO_SHORT = "Password must be at least 6 characters long"
    PASSWORD_TOO_LONG = "Password must be at most 72 bytes long"
    PASSWORD_MISSING_LETTER = "Password must contain at least one letter"
    PASSWORD_MISSING_NUMBER = "Password must contain at least one number"
    NAME_INVALID = "Name must be between 2 and 50 characters"
    EMAIL_INVALID = "Invalid email format"

    EMAIL_ALREADY_EXISTS = "Email already registered"
    INVALID_CREDENTIALS = "Invalid email or password"
    ACCOUNT_LOCKED = "Account is temporarily locked due to multiple failed login attempts"

    RATE_LIMIT_EXCEEDED_LOGIN = "Too many login attempts. Please try again later"
    RATE_LIMIT_EXCEEDED_REGISTER = "Too many registration attempts. Please try again later"

    TOKEN_MISSING = "Authentication token is required"
    TOKEN_EXPIRED = "Token has expired"
    TOKEN_INVALID = "Invalid token"
    REFRESH_TOKEN_MISSING = "Unauthorized - no refresh token"
    REFRESH_TOKEN_INVALID = "Invalid or expired refresh token"
    REFRESH_TOKEN_EXPIRED = "Refresh token has expired"
    INSUFFICIENT_ROLE = "You do not have permission to perform this action"


class UserErrorDetails(StrEnum):
    """User management related error messages."""

    USER_NOT_FOUND = "User not found"
    CANNOT_DELETE_SELF = "You cannot delete your own account"


class GeneralErrorDetails(StrEnum):
    """General application error messages."""

    INTERNAL_SERVER_ERROR = "An internal server error occurred"
    VALIDATION_ERROR = "Validation error"
    NOT_FOUND = "Resource not found"
    SERVICE_UNAVAILABLE = "Service temporarily unavailable"
