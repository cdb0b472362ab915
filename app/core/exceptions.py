"""Application error taxonomy.

Every error carries a fixed HTTP status and a machine-readable ``code`` in its
data so that clients can tell an expired access token (renew) apart from an
invalid one (log out).
"""
from app.core.constants import AuthErrorDetails, ErrorCode, GeneralErrorDetails, UserErrorDetails
from app.core.handler import AppException


class CodedAppException(AppException):
    """AppException with a default message, status code and error code."""

    default_message: str = GeneralErrorDetails.INTERNAL_SERVER_ERROR
    default_status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None, status_code: int | None = None, data: dict | None = None):
        payload = {"code": self.code.value}
        payload.update(data or {})
        super().__init__(
            message=str(message or self.default_message),
            status_code=status_code or self.default_status_code,
            data=payload,
        )


class DuplicateEmailException(CodedAppException):
    default_message = AuthErrorDetails.EMAIL_ALREADY_EXISTS
    default_status_code = 400
    code = ErrorCode.DUPLICATE_EMAIL


class InvalidCredentialsException(CodedAppException):
    default_message = AuthErrorDetails.INVALID_CREDENTIALS
    default_status_code = 401
    code = ErrorCode.INVALID_CREDENTIALS


class AccountLockedException(CodedAppException):
    default_message = AuthErrorDetails.ACCOUNT_LOCKED
    default_status_code = 423
    code = ErrorCode.ACCOUNT_LOCKED


class MissingTokenException(CodedAppException):
    default_message = AuthErrorDetails.TOKEN_MISSING
    default_status_code = 401
    code = ErrorCode.MISSING_TOKEN


class TokenExpiredException(CodedAppException):
    default_message = AuthErrorDetails.TOKEN_EXPIRED
    default_status_code = 401
    code = ErrorCode.TOKEN_EXPIRED


class TokenInvalidException(CodedAppException):
    default_message = AuthErrorDetails.TOKEN_INVALID
    default_status_code = 401
    code = ErrorCode.TOKEN_INVALID


class InsufficientRoleException(CodedAppException):
    default_message = AuthErrorDetails.INSUFFICIENT_ROLE
    default_status_code = 403
    code = ErrorCode.INSUFFICIENT_ROLE


class UserNotFoundException(CodedAppException):
    default_message = UserErrorDetails.USER_NOT_FOUND
    default_status_code = 404
    code = ErrorCode.USER_NOT_FOUND


class ValidationException(CodedAppException):
    default_message = GeneralErrorDetails.VALIDATION_ERROR
    default_status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class InternalErrorException(CodedAppException):
    pass
