from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional
import re
from app.core.constants import AuthErrorDetails, UserRole

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not re.match(EMAIL_PATTERN, v):
        raise ValueError(AuthErrorDetails.EMAIL_INVALID)
    return v


def _check_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2 or len(v) > 50:
        raise ValueError(AuthErrorDetails.NAME_INVALID)
    return v


def _check_password(v: str) -> str:
    if len(v) < 6:
        raise ValueError(AuthErrorDetails.PASSWORD_TOO_SHORT)
    # bcrypt only looks at the first 72 bytes
    if len(v.encode("utf-8")) > 72:
        raise ValueError(AuthErrorDetails.PASSWORD_TOO_LONG)
    if not re.search(r'[A-Za-z]', v):
        raise ValueError(AuthErrorDetails.PASSWORD_MISSING_LETTER)
    if not re.search(r'[0-9]', v):
        raise ValueError(AuthErrorDetails.PASSWORD_MISSING_NUMBER)
    return v


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')
    name: str
    email: str
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UserLoginRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')
    email: str
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        return v


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)


class AdminCreateUserRequest(RegisterRequest):
    role: UserRole = UserRole.STANDARD


class AdminUpdateUserRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    model_config = ConfigDict(extra='forbid')
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    password: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v) if v is not None else v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        # An empty password means "keep the current one"
        if not v:
            return None
        return _check_password(v)


class UserData(BaseModel):
    model_config = ConfigDict(extra='ignore')
    id: int
    name: str
    email: str
    role: UserRole
    created_at: datetime | None = None


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(extra='ignore')
    accessToken: str


class LoginResponse(AccessTokenResponse):
    user: UserData
