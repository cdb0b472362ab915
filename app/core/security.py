"""Password hashing and JWT encoding primitives."""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str | None) -> bool:
    """Verify a plain password against a bcrypt hash. Malformed hashes never match."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TokenError(StrEnum):
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenClaims:
    """Validated claims of an access or refresh token."""

    subject: int
    token_type: str
    expires_at: datetime
    issued_at: datetime | None
    jti: str | None
    role: str | None = None


@dataclass(frozen=True)
class TokenDecodeResult:
    """Tagged result of a token decode: either ``claims`` or ``error`` is set."""

    claims: TokenClaims | None = None
    error: TokenError | None = None

    @property
    def ok(self) -> bool:
        return self.claims is not None

    @classmethod
    def success(cls, claims: TokenClaims) -> "TokenDecodeResult":
        return cls(claims=claims)

    @classmethod
    def failure(cls, error: TokenError) -> "TokenDecodeResult":
        return cls(error=error)


def encode_token(
    subject: int,
    token_type: str,
    expires_at: datetime,
    secret: str,
    algorithm: str,
    issued_at: datetime,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign a JWT carrying ``sub``, ``type``, ``exp``, ``iat`` and a random ``jti``."""
    payload: dict[str, Any] = {
        "sub": str(subject),
        "type": token_type,
        "exp": expires_at,
        "iat": issued_at,
        "jti": uuid4().hex,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(
    token: str,
    secret: str,
    algorithm: str,
    expected_type: str,
    now: datetime,
) -> TokenDecodeResult:
    """
    Verify a JWT signature and expiry without raising.

    Expiry is checked against ``now`` rather than the wall clock: a token is
    expired once ``now >= exp``.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"verify_exp": False},
        )
    except JWTError:
        return TokenDecodeResult.failure(TokenError.INVALID)

    if payload.get("type") != expected_type:
        return TokenDecodeResult.failure(TokenError.INVALID)

    try:
        subject = int(payload["sub"])
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError):
        return TokenDecodeResult.failure(TokenError.INVALID)

    if now >= expires_at:
        return TokenDecodeResult.failure(TokenError.EXPIRED)

    issued_at = payload.get("iat")
    return TokenDecodeResult.success(
        TokenClaims(
            subject=subject,
            token_type=payload["type"],
            expires_at=expires_at,
            issued_at=datetime.fromtimestamp(int(issued_at), tz=timezone.utc) if issued_at else None,
            jti=payload.get("jti"),
            role=payload.get("role"),
        )
    )
