"""Dependencies for FastAPI endpoints."""
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncGenerator, Callable
from fastapi import Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from limits import parse_many
from app.core.config import Settings
from app.core.constants import AuthErrorDetails, ErrorCode
from app.core.handler import AppException
from app.core.security import Clock, TokenClaims
from app.interfaces.refresh_token import IRefreshTokenRepository
from app.interfaces.user import IUserRepository
from app.repositories.memory import MemoryRefreshTokenRepository, MemoryUserRepository
from app.repositories.refresh_token_repository import RefreshTokenRepository
from app.repositories.user_repository import UserRepository
from app.services.auth import AuthService
from app.services.authorization import AuthorizationGuard
from app.services.credentials import CredentialVerifier
from app.services.lockout import LockoutPolicy
from app.services.tokens import TokenIssuer
from app.services.users import UserAdminService


def create_limiter() -> Limiter:
    # Can be changed to Redis later: storage_uri="redis://localhost:6379"
    return Limiter(key_func=get_remote_address, storage_uri="memory://")


async def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_clock(request: Request) -> Clock:
    return request.app.state.clock


@dataclass
class CredentialRepositories:
    users: IUserRepository
    refresh_tokens: IRefreshTokenRepository


async def get_repositories(request: Request) -> AsyncGenerator[CredentialRepositories, None]:
    """
    Yield the credential store for this request.

    The PostgreSQL store gets one session from the application's pool per
    request; the memory store is shared by every request of the application.
    """
    state = request.app.state
    if state.settings.CREDENTIAL_STORE == "memory":
        yield CredentialRepositories(
            users=MemoryUserRepository(state.memory_store),
            refresh_tokens=MemoryRefreshTokenRepository(state.memory_store),
        )
        return

    async for session in state.db_manager.get_session():
        yield CredentialRepositories(
            users=UserRepository(session),
            refresh_tokens=RefreshTokenRepository(session),
        )


async def get_token_issuer(
    settings: Settings = Depends(get_app_settings),
    clock: Clock = Depends(get_clock),
    repositories: CredentialRepositories = Depends(get_repositories),
) -> TokenIssuer:
    return TokenIssuer(settings, repositories.refresh_tokens, repositories.users, clock=clock)


async def get_credential_verifier(settings: Settings = Depends(get_app_settings)) -> CredentialVerifier:
    return CredentialVerifier(rounds=settings.BCRYPT_ROUNDS)


async def get_auth_service(
    settings: Settings = Depends(get_app_settings),
    clock: Clock = Depends(get_clock),
    repositories: CredentialRepositories = Depends(get_repositories),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    credential_verifier: CredentialVerifier = Depends(get_credential_verifier),
) -> AuthService:
    lockout_policy = LockoutPolicy(
        max_attempts=settings.MAX_FAILED_LOGIN_ATTEMPTS,
        lock_duration=timedelta(minutes=settings.LOCKOUT_MINUTES),
    )
    return AuthService(
        repositories.users,
        token_issuer,
        credential_verifier,
        lockout_policy,
        clock=clock,
    )


async def get_user_admin_service(
    repositories: CredentialRepositories = Depends(get_repositories),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    credential_verifier: CredentialVerifier = Depends(get_credential_verifier),
) -> UserAdminService:
    return UserAdminService(repositories.users, token_issuer, credential_verifier)


async def get_authorization_guard(token_issuer: TokenIssuer = Depends(get_token_issuer)) -> AuthorizationGuard:
    return AuthorizationGuard(token_issuer)


async def get_current_claims(
    request: Request,
    guard: AuthorizationGuard = Depends(get_authorization_guard),
) -> TokenClaims:
    """
    Authenticate the request from its ``Authorization: Bearer`` header.

    Raises:
        MissingTokenException, TokenExpiredException, TokenInvalidException (all 401)
    """
    return guard.authenticate(request.headers.get("Authorization"))


def require_roles(*roles: str) -> Callable:
    """Dependency factory: authenticate, then require one of ``roles``."""

    async def role_checker(
        claims: TokenClaims = Depends(get_current_claims),
        guard: AuthorizationGuard = Depends(get_authorization_guard),
    ) -> TokenClaims:
        guard.authorize(claims, roles)
        return claims

    return role_checker


def create_rate_limit_dependency(
    setting_name: str,
    period: str,
    error_message: str
) -> Callable:
    """
    Factory function to create a rate limiting dependency using slowapi.

    Args:
        setting_name: Settings field holding the number of allowed requests
        period: limits period name ("minute", "hour", ...)
        error_message: Error message to return when rate limit exceeded

    Returns:
        Dependency function that can be used with FastAPI Depends()
    """

    async def rate_limit_check(request: Request) -> None:
        """
        Check rate limit for the request using slowapi.

        Raises AppException with 429 status if rate limit exceeded.
        Returns None if within limit (allows request to proceed).
        """
        settings = request.app.state.settings
        if not settings.RATE_LIMIT_ENABLED:
            return None

        app_limiter = request.app.state.limiter
        key = get_remote_address(request)
        rate_limit = parse_many(f"{getattr(settings, setting_name)}/{period}")[0]

        if not app_limiter._limiter.hit(rate_limit, key):
            raise AppException(
                message=error_message,
                status_code=429,
                data={"code": ErrorCode.RATE_LIMITED.value}
            )

        return None

    return rate_limit_check


check_login_rate_limit = create_rate_limit_dependency(
    "LOGIN_RATE_LIMIT_PER_MINUTE", "minute", AuthErrorDetails.RATE_LIMIT_EXCEEDED_LOGIN
)
check_register_rate_limit = create_rate_limit_dependency(
    "REGISTER_RATE_LIMIT_PER_HOUR", "hour", AuthErrorDetails.RATE_LIMIT_EXCEEDED_REGISTER
)
