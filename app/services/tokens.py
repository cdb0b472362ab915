"""Access and refresh token issuance, rotation and renewal."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.config import Settings
from app.core.constants import AuthErrorDetails, TokenType
from app.core.exceptions import TokenExpiredException, TokenInvalidException, UserNotFoundException
from app.core.security import Clock, TokenDecodeResult, TokenError, decode_token, encode_token, utcnow
from app.interfaces.refresh_token import IRefreshTokenRepository
from app.interfaces.user import IUserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """
    Mints signed tokens and owns the server-side refresh token records.

    Access tokens carry ``{sub, role, exp}`` and are never stored. Refresh
    tokens carry ``{sub, exp}`` only, are signed with a separate secret and
    are valid only while their record exists in the store, so logout and a
    newer login can revoke them before they expire.
    """

    def __init__(
        self,
        settings: Settings,
        refresh_tokens: IRefreshTokenRepository,
        users: IUserRepository,
        clock: Clock = utcnow,
    ):
        self._settings = settings
        self._refresh_tokens = refresh_tokens
        self._users = users
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self._settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def issue_access_token(self, user_id: int, role: str) -> IssuedToken:
        now = self._clock()
        expires_at = now + self.access_ttl
        token = encode_token(
            subject=user_id,
            token_type=TokenType.ACCESS.value,
            expires_at=expires_at,
            secret=self._settings.JWT_SECRET,
            algorithm=self._settings.ALGORITHM,
            issued_at=now,
            extra_claims={"role": str(role)},
        )
        return IssuedToken(token=token, issued_at=now, expires_at=expires_at)

    def issue_refresh_token(self, user_id: int) -> IssuedToken:
        # No role claim: the role is always re-read from the store on renewal.
        now = self._clock()
        expires_at = now + self.refresh_ttl
        token = encode_token(
            subject=user_id,
            token_type=TokenType.REFRESH.value,
            expires_at=expires_at,
            secret=self._settings.JWT_REFRESH_SECRET,
            algorithm=self._settings.ALGORITHM,
            issued_at=now,
        )
        return IssuedToken(token=token, issued_at=now, expires_at=expires_at)

    def decode_access_token(self, token: str) -> TokenDecodeResult:
        return decode_token(
            token,
            secret=self._settings.JWT_SECRET,
            algorithm=self._settings.ALGORITHM,
            expected_type=TokenType.ACCESS.value,
            now=self._clock(),
        )

    def decode_refresh_token(self, token: str) -> TokenDecodeResult:
        return decode_token(
            token,
            secret=self._settings.JWT_REFRESH_SECRET,
            algorithm=self._settings.ALGORITHM,
            expected_type=TokenType.REFRESH.value,
            now=self._clock(),
        )

    async def rotate_on_login(self, user_id: int) -> IssuedToken:
        """Replace every stored refresh token of ``user_id`` with a single new one."""
        issued = self.issue_refresh_token(user_id)
        await self._refresh_tokens.replace_for_user(
            user_id=user_id,
            token=issued.token,
            expires_at=issued.expires_at,
            issued_at=issued.issued_at,
        )
        logger.info("Refresh token rotated for user_id=%s", user_id)
        return issued

    async def renew_access_token(self, presented_refresh_token: str) -> IssuedToken:
        """
        Exchange a refresh token for a new access token.

        The refresh token itself is left untouched: not rotated and not
        re-expired.

        Raises:
            TokenInvalidException: Bad signature or no stored record (403)
            TokenExpiredException: Expired by claim or by stored record (403)
            UserNotFoundException: The owning user no longer exists (404)
        """
        result = self.decode_refresh_token(presented_refresh_token)
        if result.error is TokenError.EXPIRED:
            raise TokenExpiredException(AuthErrorDetails.REFRESH_TOKEN_EXPIRED, status_code=403)
        if not result.ok:
            raise TokenInvalidException(AuthErrorDetails.REFRESH_TOKEN_INVALID, status_code=403)

        record = await self._refresh_tokens.get_by_token(presented_refresh_token)
        if record is None or record["user_id"] != result.claims.subject:
            logger.info("Refresh rejected for user_id=%s: no stored record", result.claims.subject)
            raise TokenInvalidException(AuthErrorDetails.REFRESH_TOKEN_INVALID, status_code=403)
        if record["expires_at"] <= self._clock():
            raise TokenExpiredException(AuthErrorDetails.REFRESH_TOKEN_EXPIRED, status_code=403)

        user = await self._users.get_by_id(record["user_id"])
        if user is None:
            raise UserNotFoundException()

        logger.info("Access token renewed for user_id=%s", user["id"])
        return self.issue_access_token(user["id"], user["role"])

    async def revoke(self, token: str) -> bool:
        """Delete the stored record of a refresh token."""
        return await self._refresh_tokens.delete_by_token(token)

    async def revoke_all(self, user_id: int) -> int:
        """Delete every stored refresh token of a user."""
        removed = await self._refresh_tokens.delete_for_user(user_id)
        logger.info("Revoked %s refresh token(s) for user_id=%s", removed, user_id)
        return removed
