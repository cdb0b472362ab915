"""Bearer token authentication and role checks for protected operations."""
from typing import Iterable

from app.core.security import TokenClaims, TokenError
from app.core.exceptions import (
    InsufficientRoleException,
    MissingTokenException,
    TokenExpiredException,
    TokenInvalidException,
)
from app.services.tokens import TokenIssuer


class AuthorizationGuard:
    def __init__(self, token_issuer: TokenIssuer):
        self._token_issuer = token_issuer

    @staticmethod
    def extract_bearer(raw_header_value: str | None) -> str | None:
        if not raw_header_value:
            return None
        scheme, _, token = raw_header_value.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    def authenticate(self, raw_header_value: str | None) -> TokenClaims:
        """
        Validate an ``Authorization`` header value.

        Raises:
            MissingTokenException: No header or not a bearer header
            TokenExpiredException: Signature valid but ``exp`` has passed
            TokenInvalidException: Bad signature, malformed or wrong token type
        """
        token = self.extract_bearer(raw_header_value)
        if token is None:
            raise MissingTokenException()

        result = self._token_issuer.decode_access_token(token)
        if result.error is TokenError.EXPIRED:
            raise TokenExpiredException()
        if not result.ok:
            raise TokenInvalidException()
        return result.claims

    def authorize(self, claims: TokenClaims, allowed_roles: Iterable[str]) -> None:
        allowed = {str(role) for role in allowed_roles}
        if claims.role not in allowed:
            raise InsufficientRoleException(data={"allowed_roles": sorted(allowed)})
