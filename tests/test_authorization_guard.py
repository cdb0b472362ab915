import unittest

from app.core.constants import ErrorCode, UserRole
from app.core.exceptions import (
    InsufficientRoleException,
    MissingTokenException,
    TokenExpiredException,
    TokenInvalidException,
)
from app.services.authorization import AuthorizationGuard
from tests.support import MemoryFixture


class TestAuthorizationGuard(unittest.TestCase):
    def setUp(self):
        self.fx = MemoryFixture()
        self.guard = AuthorizationGuard(self.fx.token_issuer)
        self.token = self.fx.token_issuer.issue_access_token(7, UserRole.STANDARD).token

    def test_extract_bearer(self):
        self.assertEqual(AuthorizationGuard.extract_bearer(f"Bearer {self.token}"), self.token)
        self.assertEqual(AuthorizationGuard.extract_bearer(f"bearer {self.token}"), self.token)
        self.assertIsNone(AuthorizationGuard.extract_bearer(None))
        self.assertIsNone(AuthorizationGuard.extract_bearer("Bearer "))
        self.assertIsNone(AuthorizationGuard.extract_bearer(f"Basic {self.token}"))

    def test_authenticate_valid_token(self):
        claims = self.guard.authenticate(f"Bearer {self.token}")
        self.assertEqual(claims.subject, 7)
        self.assertEqual(claims.role, "user")

    def test_missing_header(self):
        with self.assertRaises(MissingTokenException) as ctx:
            self.guard.authenticate(None)
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.data["code"], ErrorCode.MISSING_TOKEN)

    def test_expired_token(self):
        self.fx.clock.advance(minutes=15)
        with self.assertRaises(TokenExpiredException) as ctx:
            self.guard.authenticate(f"Bearer {self.token}")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.data["code"], ErrorCode.TOKEN_EXPIRED)

    def test_refresh_token_is_not_an_access_token(self):
        refresh = self.fx.token_issuer.issue_refresh_token(7).token
        with self.assertRaises(TokenInvalidException):
            self.guard.authenticate(f"Bearer {refresh}")

    def test_tampered_token(self):
        header_payload, signature = self.token.rsplit(".", 1)
        forged = f"{header_payload}.{'A' if signature[0] != 'A' else 'B'}{signature[1:]}"
        with self.assertRaises(TokenInvalidException) as ctx:
            self.guard.authenticate(f"Bearer {forged}")
        self.assertEqual(ctx.exception.data["code"], ErrorCode.TOKEN_INVALID)

    def test_authorize(self):
        claims = self.guard.authenticate(f"Bearer {self.token}")
        self.guard.authorize(claims, [UserRole.STANDARD, UserRole.ADMINISTRATOR])

        with self.assertRaises(InsufficientRoleException) as ctx:
            self.guard.authorize(claims, [UserRole.ADMINISTRATOR])
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.data["allowed_roles"], ["admin"])


if __name__ == "__main__":
    unittest.main()
