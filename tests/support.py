"""Shared fixtures for the test suite."""
from datetime import datetime, timedelta, timezone

from app.core.config import Settings
from app.core.constants import UserRole
from app.core.security import hash_password
from app.repositories.memory import MemoryRefreshTokenRepository, MemoryStore, MemoryUserRepository
from app.services.tokens import TokenIssuer

PASSWORD = "secret123"


class FakeClock:
    """Settable clock; starts on a whole second so JWT ``exp`` rounding is exact."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "dev",
        "CREDENTIAL_STORE": "memory",
        "RATE_LIMIT_ENABLED": False,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class MemoryFixture:
    """Memory store with both repositories and a token issuer on a fake clock."""

    def __init__(self, settings: Settings | None = None, clock: FakeClock | None = None):
        self.settings = settings or make_settings()
        self.clock = clock or FakeClock()
        self.store = MemoryStore()
        self.users = MemoryUserRepository(self.store)
        self.refresh_tokens = MemoryRefreshTokenRepository(self.store)
        self.token_issuer = TokenIssuer(self.settings, self.refresh_tokens, self.users, clock=self.clock)

    async def add_user(
        self,
        email: str = "alice@example.com",
        password: str = PASSWORD,
        role: UserRole = UserRole.STANDARD,
        name: str = "Alice",
    ) -> dict:
        return await self.users.create({
            "name": name,
            "email": email,
            "hashed_password": hash_password(password, rounds=self.settings.BCRYPT_ROUNDS),
            "role": role,
        })
