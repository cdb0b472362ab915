"""Password hashing and verification off the event loop."""
import asyncio

from app.core.security import hash_password, verify_password


class CredentialVerifier:
    """bcrypt is deliberately slow; both operations run in a worker thread."""

    def __init__(self, rounds: int = 10):
        if rounds < 10:
            raise ValueError("bcrypt cost factor must be at least 10")
        self._rounds = rounds

    async def hash(self, plain_secret: str) -> str:
        return await asyncio.to_thread(hash_password, plain_secret, self._rounds)

    async def verify(self, plain_secret: str, stored_hash: str | None) -> bool:
        return await asyncio.to_thread(verify_password, plain_secret, stored_hash)
