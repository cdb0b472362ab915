from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional


class IRefreshTokenRepository(ABC):
    @abstractmethod
    async def replace_for_user(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        issued_at: datetime,
    ) -> dict:
        """Delete every refresh token of ``user_id`` and store ``token`` as its only one.

        The delete and insert form one atomic unit with respect to other
        replacements and deletions for the same user.
        """
        pass

    @abstractmethod
    async def get_by_token(self, token: str) -> Optional[dict]:
        """Retrieve a stored refresh token record by exact value."""
        pass

    @abstractmethod
    async def delete_by_token(self, token: str) -> bool:
        """Delete a refresh token record. Returns True if one was removed."""
        pass

    @abstractmethod
    async def delete_for_user(self, user_id: int) -> int:
        """Delete every refresh token of a user. Returns the number removed."""
        pass
