from abc import ABC, abstractmethod
from typing import Callable, Optional
from app.services.lockout import LockoutState


class IUserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[dict]:
        """Retrieve a user by id."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[dict]:
        """Retrieve a user by email (case-insensitive)."""
        pass

    @abstractmethod
    async def list_all(self) -> list[dict]:
        """Return every user, newest first."""
        pass

    @abstractmethod
    async def create(self, user_data: dict) -> dict:
        """Create a user and return it.

        Raises:
            DuplicateEmailException: If the email is already registered
        """
        pass

    @abstractmethod
    async def update(self, user_id: int, updates: dict) -> Optional[dict]:
        """Apply field updates; returns the updated user or None if it does not exist.

        Raises:
            DuplicateEmailException: If the new email belongs to another user
        """
        pass

    @abstractmethod
    async def delete(self, user_id: int) -> bool:
        """Delete a user and its refresh tokens. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def apply_lockout_transition(
        self,
        user_id: int,
        transition: Callable[[LockoutState], LockoutState],
    ) -> Optional[LockoutState]:
        """Atomically read a user's lockout state, apply ``transition`` and persist the result.

        Concurrent transitions for the same user are serialized so that no
        failed attempt is lost. Returns None if the user does not exist.
        """
        pass
