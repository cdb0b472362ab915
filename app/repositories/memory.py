"""In-memory credential store for development and tests.

Both repositories share one ``MemoryStore`` so that a single ``asyncio.Lock``
covers users and refresh tokens, mirroring the row lock the PostgreSQL
repositories take.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.core.constants import UserRole
from app.core.exceptions import DuplicateEmailException
from app.interfaces.refresh_token import IRefreshTokenRepository
from app.interfaces.user import IUserRepository
from app.services.lockout import LockoutState

_UPDATABLE_FIELDS = {"name", "email", "role", "hashed_password"}


class MemoryStore:
    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users_by_id: dict[int, dict[str, Any]] = {}
        self.refresh_tokens: dict[str, dict[str, Any]] = {}
        self._next_user_id = 1
        self._next_token_id = 1

    def next_user_id(self) -> int:
        user_id = self._next_user_id
        self._next_user_id += 1
        return user_id

    def next_token_id(self) -> int:
        token_id = self._next_token_id
        self._next_token_id += 1
        return token_id

    def find_by_email(self, email: str) -> dict | None:
        for user in self.users_by_id.values():
            if user["email"] == email:
                return user
        return None


class MemoryUserRepository(IUserRepository):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def get_by_id(self, user_id: int) -> Optional[dict]:
        async with self._store.lock:
            user = self._store.users_by_id.get(user_id)
            return dict(user) if user else None

    async def get_by_email(self, email: str) -> Optional[dict]:
        async with self._store.lock:
            user = self._store.find_by_email(email.strip().lower())
            return dict(user) if user else None

    async def list_all(self) -> list[dict]:
        async with self._store.lock:
            users = sorted(
                self._store.users_by_id.values(),
                key=lambda user: (user["created_at"], user["id"]),
                reverse=True,
            )
            return [dict(user) for user in users]

    async def create(self, user_data: dict) -> dict:
        email = user_data["email"].strip().lower()
        role = user_data.get("role", UserRole.STANDARD)
        async with self._store.lock:
            if self._store.find_by_email(email):
                raise DuplicateEmailException(data={"email": email})
            now = datetime.now(timezone.utc)
            user = {
                "id": self._store.next_user_id(),
                "name": user_data["name"],
                "email": email,
                "hashed_password": user_data["hashed_password"],
                "role": role.value if isinstance(role, UserRole) else role,
                "failed_login_attempts": 0,
                "locked_until": None,
                "created_at": now,
                "updated_at": now,
            }
            self._store.users_by_id[user["id"]] = user
            return dict(user)

    async def update(self, user_id: int, updates: dict) -> Optional[dict]:
        async with self._store.lock:
            user = self._store.users_by_id.get(user_id)
            if not user:
                return None
            values = {key: value for key, value in updates.items() if key in _UPDATABLE_FIELDS}
            if "email" in values:
                values["email"] = values["email"].strip().lower()
                owner = self._store.find_by_email(values["email"])
                if owner and owner["id"] != user_id:
                    raise DuplicateEmailException(data={"email": values["email"]})
            if isinstance(values.get("role"), UserRole):
                values["role"] = values["role"].value
            user.update(values)
            user["updated_at"] = datetime.now(timezone.utc)
            return dict(user)

    async def delete(self, user_id: int) -> bool:
        async with self._store.lock:
            if self._store.users_by_id.pop(user_id, None) is None:
                return False
            for token, record in list(self._store.refresh_tokens.items()):
                if record["user_id"] == user_id:
                    del self._store.refresh_tokens[token]
            return True

    async def apply_lockout_transition(
        self,
        user_id: int,
        transition: Callable[[LockoutState], LockoutState],
    ) -> Optional[LockoutState]:
        async with self._store.lock:
            user = self._store.users_by_id.get(user_id)
            if not user:
                return None
            new_state = transition(LockoutState.from_user(user))
            user["failed_login_attempts"] = new_state.failed_login_attempts
            user["locked_until"] = new_state.locked_until
            user["updated_at"] = datetime.now(timezone.utc)
            return new_state


class MemoryRefreshTokenRepository(IRefreshTokenRepository):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def replace_for_user(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        issued_at: datetime,
    ) -> dict:
        async with self._store.lock:
            for value, record in list(self._store.refresh_tokens.items()):
                if record["user_id"] == user_id:
                    del self._store.refresh_tokens[value]
            record = {
                "id": self._store.next_token_id(),
                "user_id": user_id,
                "token": token,
                "expires_at": expires_at,
                "created_at": issued_at,
            }
            self._store.refresh_tokens[token] = record
            return dict(record)

    async def get_by_token(self, token: str) -> Optional[dict]:
        async with self._store.lock:
            record = self._store.refresh_tokens.get(token)
            return dict(record) if record else None

    async def delete_by_token(self, token: str) -> bool:
        async with self._store.lock:
            return self._store.refresh_tokens.pop(token, None) is not None

    async def delete_for_user(self, user_id: int) -> int:
        async with self._store.lock:
            doomed = [
                value for value, record in self._store.refresh_tokens.items()
                if record["user_id"] == user_id
            ]
            for value in doomed:
                del self._store.refresh_tokens[value]
            return len(doomed)
