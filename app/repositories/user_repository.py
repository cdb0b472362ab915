"""User repository implementation using PostgreSQL."""
import logging
from typing import Callable, Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.interfaces.user import IUserRepository
from app.models.user import User
from app.models.refresh_token import RefreshToken
from app.core.constants import UserRole
from app.core.exceptions import DuplicateEmailException
from app.services.lockout import LockoutState

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "email", "role", "hashed_password"}


class UserRepository(IUserRepository):
    """PostgreSQL implementation of user repository using SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, user_id: int, for_update: bool = False) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if for_update:
            # Row lock plus a fresh read, even if the object is already in the identity map
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> Optional[dict]:
        """Retrieve a user by id."""
        user = await self._get_model(user_id)
        return user.to_dict() if user else None

    async def get_by_email(self, email: str) -> Optional[dict]:
        """Retrieve a user by email."""
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self._session.execute(stmt)
        user = result.scalar_one_or_none()
        return user.to_dict() if user else None

    async def list_all(self) -> list[dict]:
        """Return every user, newest first."""
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
        result = await self._session.execute(stmt)
        return [user.to_dict() for user in result.scalars().all()]

    async def create(self, user_data: dict) -> dict:
        """Create a user and return it."""
        email = user_data["email"].strip().lower()
        if await self.get_by_email(email):
            raise DuplicateEmailException(data={"email": email})

        role = user_data.get("role", UserRole.STANDARD)
        user = User(
            name=user_data["name"],
            email=email,
            hashed_password=user_data["hashed_password"],
            role=role.value if isinstance(role, UserRole) else role,
            failed_login_attempts=0,
            locked_until=None,
        )
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            # Lost a race against a concurrent registration of the same email
            await self._session.rollback()
            raise DuplicateEmailException(data={"email": email}) from exc
        return user.to_dict()

    async def update(self, user_id: int, updates: dict) -> Optional[dict]:
        """Apply field updates to a user."""
        user = await self._get_model(user_id, for_update=True)
        if not user:
            await self._session.rollback()
            return None

        values = {key: value for key, value in updates.items() if key in _UPDATABLE_FIELDS}
        if "email" in values:
            values["email"] = values["email"].strip().lower()
            if values["email"] != user.email:
                owner = await self._session.execute(
                    select(User.id).where(User.email == values["email"])
                )
                if owner.scalar_one_or_none() is not None:
                    await self._session.rollback()
                    raise DuplicateEmailException(data={"email": values["email"]})
        if isinstance(values.get("role"), UserRole):
            values["role"] = values["role"].value

        for key, value in values.items():
            setattr(user, key, value)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise DuplicateEmailException(data={"email": values.get("email")}) from exc
        return user.to_dict()

    async def delete(self, user_id: int) -> bool:
        """Delete a user and its refresh tokens."""
        await self._session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        result = await self._session.execute(delete(User).where(User.id == user_id))
        await self._session.commit()
        return result.rowcount > 0

    async def apply_lockout_transition(
        self,
        user_id: int,
        transition: Callable[[LockoutState], LockoutState],
    ) -> Optional[LockoutState]:
        """Read-modify-write of the lockout columns under a row lock."""
        try:
            user = await self._get_model(user_id, for_update=True)
            if not user:
                await self._session.rollback()
                return None

            new_state = transition(
                LockoutState(
                    failed_login_attempts=user.failed_login_attempts,
                    locked_until=user.locked_until,
                )
            )
            user.failed_login_attempts = new_state.failed_login_attempts
            user.locked_until = new_state.locked_until
            await self._session.commit()
            return new_state
        except Exception:
            await self._session.rollback()
            raise
