"""Refresh token repository implementation using PostgreSQL."""
from datetime import datetime
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from app.interfaces.refresh_token import IRefreshTokenRepository
from app.models.refresh_token import RefreshToken
from app.models.user import User


class RefreshTokenRepository(IRefreshTokenRepository):
    """PostgreSQL implementation of refresh token repository using SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def replace_for_user(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        issued_at: datetime,
    ) -> dict:
        """
        Delete-then-insert in one transaction.

        The user row is locked first so that two concurrent logins for the
        same user serialize here; the second one deletes the first one's row.
        """
        try:
            await self._session.execute(
                select(User.id).where(User.id == user_id).with_for_update()
            )
            await self._session.execute(
                delete(RefreshToken).where(RefreshToken.user_id == user_id)
            )
            record = RefreshToken(
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                created_at=issued_at,
            )
            self._session.add(record)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return record.to_dict()

    async def get_by_token(self, token: str) -> Optional[dict]:
        """Retrieve a stored refresh token by exact value."""
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        result = await self._session.execute(stmt)
        record = result.scalar_one_or_none()
        return record.to_dict() if record else None

    async def delete_by_token(self, token: str) -> bool:
        """Delete a refresh token record."""
        result = await self._session.execute(
            delete(RefreshToken).where(RefreshToken.token == token)
        )
        await self._session.commit()
        return result.rowcount > 0

    async def delete_for_user(self, user_id: int) -> int:
        """Delete every refresh token of a user."""
        result = await self._session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        await self._session.commit()
        return result.rowcount
