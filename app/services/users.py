import logging
from typing import Optional

from app.core.constants import UserErrorDetails, UserRole
from app.core.exceptions import DuplicateEmailException, UserNotFoundException, ValidationException
from app.interfaces.user import IUserRepository
from app.services.credentials import CredentialVerifier
from app.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)


class UserAdminService:
    """Administrator operations on user accounts."""

    def __init__(
        self,
        user_repository: IUserRepository,
        token_issuer: TokenIssuer,
        credential_verifier: CredentialVerifier,
    ):
        self.user_repository = user_repository
        self.token_issuer = token_issuer
        self.credential_verifier = credential_verifier

    async def list_users(self) -> list[dict]:
        return await self.user_repository.list_all()

    async def create_user(self, name: str, email: str, password: str, role: UserRole = UserRole.STANDARD) -> dict:
        hashed_password = await self.credential_verifier.hash(password)
        try:
            user = await self.user_repository.create({
                "name": name,
                "email": email,
                "hashed_password": hashed_password,
                "role": role,
            })
        except DuplicateEmailException as e:
            raise DuplicateEmailException(status_code=409, data=e.data) from e
        logger.info("Administrator created user_id=%s with role=%s", user["id"], user["role"])
        return user

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[UserRole] = None,
        password: Optional[str] = None,
    ) -> dict:
        updates: dict = {}
        if name is not None:
            updates["name"] = name
        if email is not None:
            updates["email"] = email
        if role is not None:
            updates["role"] = role
        if password:
            updates["hashed_password"] = await self.credential_verifier.hash(password)

        try:
            user = await self.user_repository.update(user_id, updates)
        except DuplicateEmailException as e:
            raise DuplicateEmailException(status_code=409, data=e.data) from e
        if not user:
            raise UserNotFoundException()

        if role is not None or password:
            # A role or password change ends every session of that user.
            await self.token_issuer.revoke_all(user_id)
        logger.info("Administrator updated user_id=%s fields=%s", user_id, sorted(updates))
        return user

    async def delete_user(self, acting_user_id: int, user_id: int) -> None:
        if acting_user_id == user_id:
            raise ValidationException(UserErrorDetails.CANNOT_DELETE_SELF)
        await self.token_issuer.revoke_all(user_id)
        if not await self.user_repository.delete(user_id):
            raise UserNotFoundException()
        logger.info("Administrator user_id=%s deleted user_id=%s", acting_user_id, user_id)
