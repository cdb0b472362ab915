import logging
from app.interfaces.user import IUserRepository
from app.core.constants import AuthErrorDetails, UserRole
from app.core.exceptions import (
    AccountLockedException,
    InvalidCredentialsException,
    MissingTokenException,
    UserNotFoundException,
)
from app.core.security import Clock, utcnow
from app.services.credentials import CredentialVerifier
from app.services.lockout import LockoutPolicy, LockoutState
from app.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        user_repository: IUserRepository,
        token_issuer: TokenIssuer,
        credential_verifier: CredentialVerifier,
        lockout_policy: LockoutPolicy,
        clock: Clock = utcnow,
    ):
        self.user_repository = user_repository
        self.token_issuer = token_issuer
        self.credential_verifier = credential_verifier
        self.lockout_policy = lockout_policy
        self._clock = clock

    async def register_user(self, name: str, email: str, password: str) -> dict:
        """Create a standard account. Registration does not log the user in.

        Raises:
            DuplicateEmailException: If the email is already registered
        """
        hashed_password = await self.credential_verifier.hash(password)
        user = await self.user_repository.create({
            "name": name,
            "email": email,
            "hashed_password": hashed_password,
            "role": UserRole.STANDARD,
        })
        logger.info("Registered user_id=%s", user["id"])
        return user

    async def login_user(self, email: str, password: str) -> dict:
        """Authenticate under the lockout policy and start a new session.

        Returns:
            Dictionary with user, access_token and refresh_token (IssuedToken)

        Raises:
            InvalidCredentialsException: Unknown email or wrong password
            AccountLockedException: Lock still in force, even for a correct password
        """
        user = await self.user_repository.get_by_email(email)
        if not user:
            raise InvalidCredentialsException()

        now = self._clock()
        state = LockoutState.from_user(user)
        if self.lockout_policy.is_locked(state, now):
            logger.warning("Login refused for locked user_id=%s", user["id"])
            raise AccountLockedException(data={"locked_until": state.locked_until.isoformat()})

        if not await self.credential_verifier.verify(password, user["hashed_password"]):
            new_state = await self.user_repository.apply_lockout_transition(
                user["id"], lambda current: self.lockout_policy.on_failure(current, now)
            )
            if new_state and self.lockout_policy.is_locked(new_state, now):
                logger.warning(
                    "User user_id=%s locked until %s after %s failed attempts",
                    user["id"], new_state.locked_until.isoformat(), new_state.failed_login_attempts,
                )
            else:
                logger.info("Failed login for user_id=%s", user["id"])
            raise InvalidCredentialsException()

        await self.user_repository.apply_lockout_transition(user["id"], self.lockout_policy.on_success)

        access_token = self.token_issuer.issue_access_token(user["id"], user["role"])
        refresh_token = await self.token_issuer.rotate_on_login(user["id"])
        logger.info("Login succeeded for user_id=%s", user["id"])

        return {
            "user": user,
            "access_token": access_token,
            "refresh_token": refresh_token,
        }

    async def refresh_access_token(self, refresh_token: str | None):
        """Exchange the refresh cookie for a new access token."""
        if not refresh_token:
            raise MissingTokenException(AuthErrorDetails.REFRESH_TOKEN_MISSING)
        return await self.token_issuer.renew_access_token(refresh_token)

    async def logout_user(self, refresh_token: str | None) -> None:
        """Delete the stored refresh token, if one was presented."""
        if not refresh_token:
            return
        removed = await self.token_issuer.revoke(refresh_token)
        logger.info("Logout processed (record removed=%s)", removed)

    async def get_profile(self, user_id: int) -> dict:
        user = await self.user_repository.get_by_id(user_id)
        if not user:
            raise UserNotFoundException()
        return user

    async def update_profile(self, user_id: int, name: str) -> dict:
        user = await self.user_repository.update(user_id, {"name": name})
        if not user:
            raise UserNotFoundException()
        return user
