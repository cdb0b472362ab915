"""Progressive account lockout.

Pure state transitions over a user's failure counter and lock expiry. The
caller persists the returned state; nothing here touches storage or raises.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class LockoutState:
    failed_login_attempts: int = 0
    locked_until: datetime | None = None

    @classmethod
    def from_user(cls, user: dict) -> "LockoutState":
        return cls(
            failed_login_attempts=int(user.get("failed_login_attempts") or 0),
            locked_until=user.get("locked_until"),
        )


class LockoutPolicy:
    """Locks an account for ``lock_duration`` once ``max_attempts`` failures accumulate."""

    def __init__(self, max_attempts: int = 5, lock_duration: timedelta = timedelta(minutes=30)):
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration

    def is_locked(self, state: LockoutState, now: datetime) -> bool:
        return state.locked_until is not None and state.locked_until > now

    def on_failure(self, state: LockoutState, now: datetime) -> LockoutState:
        # An expired lock does not reset the counter; the next failure re-locks.
        attempts = state.failed_login_attempts + 1
        if attempts >= self.max_attempts:
            return LockoutState(failed_login_attempts=attempts, locked_until=now + self.lock_duration)
        return LockoutState(failed_login_attempts=attempts, locked_until=None)

    def on_success(self, state: LockoutState) -> LockoutState:
        return LockoutState(failed_login_attempts=0, locked_until=None)
