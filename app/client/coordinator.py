"""Single-flight renewal of an expired access token.

When several in-flight calls of one session fail because the access token
expired, only one refresh exchange runs. It runs as a task owned by the
coordinator, so a caller that gives up does not take the renewal down with
it. Callers are resumed, in the order they arrived, with the same new token,
or all fail with the same error.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RenewFn = Callable[[], Awaitable[str]]
ForcedLogoutFn = Callable[[], Optional[Awaitable[None]]]


class RenewalError(Exception):
    """Token renewal did not produce a new access token."""


class SessionRefreshCoordinator:
    def __init__(
        self,
        renew: RenewFn,
        on_forced_logout: Optional[ForcedLogoutFn] = None,
        timeout: float = 10.0,
    ):
        self._renew = renew
        self._on_forced_logout = on_forced_logout
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._renewal: Optional[asyncio.Task] = None
        self._waiting = 0
        # (stale token, error) of the last renewal that failed
        self._failure: Optional[tuple[Optional[str], BaseException]] = None
        self.current_token: Optional[str] = None

    @property
    def is_renewing(self) -> bool:
        return self._renewal is not None

    @property
    def pending_waiters(self) -> int:
        return self._waiting

    def set_token(self, token: Optional[str]) -> None:
        """Install the session's access token; a real token clears any recorded failure."""
        self.current_token = token
        if token is not None:
            self._failure = None

    async def acquire_or_wait(self, stale_token: Optional[str]) -> str:
        """
        Return an access token newer than ``stale_token``.

        The first caller while no renewal is running starts one; later
        callers share it. A caller presenting the stale token of a renewal
        that already failed gets that failure again without a new exchange.

        Raises:
            Whatever the renewal raised, or RenewalError on timeout. Every
            caller of the same renewal receives the same exception instance.
        """
        async with self._lock:
            if self.current_token is not None and self.current_token != stale_token:
                return self.current_token

            if self._failure is not None and self._failure[0] == stale_token:
                raise self._failure[1]

            if self._renewal is None:
                self._renewal = asyncio.create_task(self._run_renewal(stale_token))
                self._renewal.add_done_callback(_consume_outcome)
            renewal = self._renewal
            self._waiting += 1

        try:
            return await asyncio.shield(renewal)
        finally:
            self._waiting -= 1

    async def _run_renewal(self, stale_token: Optional[str]) -> str:
        logger.debug("Renewing access token for %s waiter(s)", self._waiting)
        try:
            token = await asyncio.wait_for(self._renew(), timeout=self._timeout)
        except asyncio.TimeoutError:
            error: BaseException = RenewalError(f"Token renewal timed out after {self._timeout}s")
        except Exception as e:
            error = e
        else:
            async with self._lock:
                self.current_token = token
                self._failure = None
                self._renewal = None
            return token

        async with self._lock:
            self.current_token = None
            self._failure = (stale_token, error)
            self._renewal = None

        logger.warning("Token renewal failed (%s); forcing logout", type(error).__name__)
        if self._on_forced_logout is not None:
            result = self._on_forced_logout()
            if inspect.isawaitable(result):
                await result
        raise error


def _consume_outcome(task: asyncio.Task) -> None:
    # every caller may have been cancelled before the renewal finished
    if not task.cancelled():
        task.exception()
