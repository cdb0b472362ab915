"""Async HTTP client for the auth API with transparent access token renewal."""
import inspect
import logging
from typing import Any, Optional

import httpx

from app.client.coordinator import ForcedLogoutFn, SessionRefreshCoordinator
from app.core.config import Settings
from app.core.constants import ErrorCode

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success response from the API."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None, data: Optional[dict] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.data = data or {}
        super().__init__(f"{status_code}: {message}")


class SessionClient:
    """
    One user session against the auth API.

    The access token lives in memory only; the refresh token is an HttpOnly
    cookie held by the underlying ``httpx.AsyncClient`` cookie jar. A call
    rejected with ``token_expired`` is replayed once after a renewal shared
    with every other concurrent call of this session.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        refresh_timeout: float = 10.0,
        on_forced_logout: Optional[ForcedLogoutFn] = None,
        api_prefix: str = "/api/auth",
    ):
        self._http = http_client or httpx.AsyncClient(base_url=base_url)
        self._owns_http = http_client is None
        self._prefix = api_prefix
        self._on_forced_logout = on_forced_logout
        self.coordinator = SessionRefreshCoordinator(
            self._renew,
            on_forced_logout=self._forced_logout,
            timeout=refresh_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings, base_url: str, **kwargs: Any) -> "SessionClient":
        return cls(base_url, refresh_timeout=settings.REFRESH_TIMEOUT_SECONDS, **kwargs)

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def access_token(self) -> Optional[str]:
        return self.coordinator.current_token

    async def register(self, name: str, email: str, password: str) -> dict:
        body = await self.request(
            "POST", "/register",
            json={"name": name, "email": email, "password": password},
            authenticated=False,
        )
        return body["data"]["user"]

    async def login(self, email: str, password: str) -> dict:
        body = await self.request(
            "POST", "/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        self.coordinator.set_token(body["data"]["accessToken"])
        return body["data"]["user"]

    async def logout(self) -> None:
        """Tell the server, then drop local state whatever the server said."""
        try:
            await self.request("POST", "/logout", authenticated=False)
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("Logout request failed: %s", e)
        finally:
            self._clear_local_state()

    async def get_profile(self) -> dict:
        body = await self.request("GET", "/profile")
        return body["data"]["user"]

    async def update_profile(self, name: str) -> dict:
        body = await self.request("PUT", "/profile", json={"name": name})
        return body["data"]["user"]

    async def request(self, method: str, path: str, *, authenticated: bool = True, **kwargs: Any) -> dict:
        """
        Send a request and return the decoded response envelope.

        Raises:
            ApiError: For any non-2xx response, including a replay that is
                rejected again after renewal
        """
        token = self.coordinator.current_token if authenticated else None
        response = await self._send(method, path, token, **kwargs)

        if authenticated and self._is_expired(response):
            new_token = await self.coordinator.acquire_or_wait(token)
            response = await self._send(method, path, new_token, **kwargs)

        return self._unwrap(response)

    async def _send(self, method: str, path: str, token: Optional[str], **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return await self._http.request(method, self._prefix + path, headers=headers, **kwargs)

    async def _renew(self) -> str:
        response = await self._http.post(self._prefix + "/refresh-token")
        body = self._unwrap(response)
        return body["data"]["accessToken"]

    async def _forced_logout(self) -> None:
        self._clear_local_state()
        if self._on_forced_logout is not None:
            result = self._on_forced_logout()
            if inspect.isawaitable(result):
                await result

    def _clear_local_state(self) -> None:
        self.coordinator.set_token(None)
        self._http.cookies.clear()

    @staticmethod
    def _is_expired(response: httpx.Response) -> bool:
        if response.status_code != 401:
            return False
        return SessionClient._error_code(response) == ErrorCode.TOKEN_EXPIRED

    @staticmethod
    def _error_code(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json().get("data") or {}
        except ValueError:
            return None
        return data.get("code") if isinstance(data, dict) else None

    @staticmethod
    def _unwrap(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success:
            return body

        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        raise ApiError(
            status_code=response.status_code,
            message=body.get("message") or response.reason_phrase,
            code=data.get("code"),
            data=data,
        )
