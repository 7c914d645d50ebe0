"""Session verification collaborators used by the route guard.

A verifier turns the request cookies into an optional ``Principal``. Absence
of a principal is the only way "not authenticated" is expressed; nothing here
defaults to an authenticated state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_COOKIE = "sb-access-token"
DEFAULT_REFRESH_COOKIE = "sb-refresh-token"


@dataclass(frozen=True, slots=True)
class Principal:
    """An authenticated user as reported by the auth backend."""

    user_id: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class SessionCookie:
    """A cookie the verifier wants written back to the client."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    httponly: bool = True
    secure: bool = True
    samesite: Literal["lax", "strict", "none"] = "lax"


@dataclass(frozen=True, slots=True)
class SessionResult:
    principal: Principal | None = None
    cookies: tuple[SessionCookie, ...] = field(default_factory=tuple)

    @property
    def authenticated(self) -> bool:
        return self.principal is not None


ANONYMOUS = SessionResult()


class SessionVerifier(Protocol):
    async def verify(self, cookies: Mapping[str, str]) -> SessionResult: ...

    async def check_health(self) -> bool | None:
        """Return backend reachability, or None when there is no backend."""
        ...


class AnonymousSessionVerifier:
    """Verifier for deployments without an auth backend: nobody is signed in."""

    async def verify(self, cookies: Mapping[str, str]) -> SessionResult:  # noqa: ARG002
        return ANONYMOUS

    async def check_health(self) -> None:
        return None

    async def close(self) -> None:
        return None


class RemoteSessionVerifier:
    """Verify sessions against a GoTrue-compatible auth service over HTTP.

    The access token is checked with ``GET /auth/v1/user``. When it has
    expired and a refresh token cookie is present, one refresh is attempted
    and the new tokens are returned as cookies to rewrite. There are no
    retries; transport errors and unexpected statuses propagate so the caller
    can fail closed.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_cookie: str = DEFAULT_ACCESS_COOKIE,
        refresh_cookie: str = DEFAULT_REFRESH_COOKIE,
        timeout: float = 5.0,
        secure_cookies: bool = True,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty")
        if not api_key:
            raise ValueError("api_key must not be empty")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_cookie = access_cookie
        self.refresh_cookie = refresh_cookie
        self.timeout = timeout
        self.secure_cookies = secure_cookies
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"apikey": self.api_key},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def check_health(self) -> bool:
        """Return True when the auth service answers its health endpoint."""
        client = await self._get_client()
        try:
            response = await client.get("/auth/v1/health")
        except httpx.HTTPError as exc:
            logger.warning(
                "Auth backend health check failed",
                extra={"event": "session.health.failed", "error_type": type(exc).__name__},
            )
            return False
        return response.status_code == 200

    async def verify(self, cookies: Mapping[str, str]) -> SessionResult:
        access_token = (cookies.get(self.access_cookie) or "").strip()
        refresh_token = (cookies.get(self.refresh_cookie) or "").strip()
        if not access_token and not refresh_token:
            return ANONYMOUS

        client = await self._get_client()
        if access_token:
            response = await client.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if response.status_code == 200:
                return SessionResult(principal=self._principal_from(response.json()))
            if response.status_code not in (401, 403):
                response.raise_for_status()
                return ANONYMOUS

        if not refresh_token:
            return ANONYMOUS
        return await self._refresh(client, refresh_token)

    async def _refresh(self, client: httpx.AsyncClient, refresh_token: str) -> SessionResult:
        response = await client.post(
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if response.status_code in (400, 401, 403):
            logger.info(
                "Session refresh rejected",
                extra={"event": "session.refresh.rejected", "status": response.status_code},
            )
            return SessionResult(cookies=self._clear_cookies())
        response.raise_for_status()

        payload = response.json()
        principal = self._principal_from(payload.get("user") or {})
        new_access = str(payload.get("access_token") or "")
        new_refresh = str(payload.get("refresh_token") or "")
        if principal is None or not new_access:
            return SessionResult(cookies=self._clear_cookies())

        expires_in = payload.get("expires_in")
        cookies = [
            SessionCookie(
                name=self.access_cookie,
                value=new_access,
                max_age=int(expires_in) if isinstance(expires_in, int) else None,
                secure=self.secure_cookies,
            )
        ]
        if new_refresh:
            cookies.append(
                SessionCookie(
                    name=self.refresh_cookie,
                    value=new_refresh,
                    secure=self.secure_cookies,
                )
            )
        logger.debug("Session refreshed", extra={"event": "session.refreshed"})
        return SessionResult(principal=principal, cookies=tuple(cookies))

    def _clear_cookies(self) -> tuple[SessionCookie, ...]:
        return tuple(
            SessionCookie(name=name, value="", max_age=0, secure=self.secure_cookies)
            for name in (self.access_cookie, self.refresh_cookie)
        )

    @staticmethod
    def _principal_from(data: Mapping[str, Any]) -> Principal | None:
        user_id = str(data.get("id") or "").strip()
        if not user_id:
            return None
        email = data.get("email")
        return Principal(user_id=user_id, email=str(email) if email else None)
