"""Per-request route protection.

``decide_route`` is the pure policy: given a path and an optional principal it
returns allow or redirect. ``RouteGuardMiddleware`` wires it into Starlette,
asks the session verifier who the caller is and fails closed when it cannot
find out.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from webguard.api.session import (
    ANONYMOUS,
    AnonymousSessionVerifier,
    Principal,
    SessionResult,
    SessionVerifier,
)

logger = logging.getLogger(__name__)

# Static assets skip the session check unless they sit under a protected prefix.
DEFAULT_EXEMPT_PATTERN = r"^/(static/|favicon\.ico$)|\.(svg|png|jpg|jpeg|gif|webp)$"


@dataclass(frozen=True, slots=True)
class RouteGuardConfig:
    protected_prefixes: tuple[str, ...] = ("/dashboard", "/settings", "/admin")
    auth_only_prefixes: tuple[str, ...] = ("/login", "/signup")
    login_path: str = "/login"
    landing_path: str = "/dashboard"
    redirect_param: str = "redirect"
    exempt_pattern: str | None = DEFAULT_EXEMPT_PATTERN

    def __post_init__(self) -> None:
        if not self.redirect_param:
            raise ValueError("redirect_param must not be empty")
        for name, path in (("login_path", self.login_path), ("landing_path", self.landing_path)):
            if not path.startswith("/") or path.startswith("//"):
                raise ValueError(f"{name} must be a local absolute path: {path!r}")
        if self.is_protected(self.login_path):
            raise ValueError("login_path must not be a protected path (redirect loop)")
        if self.is_auth_only(self.landing_path):
            raise ValueError("landing_path must not be an auth-only path (redirect loop)")

    def is_protected(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.protected_prefixes)

    def is_auth_only(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.auth_only_prefixes)

    def is_exempt(self, path: str) -> bool:
        # Asset-looking paths under a protected prefix are still gated.
        if not self.exempt_pattern or self.is_protected(path):
            return False
        return re.search(self.exempt_pattern, path) is not None


@dataclass(frozen=True, slots=True)
class RouteDecision:
    action: Literal["allow", "redirect"]
    location: str | None = None

    @property
    def redirects(self) -> bool:
        return self.action == "redirect"


ALLOW = RouteDecision("allow")


def login_redirect_location(path: str, config: RouteGuardConfig) -> str:
    query = urlencode({config.redirect_param: path}, safe="/")
    return f"{config.login_path}?{query}"


def decide_route(
    path: str,
    principal: Principal | None,
    config: RouteGuardConfig,
) -> RouteDecision:
    """Decide whether a request for ``path`` may proceed.

    - protected path, no principal: redirect to login with the path as a
      return-to parameter
    - auth-only path (login, signup), principal present: redirect to the
      landing path
    - anything else: allow
    """
    if config.is_protected(path) and principal is None:
        return RouteDecision("redirect", login_redirect_location(path, config))
    if config.is_auth_only(path) and principal is not None:
        return RouteDecision("redirect", config.landing_path)
    return ALLOW


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Gate protected routes on a verified session before dispatch."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        config: RouteGuardConfig | None = None,
        verifier: SessionVerifier | None = None,
    ) -> None:
        super().__init__(app)
        self.config = config or RouteGuardConfig()
        self.verifier: SessionVerifier = verifier or AnonymousSessionVerifier()

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if self.config.is_exempt(path):
            return await call_next(request)

        session = await self._verify(request)
        request.state.principal = session.principal

        decision = decide_route(path, session.principal, self.config)
        if decision.redirects:
            logger.info(
                "Route guard redirect",
                extra={
                    "event": "route_guard.redirect",
                    "authenticated": session.authenticated,
                },
            )
            response: Response = RedirectResponse(decision.location or "/", status_code=307)
        else:
            response = await call_next(request)

        for cookie in session.cookies:
            response.set_cookie(
                cookie.name,
                cookie.value,
                max_age=cookie.max_age,
                path=cookie.path,
                httponly=cookie.httponly,
                secure=cookie.secure,
                samesite=cookie.samesite,
            )
        return response

    async def _verify(self, request: Request) -> SessionResult:
        try:
            return await self.verifier.verify(request.cookies)
        except Exception as exc:  # noqa: BLE001
            # Fail closed: an unverifiable session is no session.
            logger.warning(
                "Session verification failed; treating request as anonymous",
                extra={
                    "event": "route_guard.verify.failed",
                    "error_type": type(exc).__name__,
                },
            )
            return ANONYMOUS
