"""FastAPI app wiring the route guard, security headers and validation endpoints."""

from __future__ import annotations

import inspect
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import IO, Any

from fastapi import Body, FastAPI, File, Request, Response, UploadFile

from webguard import __version__
from webguard.api.errors import register_exception_handlers
from webguard.api.headers import SecurityHeadersMiddleware
from webguard.api.models import (
    ErrorResponse,
    HealthResponse,
    SessionResponse,
    UploadValidationResponse,
    UrlCheckRequest,
    UrlCheckResponse,
)
from webguard.api.route_guard import RouteGuardConfig, RouteGuardMiddleware
from webguard.api.session import (
    AnonymousSessionVerifier,
    RemoteSessionVerifier,
    SessionVerifier,
)
from webguard.security.filenames import generate_safe_filename, sanitize_filename
from webguard.security.ssrf import DEFAULT_SSRF_POLICY, SsrfPolicy, validate_external_url
from webguard.security.uploads import FileCandidate, UploadPolicy, validate_file_upload
from webguard.utils.config import WebGuardConfig, load_config
from webguard.utils.logging_config import configure_logging_from_config

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {
        "name": "system",
        "description": "Service health and session introspection endpoints.",
    },
    {
        "name": "validation",
        "description": (
            "Server-side checks for untrusted input: URLs the server is asked to "
            "fetch and files clients upload."
        ),
    },
]

URL_CHECK_REQUEST_EXAMPLES = {
    "public_url": {
        "summary": "Public HTTPS URL",
        "value": {"url": "https://example.com/feed.xml"},
    },
    "metadata_endpoint": {
        "summary": "Cloud metadata endpoint (rejected)",
        "value": {"url": "http://169.254.169.254/latest/meta-data/"},
    },
}


def _error_response_doc(*, description: str, error: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorResponse,
        "description": description,
        "content": {"application/json": {"example": {"error": error, "message": message}}},
    }


VALIDATION_ERROR_RESPONSE = _error_response_doc(
    description="Request payload failed schema validation.",
    error="validation_error",
    message="Invalid request payload.",
)

INTERNAL_ERROR_RESPONSE = _error_response_doc(
    description="Unhandled internal server error.",
    error="internal_error",
    message="Internal server error.",
)


def route_guard_config_from(config: WebGuardConfig) -> RouteGuardConfig:
    return RouteGuardConfig(
        protected_prefixes=config.protected_prefixes,
        auth_only_prefixes=config.auth_prefixes,
        login_path=config.login_path,
        landing_path=config.landing_path,
        redirect_param=config.redirect_param,
    )


def _default_session_verifier(config: WebGuardConfig) -> SessionVerifier:
    if config.auth_url and config.auth_api_key:
        return RemoteSessionVerifier(config.auth_url, config.auth_api_key)
    return AnonymousSessionVerifier()


async def _close_resource(resource: Any) -> None:
    close = getattr(resource, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


def _stream_size(stream: IO[bytes]) -> int:
    position = stream.tell()
    try:
        stream.seek(0, 2)
        return stream.tell()
    finally:
        stream.seek(position)


def create_app(
    *,
    config: WebGuardConfig | None = None,
    session_verifier: SessionVerifier | None = None,
    ssrf_policy: SsrfPolicy = DEFAULT_SSRF_POLICY,
) -> FastAPI:
    """Create the FastAPI app instance.

    The session verifier is injectable to make route-guard behaviour easy to
    unit test without an auth backend.
    """
    config = config or load_config()
    configure_logging_from_config(config)

    verifier = session_verifier or _default_session_verifier(config)
    upload_policy = UploadPolicy(max_size=config.max_upload_bytes)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await _close_resource(app.state.session_verifier)

    app = FastAPI(
        title="webguard",
        summary="Request-time access control and input validation.",
        description=(
            "Route protection based on verified sessions, SSRF filtering for "
            "server-side fetches, and magic-byte verification for uploads."
        ),
        openapi_tags=OPENAPI_TAGS,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_verifier = verifier

    register_exception_handlers(app)

    # Starlette runs the last-added middleware first, so security headers
    # also land on the guard's redirects.
    app.add_middleware(
        RouteGuardMiddleware,
        config=route_guard_config_from(config),
        verifier=verifier,
    )
    if config.security_headers:
        app.add_middleware(SecurityHeadersMiddleware)

    logger.info(
        "webguard app created",
        extra={"event": "app.created", "auth_backend": bool(config.auth_url)},
    )

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Service Health Check",
        description=(
            "Checks that the auth backend (when configured) is reachable. Returns 503 "
            "with status degraded or unhealthy when it is not."
        ),
        responses={
            503: {"model": HealthResponse, "description": "A backing service is down."},
            500: INTERNAL_ERROR_RESPONSE,
        },
        tags=["system"],
    )
    async def health(response: Response) -> HealthResponse:
        response.headers["Cache-Control"] = "no-store, max-age=0"
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            auth_ok = await verifier.check_health()
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Health check failed",
                extra={"event": "health.check.failed", "error_type": type(exc).__name__},
            )
            response.status_code = 503
            return HealthResponse(
                status="unhealthy",
                timestamp=timestamp,
                services={"auth": False},
                error=type(exc).__name__,
            )

        # None means no auth backend is configured, which is not a failure.
        healthy = auth_ok is not False
        if not healthy:
            response.status_code = 503
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            timestamp=timestamp,
            services={"auth": auth_ok},
        )

    @app.get(
        "/api/session",
        response_model=SessionResponse,
        summary="Current Session",
        description="Reports the principal the route guard established for this request.",
        responses={500: INTERNAL_ERROR_RESPONSE},
        tags=["system"],
    )
    async def current_session(request: Request) -> SessionResponse:
        principal = getattr(request.state, "principal", None)
        if principal is None:
            return SessionResponse(authenticated=False)
        return SessionResponse(
            authenticated=True,
            user_id=principal.user_id,
            email=principal.email,
        )

    @app.post(
        "/api/url-check",
        response_model=UrlCheckResponse,
        summary="Check URL For Server-Side Fetch",
        description=(
            "Rejects URLs with non-HTTP schemes, loopback/private/link-local "
            "addresses, and cloud metadata hosts."
        ),
        responses={
            400: _error_response_doc(
                description="URL rejected.",
                error="blocked_host",
                message="Blocked host: 169.254.169.254",
            ),
            422: VALIDATION_ERROR_RESPONSE,
            500: INTERNAL_ERROR_RESPONSE,
        },
        tags=["validation"],
    )
    async def check_url(
        payload: UrlCheckRequest = Body(..., openapi_examples=URL_CHECK_REQUEST_EXAMPLES),
    ) -> UrlCheckResponse:
        url = validate_external_url(payload.url, policy=ssrf_policy)
        return UrlCheckResponse(url=url)

    @app.post(
        "/api/uploads/validate",
        response_model=UploadValidationResponse,
        summary="Validate File Upload",
        description=(
            "Checks size, extension, declared content type and leading bytes of an "
            "uploaded file and returns the names to store it under."
        ),
        responses={
            400: _error_response_doc(
                description="File rejected.",
                error="invalid_extension",
                message="Invalid extension: .exe. Allowed: .jpg, .jpeg, .png, .gif, .webp, .pdf",
            ),
            422: VALIDATION_ERROR_RESPONSE,
            500: INTERNAL_ERROR_RESPONSE,
        },
        tags=["validation"],
    )
    async def validate_upload(file: UploadFile = File(...)) -> UploadValidationResponse:
        original_name = file.filename or ""
        size = file.size if file.size is not None else _stream_size(file.file)
        signature = validate_file_upload(
            FileCandidate(
                source=file.file,
                size=size,
                content_type=file.content_type or "",
                filename=original_name,
            ),
            policy=upload_policy,
        )
        return UploadValidationResponse(
            filename=sanitize_filename(original_name),
            stored_name=generate_safe_filename(original_name),
            content_type=signature.mime_type,
            size=size,
        )

    return app


app = create_app()
