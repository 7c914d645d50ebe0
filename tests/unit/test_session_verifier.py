from __future__ import annotations

import json

import httpx
import pytest

from webguard.api.session import (
    AnonymousSessionVerifier,
    Principal,
    RemoteSessionVerifier,
)

BASE_URL = "https://auth.example.com"


def _verifier_with(monkeypatch: pytest.MonkeyPatch, handler) -> RemoteSessionVerifier:  # noqa: ANN001
    verifier = RemoteSessionVerifier(BASE_URL, "anon-key-1234")
    client = httpx.AsyncClient(
        base_url=BASE_URL,
        headers={"apikey": verifier.api_key},
        transport=httpx.MockTransport(handler),
    )

    async def _fake_get_client():
        return client

    monkeypatch.setattr(verifier, "_get_client", _fake_get_client)
    return verifier


@pytest.mark.asyncio
async def test_anonymous_verifier_never_authenticates() -> None:
    result = await AnonymousSessionVerifier().verify({"sb-access-token": "anything"})
    assert result.principal is None
    assert not result.authenticated


@pytest.mark.asyncio
async def test_no_session_cookies_skips_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    verifier = _verifier_with(monkeypatch, handler)
    result = await verifier.verify({})

    assert result.principal is None
    assert calls == []


@pytest.mark.asyncio
async def test_valid_access_token_yields_principal(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["authorization"] = request.headers["authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"id": "user-1", "email": "alice@example.com"})

    verifier = _verifier_with(monkeypatch, handler)
    result = await verifier.verify({"sb-access-token": "access-1"})

    assert result.principal == Principal(user_id="user-1", email="alice@example.com")
    assert result.cookies == ()
    assert seen == {
        "path": "/auth/v1/user",
        "authorization": "Bearer access-1",
        "apikey": "anon-key-1234",
    }


@pytest.mark.asyncio
async def test_expired_access_token_is_refreshed_once(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(f"{request.method} {request.url.path}")
        if request.url.path == "/auth/v1/user":
            return httpx.Response(401, json={"msg": "jwt expired"})
        assert request.url.params["grant_type"] == "refresh_token"
        assert json.loads(request.content) == {"refresh_token": "refresh-1"}
        return httpx.Response(
            200,
            json={
                "access_token": "access-2",
                "refresh_token": "refresh-2",
                "expires_in": 3600,
                "user": {"id": "user-1"},
            },
        )

    verifier = _verifier_with(monkeypatch, handler)
    result = await verifier.verify(
        {"sb-access-token": "access-1", "sb-refresh-token": "refresh-1"}
    )

    assert calls == ["GET /auth/v1/user", "POST /auth/v1/token"]
    assert result.principal == Principal(user_id="user-1")
    assert [(c.name, c.value, c.max_age) for c in result.cookies] == [
        ("sb-access-token", "access-2", 3600),
        ("sb-refresh-token", "refresh-2", None),
    ]


@pytest.mark.asyncio
async def test_rejected_refresh_clears_cookies(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            return httpx.Response(401)
        return httpx.Response(400, json={"error": "invalid_grant"})

    verifier = _verifier_with(monkeypatch, handler)
    result = await verifier.verify(
        {"sb-access-token": "access-1", "sb-refresh-token": "refresh-1"}
    )

    assert result.principal is None
    assert {(c.name, c.value, c.max_age) for c in result.cookies} == {
        ("sb-access-token", "", 0),
        ("sb-refresh-token", "", 0),
    }


@pytest.mark.asyncio
async def test_invalid_token_without_refresh_is_anonymous(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    verifier = _verifier_with(monkeypatch, lambda request: httpx.Response(403))

    result = await verifier.verify({"sb-access-token": "access-1"})

    assert result.principal is None
    assert result.cookies == ()


@pytest.mark.asyncio
async def test_backend_errors_propagate_for_caller_to_fail_closed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    verifier = _verifier_with(monkeypatch, lambda request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        await verifier.verify({"sb-access-token": "access-1"})


def test_remote_verifier_requires_url_and_key() -> None:
    with pytest.raises(ValueError, match="base_url"):
        RemoteSessionVerifier("", "key")
    with pytest.raises(ValueError, match="api_key"):
        RemoteSessionVerifier(BASE_URL, "")


@pytest.mark.asyncio
async def test_close_is_idempotent() -> None:
    verifier = RemoteSessionVerifier(BASE_URL, "anon-key-1234")
    client = await verifier._get_client()

    await verifier.close()
    await verifier.close()

    assert client.is_closed


@pytest.mark.asyncio
async def test_anonymous_verifier_has_no_backend_to_check() -> None:
    assert await AnonymousSessionVerifier().check_health() is None


@pytest.mark.asyncio
async def test_health_check_reports_reachable_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"name": "GoTrue"})

    verifier = _verifier_with(monkeypatch, handler)

    assert await verifier.check_health() is True
    assert seen == ["/auth/v1/health"]


@pytest.mark.asyncio
async def test_health_check_reports_error_status_as_down(monkeypatch: pytest.MonkeyPatch) -> None:
    verifier = _verifier_with(monkeypatch, lambda request: httpx.Response(503))

    assert await verifier.check_health() is False


@pytest.mark.asyncio
async def test_health_check_reports_transport_failure_as_down(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    verifier = _verifier_with(monkeypatch, handler)

    assert await verifier.check_health() is False
