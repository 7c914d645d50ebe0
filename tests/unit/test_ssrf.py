from __future__ import annotations

import ipaddress
from dataclasses import replace

import pytest

from webguard.security import (
    BlockedHost,
    BlockedScheme,
    InvalidUrl,
    SsrfPolicy,
    is_internal_url,
    validate_external_url,
)


def test_validate_external_url_accepts_public_host() -> None:
    assert (
        validate_external_url("https://example.com/feed.xml?page=2")
        == "https://example.com/feed.xml?page=2"
    )
    assert validate_external_url("  http://93.184.216.34/  ") == "http://93.184.216.34/"


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost/admin",
        "http://LOCALHOST:8080/",
        "http://127.0.0.1/",
        "http://0.0.0.0/",
        "http://169.254.169.254/latest/meta-data/",
        "http://metadata.google.internal/computeMetadata/v1/",
        "https://Metadata.Azure.com/metadata/instance",
        "http://localhost./",
    ],
)
def test_denylisted_hostnames_are_blocked(url: str) -> None:
    with pytest.raises(BlockedHost):
        validate_external_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "http://10.0.0.1/",
        "http://172.16.5.4/",
        "http://172.31.255.255/",
        "http://192.168.1.1/",
        "http://127.8.8.8/",
        "http://0.1.2.3/",
        "http://169.254.10.20/",
        "http://[::1]/",
        "http://[fc00::1]/",
        "http://[fd12:3456::1]/",
        "http://[fe80::1]/",
        "http://[::ffff:10.0.0.1]/",
    ],
)
def test_private_ranges_are_blocked(url: str) -> None:
    with pytest.raises(BlockedHost, match="Private IP range blocked"):
        validate_external_url(url)


@pytest.mark.parametrize("url", ["http://127.1/", "http://2130706433/", "http://0x7f.0.0.1/"])
def test_shorthand_ipv4_loopback_is_blocked(url: str) -> None:
    with pytest.raises(BlockedHost):
        validate_external_url(url)


def test_public_neighbours_of_private_ranges_are_allowed() -> None:
    assert validate_external_url("http://172.32.0.1/")
    assert validate_external_url("http://172.15.0.1/")
    assert validate_external_url("http://11.0.0.1/")
    assert validate_external_url("http://[2001:4860:4860::8888]/")


@pytest.mark.parametrize(
    "url",
    [
        "file:///etc/passwd",
        "ftp://x",
        "gopher://x",
        "dict://localhost:11211/stat",
        "ldap://example.com",
        "javascript:alert(1)",
    ],
)
def test_non_http_schemes_are_blocked(url: str) -> None:
    with pytest.raises(BlockedScheme):
        validate_external_url(url)


def test_dangerous_scheme_substring_is_blocked_under_http() -> None:
    with pytest.raises(BlockedScheme, match="file:"):
        validate_external_url("https://example.com/redirect?to=file:///etc/passwd")


@pytest.mark.parametrize(
    "url",
    ["", "   ", "not a url", "example.com/path", "http://", "http://[::1/", "http://exa\nmple.com/"],
)
def test_unparsable_input_is_invalid(url: str) -> None:
    with pytest.raises(InvalidUrl):
        validate_external_url(url)


def test_rejections_are_value_errors_with_kind() -> None:
    with pytest.raises(ValueError) as excinfo:
        validate_external_url("http://127.0.0.1/")
    assert excinfo.value.kind == "blocked_host"


def test_is_internal_url() -> None:
    assert is_internal_url("http://192.168.0.10/")
    assert is_internal_url("file:///etc/hosts")
    assert is_internal_url("garbage")
    assert not is_internal_url("https://example.com/")


def test_policy_is_injectable() -> None:
    strict = replace(
        SsrfPolicy(),
        blocked_hosts=frozenset({"internal.example.com"}),
        blocked_networks=(ipaddress.ip_network("203.0.113.0/24"),),
    )

    with pytest.raises(BlockedHost):
        validate_external_url("https://internal.example.com/", policy=strict)
    with pytest.raises(BlockedHost):
        validate_external_url("https://203.0.113.7/", policy=strict)
    # The default denylist is not part of the custom policy.
    assert validate_external_url("http://localhost/", policy=strict) == "http://localhost/"
