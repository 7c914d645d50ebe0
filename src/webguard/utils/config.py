"""Environment-based configuration for webguard.

All deployment-tunable values (upload limit, route prefixes, auth backend)
are read here once and handed to the components that need them; nothing else
reads the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from webguard.security.uploads import MAX_UPLOAD_BYTES

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_PROTECTED_PREFIXES = ("/dashboard", "/settings", "/admin")
DEFAULT_AUTH_PREFIXES = ("/login", "/signup")


def mask_secret(value: str | None) -> str | None:
    """Mask a secret for logging.

    Shows only the last 4 characters (if present). Examples:
      - None -> None
      - "" -> ""
      - "abcd" -> "***abcd"
      - "anon-123456" -> "***3456"
    """

    if value is None:
        return None
    if value == "":
        return ""
    tail = value[-4:]
    return f"***{tail}"


@dataclass(frozen=True, slots=True)
class WebGuardConfig:
    auth_url: str | None = None
    auth_api_key: str | None = None
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    protected_prefixes: tuple[str, ...] = DEFAULT_PROTECTED_PREFIXES
    auth_prefixes: tuple[str, ...] = DEFAULT_AUTH_PREFIXES
    login_path: str = "/login"
    landing_path: str = "/dashboard"
    redirect_param: str = "redirect"
    security_headers: bool = True
    log_dir: str = "data/logs"
    log_level: str = "INFO"

    def to_log_dict(self) -> dict[str, object]:
        """A safe-to-log view of config values."""

        return {
            "auth_url": self.auth_url,
            "auth_api_key": mask_secret(self.auth_api_key),
            "max_upload_bytes": self.max_upload_bytes,
            "protected_prefixes": list(self.protected_prefixes),
            "auth_prefixes": list(self.auth_prefixes),
            "login_path": self.login_path,
            "landing_path": self.landing_path,
            "redirect_param": self.redirect_param,
            "security_headers": self.security_headers,
            "log_dir": self.log_dir,
            "log_level": self.log_level,
        }

    def __repr__(self) -> str:  # pragma: no cover
        safe = self.to_log_dict()
        return "WebGuardConfig(" + ", ".join(f"{k}={safe[k]!r}" for k in safe) + ")"


def _text(env: Mapping[str, str], name: str, default: str) -> str:
    return (env.get(name) or default).strip() or default


def _prefixes(env: Mapping[str, str], name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    prefixes = tuple(item.strip() for item in raw.split(",") if item.strip())
    for prefix in prefixes:
        if not prefix.startswith("/"):
            raise ValueError(f"{name} entries must start with '/': {prefix!r}")
    return prefixes


def _path(env: Mapping[str, str], name: str, default: str) -> str:
    value = _text(env, name, default)
    if not value.startswith("/"):
        raise ValueError(f"{name} must be an absolute path starting with '/'.")
    return value


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer.") from None
    if value <= 0:
        raise ValueError(f"{name} must be greater than 0.")
    return value


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = (env.get(name) or "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false).")


def load_config(env: Mapping[str, str] | None = None) -> WebGuardConfig:
    """Load config from environment variables.

    Optional:
      - WEBGUARD_AUTH_URL (session verification backend; unset = no sessions)
      - WEBGUARD_AUTH_API_KEY (required when WEBGUARD_AUTH_URL is set)
      - WEBGUARD_MAX_UPLOAD_BYTES (default: 10485760)
      - WEBGUARD_PROTECTED_PREFIXES (default: /dashboard,/settings,/admin)
      - WEBGUARD_AUTH_PREFIXES (default: /login,/signup)
      - WEBGUARD_LOGIN_PATH (default: /login)
      - WEBGUARD_LANDING_PATH (default: /dashboard)
      - WEBGUARD_REDIRECT_PARAM (default: redirect)
      - WEBGUARD_SECURITY_HEADERS (default: true)
      - WEBGUARD_LOG_DIR (default: data/logs)
      - WEBGUARD_LOG_LEVEL (default: INFO)
    """

    env = os.environ if env is None else env

    auth_url = (env.get("WEBGUARD_AUTH_URL") or "").strip().rstrip("/") or None
    auth_api_key = (env.get("WEBGUARD_AUTH_API_KEY") or "").strip() or None
    if auth_url and not auth_api_key:
        raise ValueError(
            "Missing required environment variable: WEBGUARD_AUTH_API_KEY. "
            "It must be set whenever WEBGUARD_AUTH_URL is configured."
        )

    return WebGuardConfig(
        auth_url=auth_url,
        auth_api_key=auth_api_key,
        max_upload_bytes=_positive_int(env, "WEBGUARD_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
        protected_prefixes=_prefixes(
            env, "WEBGUARD_PROTECTED_PREFIXES", DEFAULT_PROTECTED_PREFIXES
        ),
        auth_prefixes=_prefixes(env, "WEBGUARD_AUTH_PREFIXES", DEFAULT_AUTH_PREFIXES),
        login_path=_path(env, "WEBGUARD_LOGIN_PATH", "/login"),
        landing_path=_path(env, "WEBGUARD_LANDING_PATH", "/dashboard"),
        redirect_param=_text(env, "WEBGUARD_REDIRECT_PARAM", "redirect"),
        security_headers=_flag(env, "WEBGUARD_SECURITY_HEADERS", True),
        log_dir=_text(env, "WEBGUARD_LOG_DIR", "data/logs"),
        log_level=_text(env, "WEBGUARD_LOG_LEVEL", "INFO"),
    )
