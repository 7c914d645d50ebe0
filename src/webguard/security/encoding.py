"""Output encoding for untrusted text, one function per rendering context.

Validate on input, escape on output: every encoder here is total and pure,
and the caller picks the context. There is no default context.
Each encoder returns a ``str`` subclass named after its context so renderers
can annotate which kind of safe text they accept.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

import bleach


class EncodingContext(str, Enum):
    HTML_BODY = "html_body"
    URL_PARAM = "url_param"
    SCRIPT_LITERAL = "script_literal"
    CSS_VALUE = "css_value"


class HtmlText(str):
    __slots__ = ()


class SanitizedHtml(str):
    __slots__ = ()


class UrlParam(str):
    __slots__ = ()


class ScriptLiteral(str):
    __slots__ = ()


class CssValue(str):
    __slots__ = ()


# Ampersand must be replaced first so the later entities are not re-escaped.
_HTML_REPLACEMENTS = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)

# Still valid JSON escapes, but they keep the literal from closing a <script>
# element or breaking pre-ES2019 parsers.
_SCRIPT_REPLACEMENTS = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)

# Characters encodeURIComponent leaves alone besides [A-Za-z0-9_.-~].
_URL_SAFE_CHARS = "!*'()"

_TAG_RE = re.compile(r"<[^>]*>")
_CSS_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass(frozen=True, slots=True)
class HtmlPolicy:
    """Allow-list for user-supplied rich HTML."""

    tags: frozenset[str] = frozenset(
        {"b", "i", "em", "strong", "a", "p", "br", "ul", "ol", "li"}
    )
    attributes: frozenset[str] = frozenset({"href", "target", "rel"})
    protocols: frozenset[str] = frozenset({"http", "https", "mailto"})


DEFAULT_HTML_POLICY = HtmlPolicy()


def escape_html(value: str) -> HtmlText:
    """Escape text for an HTML body or quoted attribute value."""
    if not value:
        return HtmlText("")
    escaped = str(value)
    for char, entity in _HTML_REPLACEMENTS:
        escaped = escaped.replace(char, entity)
    return HtmlText(escaped)


def strip_tags(html: str) -> SanitizedHtml:
    """Remove every tag, keeping only the text between them."""
    return SanitizedHtml(_TAG_RE.sub("", html or ""))


def sanitize_html(html: str, *, policy: HtmlPolicy = DEFAULT_HTML_POLICY) -> SanitizedHtml:
    """Keep only allow-listed tags and attributes from user-supplied HTML.

    Disallowed tags are stripped rather than escaped, and ``data-*``
    attributes are never kept because the attribute allow-list is explicit.
    """
    if not html:
        return SanitizedHtml("")
    cleaner = bleach.Cleaner(
        tags=policy.tags,
        attributes=sorted(attr for attr in policy.attributes if not attr.startswith("data-")),
        protocols=policy.protocols,
        strip=True,
        strip_comments=True,
    )
    return SanitizedHtml(cleaner.clean(html))


def encode_url_param(value: str) -> UrlParam:
    """Percent-encode a value for use as a single query-string component."""
    return UrlParam(quote(value or "", safe=_URL_SAFE_CHARS, errors="replace"))


def escape_for_js(value: str) -> ScriptLiteral:
    """Return a quoted JSON string literal safe to embed in a script block."""
    literal = json.dumps(value if value is not None else "", ensure_ascii=False)
    for char, escape in _SCRIPT_REPLACEMENTS:
        literal = literal.replace(char, escape)
    return ScriptLiteral(literal)


def escape_css(value: str) -> CssValue:
    """Reduce a value to identifier-safe characters for a CSS declaration."""
    return CssValue(_CSS_UNSAFE_RE.sub("", value or ""))


_ENCODERS: dict[EncodingContext, Callable[[str], str]] = {
    EncodingContext.HTML_BODY: escape_html,
    EncodingContext.URL_PARAM: encode_url_param,
    EncodingContext.SCRIPT_LITERAL: escape_for_js,
    EncodingContext.CSS_VALUE: escape_css,
}


def encode_for(context: EncodingContext, value: str) -> str:
    """Encode ``value`` for an explicitly chosen output context."""
    if not isinstance(context, EncodingContext):
        raise TypeError(
            f"context must be an EncodingContext, got {type(context).__name__}"
        )
    return _ENCODERS[context](value)
