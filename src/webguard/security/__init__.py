"""Stateless validators for untrusted URLs, uploads, filenames and output."""

from webguard.security.encoding import (
    DEFAULT_HTML_POLICY,
    CssValue,
    EncodingContext,
    HtmlPolicy,
    HtmlText,
    SanitizedHtml,
    ScriptLiteral,
    UrlParam,
    encode_for,
    encode_url_param,
    escape_css,
    escape_for_js,
    escape_html,
    sanitize_html,
    strip_tags,
)
from webguard.security.errors import (
    BlockedHost,
    BlockedScheme,
    EmptyFile,
    FileTooLarge,
    InvalidExtension,
    InvalidMimeType,
    InvalidUrl,
    SecurityValidationError,
    SignatureMismatch,
)
from webguard.security.filenames import generate_safe_filename, sanitize_filename
from webguard.security.ssrf import (
    DEFAULT_SSRF_POLICY,
    SsrfPolicy,
    is_internal_url,
    validate_external_url,
)
from webguard.security.uploads import (
    DEFAULT_REGISTRY,
    DEFAULT_UPLOAD_POLICY,
    MAX_UPLOAD_BYTES,
    FileCandidate,
    FileSignature,
    SignatureRegistry,
    UploadPolicy,
    read_prefix,
    validate_file_upload,
)

__all__ = [
    "DEFAULT_HTML_POLICY",
    "DEFAULT_REGISTRY",
    "DEFAULT_SSRF_POLICY",
    "DEFAULT_UPLOAD_POLICY",
    "MAX_UPLOAD_BYTES",
    "BlockedHost",
    "BlockedScheme",
    "CssValue",
    "EmptyFile",
    "EncodingContext",
    "FileCandidate",
    "FileSignature",
    "FileTooLarge",
    "HtmlPolicy",
    "HtmlText",
    "InvalidExtension",
    "InvalidMimeType",
    "InvalidUrl",
    "SanitizedHtml",
    "ScriptLiteral",
    "SecurityValidationError",
    "SignatureMismatch",
    "SignatureRegistry",
    "SsrfPolicy",
    "UploadPolicy",
    "UrlParam",
    "encode_for",
    "encode_url_param",
    "escape_css",
    "escape_for_js",
    "escape_html",
    "generate_safe_filename",
    "is_internal_url",
    "read_prefix",
    "sanitize_filename",
    "sanitize_html",
    "strip_tags",
    "validate_external_url",
    "validate_file_upload",
]
