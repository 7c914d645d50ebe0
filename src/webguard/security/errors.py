"""Typed rejection outcomes raised by the security validators."""

from __future__ import annotations


class SecurityValidationError(ValueError):
    """Permanent rejection of an untrusted input.

    ``kind`` is a stable machine-readable key; ``message`` is safe to show to
    the end user and never echoes secrets.
    """

    kind = "security_validation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidUrl(SecurityValidationError):
    kind = "invalid_url"


class BlockedScheme(SecurityValidationError):
    kind = "blocked_scheme"


class BlockedHost(SecurityValidationError):
    kind = "blocked_host"


class FileTooLarge(SecurityValidationError):
    kind = "file_too_large"


class EmptyFile(SecurityValidationError):
    kind = "empty_file"


class InvalidExtension(SecurityValidationError):
    kind = "invalid_extension"


class InvalidMimeType(SecurityValidationError):
    kind = "invalid_mime_type"


class SignatureMismatch(SecurityValidationError):
    kind = "signature_mismatch"
