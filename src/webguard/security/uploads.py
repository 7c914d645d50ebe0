"""File upload validation by size, extension, declared type and magic bytes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import IO, Union

from webguard.security.errors import (
    EmptyFile,
    FileTooLarge,
    InvalidExtension,
    InvalidMimeType,
    SecurityValidationError,
    SignatureMismatch,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

ByteSource = Union[bytes, bytearray, memoryview, IO[bytes]]


@dataclass(frozen=True, slots=True)
class FileSignature:
    """One accepted file type: MIME type, extensions and leading bytes."""

    mime_type: str
    extensions: tuple[str, ...]
    magic: bytes

    def __post_init__(self) -> None:
        if not self.magic:
            raise ValueError(f"magic bytes must not be empty for {self.mime_type}")
        normalized = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in self.extensions
        )
        if not normalized:
            raise ValueError(f"at least one extension is required for {self.mime_type}")
        object.__setattr__(self, "extensions", normalized)


class SignatureRegistry(Mapping[str, FileSignature]):
    """Immutable registry of accepted file types keyed by MIME type.

    Keeping the extension, MIME type and signature of each type in a single
    entry stops the three allow-lists from drifting apart.
    """

    def __init__(self, signatures: Iterable[FileSignature] = ()) -> None:
        self._by_mime: dict[str, FileSignature] = {}
        for signature in signatures:
            if signature.mime_type in self._by_mime:
                raise ValueError(f"duplicate signature for {signature.mime_type}")
            self._by_mime[signature.mime_type] = signature

    def __getitem__(self, mime_type: str) -> FileSignature:
        return self._by_mime[mime_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_mime)

    def __len__(self) -> int:
        return len(self._by_mime)

    def __repr__(self) -> str:
        return f"SignatureRegistry({sorted(self._by_mime)!r})"

    @property
    def allowed_extensions(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for signature in self._by_mime.values():
            for ext in signature.extensions:
                seen.setdefault(ext, None)
        return tuple(seen)

    @property
    def max_signature_length(self) -> int:
        return max((len(sig.magic) for sig in self._by_mime.values()), default=0)

    def signature_for(self, mime_type: str) -> FileSignature | None:
        return self._by_mime.get(mime_type)

    def register(self, signature: FileSignature) -> SignatureRegistry:
        """Return a new registry with ``signature`` added."""
        return SignatureRegistry([*self._by_mime.values(), signature])


DEFAULT_REGISTRY = SignatureRegistry(
    [
        FileSignature("image/jpeg", (".jpg", ".jpeg"), b"\xff\xd8\xff"),
        FileSignature("image/png", (".png",), b"\x89PNG"),
        FileSignature("image/gif", (".gif",), b"GIF8"),
        FileSignature("image/webp", (".webp",), b"RIFF"),
        FileSignature("application/pdf", (".pdf",), b"%PDF"),
    ]
)


@dataclass(frozen=True, slots=True)
class UploadPolicy:
    max_size: int = MAX_UPLOAD_BYTES
    registry: SignatureRegistry = field(default_factory=lambda: DEFAULT_REGISTRY)

    def __post_init__(self) -> None:
        if self.max_size <= 0:
            raise ValueError("max_size must be > 0")


DEFAULT_UPLOAD_POLICY = UploadPolicy()


@dataclass(frozen=True, slots=True)
class FileCandidate:
    """An uploaded file as declared by the client, plus its byte source."""

    source: ByteSource
    size: int
    content_type: str
    filename: str


def read_prefix(source: ByteSource, length: int) -> bytes:
    """Read at most ``length`` leading bytes without consuming the stream.

    Seekable streams are rewound to where they were, so the caller can still
    persist the full file afterwards.
    """
    if length <= 0:
        return b""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source[:length])

    position: int | None = None
    tell = getattr(source, "tell", None)
    if callable(tell):
        try:
            position = tell()
        except OSError:
            position = None
    try:
        data = source.read(length)
    finally:
        if position is not None:
            source.seek(position)
    return bytes(data or b"")


def _extension_of(filename: str) -> str:
    return "." + filename.rsplit(".", 1)[-1].lower()


def _format_size(size: int) -> str:
    megabytes = size / 1024 / 1024
    return f"{megabytes:g}MB"


def _rejected(exc: SecurityValidationError) -> SecurityValidationError:
    logger.info(
        "File upload rejected",
        extra={"event": "upload.rejected", "kind": exc.kind},
    )
    return exc


def validate_file_upload(
    candidate: FileCandidate,
    *,
    policy: UploadPolicy = DEFAULT_UPLOAD_POLICY,
) -> FileSignature:
    """Validate an upload before it is persisted or processed.

    Checks run cheapest first and stop at the first failure: size, emptiness,
    extension, declared MIME type, then the leading bytes. Returns the matched
    signature entry.
    """
    if candidate.size > policy.max_size:
        raise _rejected(FileTooLarge(f"File too large. Max size: {_format_size(policy.max_size)}"))
    if candidate.size <= 0:
        raise _rejected(EmptyFile("Empty file"))

    registry = policy.registry
    ext = _extension_of(candidate.filename or "")
    allowed = registry.allowed_extensions
    if ext not in allowed:
        raise _rejected(
            InvalidExtension(f"Invalid extension: {ext}. Allowed: {', '.join(allowed)}")
        )

    mime_type = (candidate.content_type or "").split(";", 1)[0].strip().lower()
    signature = registry.signature_for(mime_type)
    if signature is None:
        raise _rejected(InvalidMimeType(f"Invalid MIME type: {mime_type}"))

    prefix = read_prefix(candidate.source, registry.max_signature_length)
    if prefix[: len(signature.magic)] != signature.magic:
        raise _rejected(
            SignatureMismatch(
                f"File signature mismatch. Expected {mime_type} "
                "but got different signature."
            )
        )

    logger.debug(
        "File upload accepted",
        extra={"event": "upload.accepted", "mime_type": signature.mime_type},
    )
    return signature
