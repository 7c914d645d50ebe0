"""Storage-safe filenames for uploaded files."""

from __future__ import annotations

import re
import uuid

_UNSAFE_FILENAME_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def generate_safe_filename(original_name: str) -> str:
    """Return ``<uuid4>.<ext>`` keeping only the lower-cased extension.

    The extension is read from the last path component and reduced to
    ``[a-z0-9]``, so ``a.tar-gz`` becomes ``.targz``; ``bin`` is used when
    nothing is left. Nothing else from the original name survives, which rules
    out path traversal and name collisions.
    """
    name = re.split(r"[\\/]", original_name or "")[-1]
    ext = ""
    if "." in name:
        ext = _NON_ALNUM_RE.sub("", name.rsplit(".", 1)[-1].lower())
    return f"{uuid.uuid4()}.{ext or 'bin'}"


def sanitize_filename(filename: str) -> str:
    """Strip traversal sequences and null bytes, then replace unsafe characters.

    Prefer :func:`generate_safe_filename` unless the original name must be
    partially preserved (e.g. for display).
    """
    safe = (filename or "").replace("..", "")
    safe = safe.replace("\0", "")
    return _UNSAFE_FILENAME_CHARS_RE.sub("_", safe)
