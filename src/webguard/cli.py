"""Command-line access to the validators.

Commands:
  - check-url URL
  - check-file PATH --content-type MIME
  - safe-name NAME
  - sanitize-name NAME
  - encode --context html|url|script|css VALUE
  - sanitize-html VALUE [--strip-all]

Outputs JSON to stdout. Rejections exit with status 1 and a JSON error body.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from webguard.security.encoding import EncodingContext, encode_for, sanitize_html, strip_tags
from webguard.security.errors import SecurityValidationError
from webguard.security.filenames import generate_safe_filename, sanitize_filename
from webguard.security.ssrf import validate_external_url
from webguard.security.uploads import FileCandidate, UploadPolicy, validate_file_upload
from webguard.utils.config import load_config
from webguard.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

_CONTEXTS = {
    "html": EncodingContext.HTML_BODY,
    "url": EncodingContext.URL_PARAM,
    "script": EncodingContext.SCRIPT_LITERAL,
    "css": EncodingContext.CSS_VALUE,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webguard",
        description="Validate URLs, uploads and output encoding from the command line",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_url = sub.add_parser("check-url", help="Check a URL before fetching it server-side")
    p_url.add_argument("url", help="URL to check")

    p_file = sub.add_parser("check-file", help="Validate a local file as if it were uploaded")
    p_file.add_argument("path", help="Path to the file")
    p_file.add_argument(
        "--content-type",
        required=True,
        help="Declared MIME type, e.g. image/png",
    )
    p_file.add_argument(
        "--name",
        default=None,
        help="Declared filename (default: the file's own name)",
    )

    p_safe = sub.add_parser("safe-name", help="Generate a collision-free storage filename")
    p_safe.add_argument("name", help="Original filename")

    p_sanitize = sub.add_parser("sanitize-name", help="Strip unsafe characters from a filename")
    p_sanitize.add_argument("name", help="Original filename")

    p_encode = sub.add_parser("encode", help="Encode a value for an output context")
    p_encode.add_argument(
        "--context",
        required=True,
        choices=sorted(_CONTEXTS),
        help="Output context the value will be embedded in",
    )
    p_encode.add_argument("value", help="Untrusted value")

    p_html = sub.add_parser("sanitize-html", help="Reduce rich HTML to the allowed tags")
    p_html.add_argument("value", help="Untrusted HTML")
    p_html.add_argument(
        "--strip-all",
        action="store_true",
        help="Remove every tag instead of keeping the allow-list",
    )

    return parser


def _cmd_check_url(url: str) -> dict[str, Any]:
    return {"url": validate_external_url(url), "allowed": True}


def _cmd_check_file(path: str, content_type: str, name: str | None) -> dict[str, Any]:
    file_path = Path(path)
    policy = UploadPolicy(max_size=load_config().max_upload_bytes)
    declared_name = name or file_path.name
    size = file_path.stat().st_size
    with file_path.open("rb") as fh:
        signature = validate_file_upload(
            FileCandidate(
                source=fh,
                size=size,
                content_type=content_type,
                filename=declared_name,
            ),
            policy=policy,
        )
    return {
        "filename": sanitize_filename(declared_name),
        "stored_name": generate_safe_filename(declared_name),
        "content_type": signature.mime_type,
        "size": size,
    }


def _cmd_encode(context: str, value: str) -> dict[str, str]:
    return {"context": _CONTEXTS[context].value, "value": encode_for(_CONTEXTS[context], value)}


def _cmd_sanitize_html(value: str, strip_all: bool) -> dict[str, str]:
    return {"html": strip_tags(value) if strip_all else sanitize_html(value)}


def main(argv: list[str] | None = None) -> int:
    configure_logging(log_level="WARNING", log_dir=None)

    parser = build_parser()
    args = parser.parse_args(argv)
    logger.debug(
        "CLI command received",
        extra={"event": "cli.command.received", "command": args.command},
    )

    try:
        if args.command == "check-url":
            payload: dict[str, Any] = _cmd_check_url(args.url)
        elif args.command == "check-file":
            payload = _cmd_check_file(args.path, args.content_type, args.name)
        elif args.command == "safe-name":
            payload = {"name": generate_safe_filename(args.name)}
        elif args.command == "sanitize-name":
            payload = {"name": sanitize_filename(args.name)}
        elif args.command == "encode":
            payload = _cmd_encode(args.context, args.value)
        elif args.command == "sanitize-html":
            payload = _cmd_sanitize_html(args.value, args.strip_all)
        else:
            parser.error(f"Unknown command: {args.command}")
            return 2

        json.dump(payload, sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")
        return 0

    except SecurityValidationError as e:
        json.dump({"error": e.message, "type": e.kind}, sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")
        return 1
    except Exception as e:  # noqa: BLE001
        logger.exception(
            "CLI command failed",
            extra={
                "event": "cli.command.failed",
                "command": args.command,
                "error_type": type(e).__name__,
            },
        )
        # Keep output machine-readable.
        json.dump({"error": str(e), "type": type(e).__name__}, sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
