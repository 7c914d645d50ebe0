from __future__ import annotations

import json
import re

import pytest

from webguard.cli import build_parser, main


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("WEBGUARD_AUTH_URL", "WEBGUARD_MAX_UPLOAD_BYTES"):
        monkeypatch.delenv(name, raising=False)


def _run(capsys: pytest.CaptureFixture[str], argv: list[str]) -> tuple[int, dict]:
    exit_code = main(argv)
    return exit_code, json.loads(capsys.readouterr().out)


def test_check_file_command_parses_optional_name() -> None:
    args = build_parser().parse_args(
        ["check-file", "upload.bin", "--content-type", "image/png", "--name", "cat.png"]
    )

    assert args.command == "check-file"
    assert args.path == "upload.bin"
    assert args.content_type == "image/png"
    assert args.name == "cat.png"


def test_encode_command_rejects_unknown_context() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["encode", "--context", "sql", "x"])


def test_main_check_url_accepts_public_url(capsys) -> None:
    exit_code, payload = _run(capsys, ["check-url", "https://example.com/a"])

    assert exit_code == 0
    assert payload == {"url": "https://example.com/a", "allowed": True}


def test_main_check_url_reports_rejection(capsys) -> None:
    exit_code, payload = _run(capsys, ["check-url", "http://localhost:8080/"])

    assert exit_code == 1
    assert payload == {"error": "Blocked host: localhost", "type": "blocked_host"}


def test_main_check_file_validates_signature(tmp_path, capsys) -> None:
    path = tmp_path / "upload.bin"
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32)

    exit_code, payload = _run(
        capsys,
        ["check-file", str(path), "--content-type", "image/png", "--name", "cat photo.png"],
    )

    assert exit_code == 0
    assert payload["filename"] == "cat_photo.png"
    assert re.fullmatch(r"[0-9a-f-]{36}\.png", payload["stored_name"])
    assert payload["content_type"] == "image/png"
    assert payload["size"] == 40


def test_main_check_file_reports_mismatch(tmp_path, capsys) -> None:
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"MZ\x90\x00" + b"\x00" * 32)

    exit_code, payload = _run(
        capsys, ["check-file", str(path), "--content-type", "application/pdf"]
    )

    assert exit_code == 1
    assert payload["type"] == "signature_mismatch"


def test_main_check_file_missing_path_is_reported(tmp_path, capsys) -> None:
    exit_code, payload = _run(
        capsys,
        ["check-file", str(tmp_path / "missing.png"), "--content-type", "image/png"],
    )

    assert exit_code == 1
    assert payload["type"] == "FileNotFoundError"


def test_main_name_commands(capsys) -> None:
    exit_code, payload = _run(capsys, ["sanitize-name", "../etc/passwd"])
    assert exit_code == 0
    assert payload == {"name": "_etc_passwd"}

    exit_code, payload = _run(capsys, ["safe-name", "Report.PDF"])
    assert exit_code == 0
    assert payload["name"].endswith(".pdf")


def test_main_encode_command(capsys) -> None:
    exit_code, payload = _run(capsys, ["encode", "--context", "html", "<b>&</b>"])

    assert exit_code == 0
    assert payload == {"context": "html_body", "value": "&lt;b&gt;&amp;&lt;/b&gt;"}


def test_main_sanitize_html_command(capsys) -> None:
    markup = '<p onclick="x()">hi <script>alert(1)</script></p>'

    exit_code, payload = _run(capsys, ["sanitize-html", markup])
    assert exit_code == 0
    assert payload["html"].startswith("<p>hi")
    assert "<script" not in payload["html"]
    assert "onclick" not in payload["html"]

    exit_code, payload = _run(capsys, ["sanitize-html", "--strip-all", "<p>hi</p>"])
    assert exit_code == 0
    assert payload == {"html": "hi"}
