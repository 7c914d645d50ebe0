"""Global pytest configuration.

- Registers the `integration` marker.
- Loads environment variables from `.env` when python-dotenv is available.

Integration tests talk to a real auth backend and are skipped by default
(run with: `pytest -m integration`).
"""

from __future__ import annotations

import pytest


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (may use network)",
    )

    try:
        from dotenv import load_dotenv
    except ImportError:
        return
    load_dotenv()
