from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from csrf_sync.core.config import CsrfSettings, Settings
from csrf_sync.main import create_app

TEST_SECRET_KEY = "test-secret-key-that-is-long-enough-for-sessions"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def build_request(
    method: str = "POST",
    *,
    session: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    form: dict[str, str] | None = None,
    body: bytes = b"",
) -> Request:
    """Build a bare ASGI request sharing ``session`` with earlier requests of the same client."""
    raw_headers = [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in (headers or {}).items()]
    if form is not None:
        body = urlencode(form).encode("utf-8")
        raw_headers.append((b"content-type", b"application/x-www-form-urlencoded"))

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {
        "type": "http",
        "method": method,
        "path": "/submit",
        "raw_path": b"/submit",
        "query_string": b"",
        "headers": raw_headers,
        "session": session if session is not None else {},
    }
    return Request(scope, receive)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, secret_key=TEST_SECRET_KEY, session_cookie_secure=False)


@pytest.fixture
def csrf_settings() -> CsrfSettings:
    return CsrfSettings(_env_file=None)


@pytest.fixture
def client(settings: Settings, csrf_settings: CsrfSettings):
    with TestClient(create_app(settings, csrf_settings)) as test_client:
        yield test_client
