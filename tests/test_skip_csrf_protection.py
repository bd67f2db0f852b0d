from __future__ import annotations

from typing import Any

import pytest

from conftest import build_request
from csrf_sync.core.csrf import InvalidCsrfTokenError, csrf_sync

pytestmark = pytest.mark.anyio


async def test_skips_protection_when_predicate_returns_true() -> None:
    guard = csrf_sync(skip_csrf_protection=lambda request: True)
    request = build_request("POST")

    await guard.csrf_synchronised_protection(request)

    assert callable(request.state.csrf_token)


async def test_predicate_receives_request() -> None:
    seen = []
    guard = csrf_sync(skip_csrf_protection=lambda request: seen.append(request.url.path) or True)

    await guard.csrf_synchronised_protection(build_request("DELETE"))

    assert seen == ["/submit"]


def _predicate_returning(value: Any):
    return lambda request: value


@pytest.mark.parametrize(
    "skip_csrf_protection",
    [
        _predicate_returning(False),
        _predicate_returning(None),
        _predicate_returning(""),
        _predicate_returning({}),
        _predicate_returning(1),
        _predicate_returning("true"),
        None,
    ],
    ids=["false", "none", "empty-string", "empty-dict", "one", "string-true", "no-predicate"],
)
async def test_non_true_results_keep_protection(skip_csrf_protection) -> None:
    guard = csrf_sync(skip_csrf_protection=skip_csrf_protection)
    session: dict[str, Any] = {}
    token = guard.generate_token(build_request(session=session))

    with pytest.raises(InvalidCsrfTokenError):
        await guard.csrf_synchronised_protection(build_request(session=session))

    request = build_request(session=session, headers={"x-csrf-token": token})
    await guard.csrf_synchronised_protection(request)
    assert callable(request.state.csrf_token)
