from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _no_threads_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` inline for unit tests.

    The HTTP client runs `requests` through `asyncio.to_thread`. In unit tests
    the fake transport returns immediately, and running it inline keeps request
    completion order deterministic.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001, D401
        return func(*args, **kwargs)

    monkeypatch.setattr("coinsetter.client.asyncio.to_thread", _to_thread)
    yield
