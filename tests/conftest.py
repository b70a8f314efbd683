"""appconfig テスト共通フィクスチャ"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest


def sample_document() -> dict[str, Any]:
    return {
        "features": [
            {
                "name": "Dark mode",
                "feature_id": "dark-mode",
                "type": "BOOLEAN",
                "enabled": True,
                "enabled_value": True,
                "disabled_value": False,
                "segment_rules": [
                    {
                        "rules": [{"segments": ["beta-users"]}],
                        "value": False,
                        "order": 1,
                    }
                ],
            },
            {
                "name": "Banner text",
                "feature_id": "banner",
                "type": "STRING",
                "enabled": False,
                "enabled_value": "hello",
                "disabled_value": "off",
            },
        ],
        "properties": [
            {
                "name": "Page size",
                "property_id": "page-size",
                "type": "NUMERIC",
                "value": 20,
                "segment_rules": [
                    {
                        "rules": [{"segments": ["beta-users"]}],
                        "value": 50,
                        "order": 1,
                    }
                ],
            }
        ],
        "segments": [
            {
                "name": "Beta users",
                "segment_id": "beta-users",
                "rules": [
                    {
                        "attribute_name": "email",
                        "operator": "endsWith",
                        "values": ["@beta.example.com"],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def document() -> dict[str, Any]:
    return sample_document()


class FakeAuthenticator:
    """呼び出し回数ごとに異なるトークンを返す認証スタブ。"""

    def __init__(self) -> None:
        self.calls = 0

    async def get_token(self) -> str:
        self.calls += 1
        return f"Bearer token-{self.calls}"


class FakeConnection:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | Exception] = asyncio.Queue()

    def push(self, item: str | Exception) -> None:
        self._queue.put_nowait(item)

    async def recv(self) -> str:
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item


class FakeConnector:
    """websockets.connect の代わりに使うインメモリ接続ファクトリ。"""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.attempts: list[dict[str, Any]] = []
        self.connections: list[FakeConnection] = []

    @property
    def current(self) -> FakeConnection:
        return self.connections[-1]

    def __call__(self, url: str, **options: Any) -> contextlib.AbstractAsyncContextManager[FakeConnection]:
        self.attempts.append({"url": url, **options})

        @contextlib.asynccontextmanager
        async def _open() -> AsyncIterator[FakeConnection]:
            if self.failures > 0:
                self.failures -= 1
                raise OSError("connection refused")
            conn = FakeConnection()
            self.connections.append(conn)
            yield conn

        return _open()


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """predicate が真になるまで待つ。"""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def until() -> Callable[..., Any]:
    return wait_until
