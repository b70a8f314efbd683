"""LiveUpdateChannel のユニットテスト"""

import asyncio
from typing import Any

import pytest
from appconfig import AppConfigError, AppConfigErrorCodes, LiveUpdateChannel
from appconfig.channel import KEEPALIVE_MESSAGE

URL = "wss://example.test/apprapp/wsfeature?instance_id=g&collection_id=c&environment_id=e"


def make_channel(authenticator: Any, connector: Any, idle_timeout: float = 5.0) -> LiveUpdateChannel:
    return LiveUpdateChannel(URL, authenticator, idle_timeout=idle_timeout, connector=connector)


async def test_signals_delivered_and_keepalive_ignored(
    authenticator: Any, connector: Any, until: Any
) -> None:
    """変更通知は on_signal に届き、キープアライブは無視されること。"""
    signals: list[int] = []
    connected: list[int] = []
    channel = make_channel(authenticator, connector)
    task = asyncio.create_task(
        channel.listen(lambda: signals.append(1), lambda: connected.append(1))
    )
    await until(lambda: bool(connector.connections))
    connector.current.push(KEEPALIVE_MESSAGE)
    connector.current.push("configuration changed")
    connector.current.push(b"binary change")
    await until(lambda: len(signals) == 2)
    assert connected == [1]

    connector.current.push(OSError("reset"))
    with pytest.raises(AppConfigError) as exc_info:
        await task
    assert exc_info.value.code == AppConfigErrorCodes.CHANNEL


async def test_bearer_token_sent_at_handshake(authenticator: Any, connector: Any) -> None:
    """接続ごとに新しいトークンが Authorization ヘッダーで送られること。"""
    connector.failures = 2
    channel = make_channel(authenticator, connector)
    for _ in range(2):
        with pytest.raises(AppConfigError):
            await channel.listen(lambda: None)
    headers = [attempt["additional_headers"]["Authorization"] for attempt in connector.attempts]
    assert headers == ["Bearer token-1", "Bearer token-2"]
    assert connector.attempts[0]["url"] == URL


async def test_connection_failure_is_channel_error(authenticator: Any, connector: Any) -> None:
    """接続失敗は CHANNEL_ERROR として送出されること。"""
    connector.failures = 1
    with pytest.raises(AppConfigError) as exc_info:
        await make_channel(authenticator, connector).listen(lambda: None)
    assert exc_info.value.code == AppConfigErrorCodes.CHANNEL
    assert isinstance(exc_info.value.__cause__, OSError)


async def test_idle_timeout_ends_connection(authenticator: Any, connector: Any) -> None:
    """一定時間トラフィックが無い場合は CHANNEL_ERROR で終了すること。"""
    channel = make_channel(authenticator, connector, idle_timeout=0.05)
    with pytest.raises(AppConfigError) as exc_info:
        await channel.listen(lambda: None)
    assert exc_info.value.code == AppConfigErrorCodes.CHANNEL
    assert "No traffic" in str(exc_info.value)


async def test_token_failure_is_channel_error(connector: Any) -> None:
    """トークン取得失敗も CHANNEL_ERROR として扱われ、接続は試行されないこと。"""

    class FailingAuthenticator:
        async def get_token(self) -> str:
            raise AppConfigError(AppConfigErrorCodes.TOKEN_REQUEST_FAILED, "iam down")

    with pytest.raises(AppConfigError) as exc_info:
        await make_channel(FailingAuthenticator(), connector).listen(lambda: None)
    assert exc_info.value.code == AppConfigErrorCodes.CHANNEL
    assert connector.attempts == []
