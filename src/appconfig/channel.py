"""Live update channel over a websocket connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from enum import Enum, auto
from typing import Any, Protocol

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .auth import Authenticator
from .exceptions import AppConfigError, AppConfigErrorCodes

# Periodic keepalive text frame sent by the service; it carries no change.
KEEPALIVE_MESSAGE = "test message"

logger = logging.getLogger(__name__)


class ChannelState(Enum):
    """Live update channel state."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()


class WsConnection(Protocol):
    async def recv(self) -> str | bytes: ...


Connector = Callable[..., AbstractAsyncContextManager[WsConnection]]


class LiveUpdateChannel:
    """One persistent subscription to the change notification endpoint.

    Each call to listen() performs exactly one connection attempt with a fresh
    bearer token and returns control only by raising AppConfigError(CHANNEL_ERROR)
    once the connection ends, whatever the reason.
    """

    def __init__(
        self,
        url: str,
        authenticator: Authenticator,
        idle_timeout: float = 120.0,
        open_timeout: float = 10.0,
        connector: Connector | None = None,
    ) -> None:
        self._url = url
        self._authenticator = authenticator
        self._idle_timeout = idle_timeout
        self._open_timeout = open_timeout
        self._connector: Connector = connector or connect

    @property
    def url(self) -> str:
        return self._url

    async def listen(
        self,
        on_signal: Callable[[], None],
        on_connected: Callable[[], None] | None = None,
    ) -> None:
        try:
            token = await self._authenticator.get_token()
        except AppConfigError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.CHANNEL,
                message=f"Token acquisition failed: {e}",
                cause=e,
            ) from e

        options: dict[str, Any] = {
            "additional_headers": {"Authorization": token},
            "open_timeout": self._open_timeout,
        }
        try:
            async with self._connector(self._url, **options) as conn:
                logger.info("Live update channel connected", extra={"url": self._url})
                if on_connected is not None:
                    on_connected()
                await self._receive_loop(conn, on_signal)
        except AppConfigError:
            raise
        except ConnectionClosed as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.CHANNEL,
                message=f"Connection closed: {e}",
                cause=e,
            ) from e
        except (WebSocketException, OSError, TimeoutError) as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.CHANNEL,
                message=f"Connection failed: {e}",
                cause=e,
            ) from e
        raise AppConfigError(
            code=AppConfigErrorCodes.CHANNEL,
            message="Connection ended",
        )

    async def _receive_loop(self, conn: WsConnection, on_signal: Callable[[], None]) -> None:
        while True:
            try:
                message = await asyncio.wait_for(conn.recv(), timeout=self._idle_timeout)
            except TimeoutError as e:
                raise AppConfigError(
                    code=AppConfigErrorCodes.CHANNEL,
                    message=f"No traffic for {self._idle_timeout}s",
                    cause=e,
                ) from e
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            if message == KEEPALIVE_MESSAGE:
                continue
            logger.debug("Configuration change signal received")
            on_signal()
