"""RemoteConfigFetcher: httpx による設定スナップショット取得"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .auth import Authenticator
from .exceptions import AppConfigError, AppConfigErrorCodes, RetryError
from .models import Snapshot
from .retry import RetryConfig, with_retry
from .urls import UrlBuilder

logger = logging.getLogger(__name__)


def _is_transient(error: Exception) -> bool:
    """5xx / タイムアウト / 通信エラーのみリトライ対象とする。"""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, AppConfigError) and error.code == AppConfigErrorCodes.TOKEN_REQUEST_FAILED:
        cause = error.__cause__
        if isinstance(cause, httpx.HTTPStatusError):
            return cause.response.status_code >= 500
        return isinstance(cause, httpx.TransportError)
    return False


class RemoteConfigFetcher:
    """認証付きで設定スナップショット全体を 1 回取得するクライアント。"""

    def __init__(
        self,
        urls: UrlBuilder,
        authenticator: Authenticator,
        retry: RetryConfig | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._urls = urls
        self._authenticator = authenticator
        self._retry = retry or RetryConfig()
        self._timeout = timeout_seconds

    async def fetch(self, collection_id: str, environment_id: str) -> Snapshot:
        """スナップショットを取得する。部分的なスナップショットは返さない。

        Raises:
            AppConfigError: 4xx 応答、リトライ上限到達、その他の通信エラー (FETCH_FAILED)、
                ドキュメント不正 (PARSE_ERROR)
        """
        url = self._urls.config_url(collection_id, environment_id)
        try:
            return await with_retry(
                self._retry,
                lambda: self._fetch_once(url),
                retry_on=_is_transient,
            )
        except RetryError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.FETCH_FAILED,
                message=f"Configuration fetch failed: {e}",
                cause=e,
            ) from e
        except httpx.HTTPStatusError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.FETCH_FAILED,
                message=f"Configuration fetch failed: HTTP {e.response.status_code}",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.FETCH_FAILED,
                message=f"Configuration fetch failed: {e}",
                cause=e,
            ) from e

    async def _fetch_once(self, url: str) -> Snapshot:
        token = await self._authenticator.get_token()
        headers = {**self._urls.headers(), "Authorization": token}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, headers=headers)
        resp.raise_for_status()
        try:
            document: Any = resp.json()
        except ValueError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.PARSE,
                message=f"Configuration response is not valid JSON: {e}",
                cause=e,
            ) from e
        snapshot = Snapshot.from_document(document)
        logger.debug(
            "Fetched configuration",
            extra={
                "features": len(snapshot.features),
                "properties": len(snapshot.properties),
                "segments": len(snapshot.segments),
            },
        )
        return snapshot
