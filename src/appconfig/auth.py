"""Bearer トークン取得"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from .exceptions import AppConfigError, AppConfigErrorCodes

_APIKEY_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"


class Authenticator(Protocol):
    """Authorization ヘッダー値を返す認証プロトコル。"""

    async def get_token(self) -> str: ...


class IamAuthenticator:
    """httpx を使った IAM API キー交換の実装。

    チャネル再接続ごとに新しいトークンを取得するため、キャッシュは持たない。
    """

    def __init__(self, apikey: str, iam_url: str, timeout_seconds: float = 10.0) -> None:
        self._apikey = apikey
        self._token_url = f"{iam_url.rstrip('/')}/identity/token"
        self._timeout = timeout_seconds

    @property
    def token_url(self) -> str:
        return self._token_url

    async def get_token(self) -> str:
        """IAM からアクセストークンを取得し、"Bearer <token>" を返す。

        Raises:
            AppConfigError: トークン取得に失敗した場合 (TOKEN_REQUEST_FAILED)
        """
        data = {"grant_type": _APIKEY_GRANT_TYPE, "apikey": self._apikey}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
            resp.raise_for_status()
            result: dict[str, Any] = resp.json()
            token_type = result.get("token_type", "Bearer")
            return f"{token_type} {result['access_token']}"
        except httpx.HTTPStatusError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.TOKEN_REQUEST_FAILED,
                message=f"Token request failed: HTTP {e.response.status_code}",
                cause=e,
            ) from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.TOKEN_REQUEST_FAILED,
                message=f"Token request failed: {e}",
                cause=e,
            ) from e
