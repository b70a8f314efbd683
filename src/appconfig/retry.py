"""リトライ / バックオフ"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .exceptions import RetryError

T = TypeVar("T")

# multiplier**attempt のオーバーフロー防止（再接続は回数無制限のため）
_MAX_EXPONENT = 64

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """リトライポリシー設定。

    再接続ループでは max_attempts は使わず、遅延計算のみに用いる。
    """

    max_attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True

    def compute_delay(self, attempt: int) -> float:
        """attempt 回目（0 始まり）の待機時間を秒単位で計算する。"""
        base = self.initial_delay * (self.multiplier ** min(attempt, _MAX_EXPONENT))
        capped = min(base, self.max_delay)
        if self.jitter:
            return min(capped * (0.9 + random.random() * 0.2), self.max_delay)
        return capped


def _always(_: Exception) -> bool:
    return True


async def with_retry(
    config: RetryConfig,
    fn: Callable[[], Awaitable[T]],
    retry_on: Callable[[Exception], bool] = _always,
) -> T:
    """非同期関数をリトライ付きで実行する。

    retry_on が False を返した例外はリトライせずにそのまま送出する。

    Raises:
        RetryError: 全ての試行が失敗した場合
    """
    last_error: Exception | None = None
    for attempt in range(config.max_attempts):
        try:
            return await fn()
        except Exception as e:
            if not retry_on(e):
                raise
            last_error = e
            if attempt + 1 < config.max_attempts:
                delay = config.compute_delay(attempt)
                logger.warning(
                    "Attempt failed, retrying",
                    extra={"attempt": attempt + 1, "delay": round(delay, 3), "error": str(e)},
                )
                await asyncio.sleep(delay)
    raise RetryError(attempts=config.max_attempts, last_error=last_error)
