"""SyncOrchestrator: ブートストラップ、ライブ更新チャネル、再接続、キャッシュ差し替え"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Protocol

from . import metrics
from .cache import ConfigCache
from .channel import ChannelState, LiveUpdateChannel
from .exceptions import AppConfigError
from .models import Snapshot
from .notifier import ChangeNotifier
from .retry import RetryConfig
from .store import LocalSnapshotStore

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """同期ライフサイクルの状態。"""

    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    LIVE = "live"
    OFFLINE_FILE = "offline_file"
    ERROR = "error"


class _Fetcher(Protocol):
    """スナップショット全体を取得するプロトコル。"""

    async def fetch(self, collection_id: str, environment_id: str) -> Snapshot: ...


class SyncOrchestrator:
    """1 つのコレクション / 環境の同期を管理する。

    バックグラウンドタスクはチャネルと再接続ループを所有し、その子タスクである
    リフレッシュワーカーだけが ConfigCache に書き込む。
    """

    def __init__(
        self,
        collection_id: str,
        environment_id: str,
        cache: ConfigCache,
        notifier: ChangeNotifier,
        fetcher: _Fetcher | None = None,
        channel: LiveUpdateChannel | None = None,
        store: LocalSnapshotStore | None = None,
        reconnect: RetryConfig | None = None,
        bootstrap_timeout: float = 30.0,
        stable_after: float = 30.0,
    ) -> None:
        self._collection_id = collection_id
        self._environment_id = environment_id
        self._cache = cache
        self._notifier = notifier
        self._fetcher = fetcher
        self._channel = channel
        self._store = store
        self._reconnect = reconnect or RetryConfig(initial_delay=1.0, max_delay=60.0)
        self._bootstrap_timeout = bootstrap_timeout
        self._stable_after = stable_after

        self._state = SyncState.UNINITIALIZED
        self._channel_state = ChannelState.DISCONNECTED
        self._refresh_requested = asyncio.Event()
        self._refresh_on_connect = True
        self._failures = 0
        self._connected_at: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def channel_state(self) -> ChannelState:
        return self._channel_state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, live_update_enabled: bool = True) -> None:
        """ブートストラップを実行し、ライブ更新が有効ならチャネルを開く。"""
        if self._state is not SyncState.UNINITIALIZED:
            raise RuntimeError("SyncOrchestrator has already been started")
        self._state = SyncState.BOOTSTRAPPING

        if not live_update_enabled:
            snapshot = self._load_local()
            if snapshot is None:
                self._state = SyncState.ERROR
                return
            self._cache.publish(snapshot)
            self._state = SyncState.OFFLINE_FILE
            logger.info("Using local configuration file; live updates disabled")
            return

        snapshot = await self._bootstrap_fetch()
        if snapshot is not None:
            self._cache.publish(snapshot)
            self._persist(snapshot)
            self._refresh_on_connect = False
        else:
            snapshot = self._load_local()
            if snapshot is not None:
                self._cache.publish(snapshot)

        if self._cache.is_populated:
            self._state = SyncState.LIVE
        else:
            logger.error("No configuration available from server or local file")
            self._state = SyncState.ERROR

        if self._channel is not None:
            self._task = asyncio.create_task(self._run(), name="appconfig-sync")

    async def stop(self) -> None:
        """バックグラウンドタスクと進行中の通信を全てキャンセルする。"""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._channel_state = ChannelState.DISCONNECTED

    def request_refresh(self) -> None:
        """リフレッシュを要求する。実行中の要求は 1 回分の追加パスにまとめられる。"""
        self._refresh_requested.set()

    async def refresh(self) -> bool:
        """スナップショットを取得して公開する。失敗時は直前のスナップショットを維持する。"""
        if self._fetcher is None:
            return False
        try:
            snapshot = await self._fetcher.fetch(self._collection_id, self._environment_id)
        except AppConfigError as e:
            metrics.refresh_errors_total.add(1)
            logger.warning(
                "Configuration refresh failed; keeping last known snapshot",
                extra={"error": str(e)},
            )
            return False
        except Exception:
            metrics.refresh_errors_total.add(1)
            logger.exception("Unexpected error during configuration refresh")
            return False
        self._cache.publish(snapshot)
        if self._state is SyncState.ERROR:
            self._state = SyncState.LIVE
        metrics.refresh_total.add(1)
        self._persist(snapshot)
        self._notifier.publish()
        return True

    async def _bootstrap_fetch(self) -> Snapshot | None:
        if self._fetcher is None:
            return None
        try:
            return await asyncio.wait_for(
                self._fetcher.fetch(self._collection_id, self._environment_id),
                timeout=self._bootstrap_timeout,
            )
        except TimeoutError:
            logger.warning(
                "Bootstrap fetch timed out",
                extra={"timeout": self._bootstrap_timeout},
            )
        except AppConfigError as e:
            logger.warning("Bootstrap fetch failed", extra={"error": str(e)})
        except Exception:
            logger.exception("Unexpected error during bootstrap fetch")
        return None

    def _load_local(self) -> Snapshot | None:
        if self._store is None:
            return None
        try:
            return self._store.load()
        except AppConfigError as e:
            logger.warning(
                "Local configuration file unusable",
                extra={"path": str(self._store.path), "error": str(e)},
            )
            return None

    def _persist(self, snapshot: Snapshot) -> None:
        if self._store is None:
            return
        try:
            self._store.save(snapshot)
        except AppConfigError as e:
            logger.warning("Failed to persist configuration", extra={"error": str(e)})

    async def _run(self) -> None:
        worker = asyncio.create_task(self._refresh_worker(), name="appconfig-refresh")
        try:
            await self._connection_loop()
        finally:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    async def _refresh_worker(self) -> None:
        while True:
            await self._refresh_requested.wait()
            self._refresh_requested.clear()
            try:
                await self.refresh()
            except Exception:
                logger.exception("Refresh worker pass failed")

    async def _connection_loop(self) -> None:
        assert self._channel is not None
        while True:
            self._channel_state = ChannelState.CONNECTING
            try:
                await self._channel.listen(self._on_signal, self._on_connected)
            except Exception as e:
                logger.warning(
                    "Live update channel disconnected",
                    extra={"error": str(e), "failures": self._failures + 1},
                )
            self._channel_state = ChannelState.RECONNECTING
            self._reset_backoff_if_stable()
            delay = self._reconnect.compute_delay(self._failures)
            self._failures += 1
            metrics.reconnect_total.add(1)
            await asyncio.sleep(delay)

    def _reset_backoff_if_stable(self) -> None:
        # 接続直後に切断されるサーバーに対してはバックオフを伸ばし続ける
        if self._connected_at is None:
            return
        if asyncio.get_running_loop().time() - self._connected_at >= self._stable_after:
            self._failures = 0
        self._connected_at = None

    def _on_connected(self) -> None:
        self._channel_state = ChannelState.CONNECTED
        self._connected_at = asyncio.get_running_loop().time()
        # 切断中に届かなかった通知を補うため、接続のたびに全件を再取得する
        if self._refresh_on_connect:
            self.request_refresh()
        self._refresh_on_connect = True

    def _on_signal(self) -> None:
        metrics.channel_signals_total.add(1)
        self.request_refresh()
