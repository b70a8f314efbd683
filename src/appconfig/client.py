"""AppConfiguration クライアント（公開ハンドル）"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import Any

from . import logger as log_config
from .auth import Authenticator, IamAuthenticator
from .cache import ConfigCache
from .channel import Connector, LiveUpdateChannel
from .evaluator import evaluate_feature, evaluate_property
from .exceptions import AppConfigError, AppConfigErrorCodes
from .fetcher import RemoteConfigFetcher
from .models import Feature, Property
from .notifier import ChangeHandler, ChangeNotifier
from .retry import RetryConfig
from .settings import ClientSettings
from .store import LocalSnapshotStore
from .sync import SyncOrchestrator, SyncState
from .urls import UrlBuilder

logger = logging.getLogger(__name__)


class AppConfiguration:
    """App Configuration サービスのクライアントハンドル。

    呼び出し側が生成して保持する。プロセス全体のシングルトンは持たないため、
    テストなどで複数の独立したハンドルを並べて使える。

    使用例::

        client = AppConfiguration()
        client.init(AppConfiguration.REGION_US_SOUTH, guid, apikey)
        await client.set_context("collection", "dev")
        feature = client.get_feature("dark-mode")
        value = client.evaluate_feature(feature, "user-1", {"email": "a@example.com"})
        await client.close()
    """

    REGION_US_SOUTH = "us-south"
    REGION_EU_GB = "eu-gb"
    REGION_AU_SYD = "au-syd"

    def __init__(
        self,
        override_server_host: str | None = None,
        bootstrap_timeout: float = 30.0,
        request_timeout: float = 30.0,
        idle_timeout: float = 120.0,
        fetch_retry: RetryConfig | None = None,
        reconnect: RetryConfig | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._override_server_host = override_server_host
        self._bootstrap_timeout = bootstrap_timeout
        self._request_timeout = request_timeout
        self._idle_timeout = idle_timeout
        self._fetch_retry = fetch_retry
        self._reconnect = reconnect
        self._connector = connector

        self._urls: UrlBuilder | None = None
        self._authenticator: Authenticator | None = None
        self._cache = ConfigCache()
        self._notifier = ChangeNotifier()
        self._sync: SyncOrchestrator | None = None

    @classmethod
    async def from_settings(
        cls,
        settings: ClientSettings,
        authenticator: Authenticator | None = None,
        connector: Connector | None = None,
    ) -> AppConfiguration:
        """設定から init と set_context まで済ませたクライアントを生成する。"""
        log_config.new_logger(level=settings.log_level, format=settings.log_format)
        client = cls(
            override_server_host=settings.override_server_host,
            bootstrap_timeout=settings.bootstrap_timeout,
            request_timeout=settings.request_timeout,
            idle_timeout=settings.idle_timeout,
            fetch_retry=settings.fetch_retry.to_retry_config(),
            reconnect=settings.reconnect.to_retry_config(),
            connector=connector,
        )
        client.init(settings.region, settings.guid, settings.apikey, authenticator=authenticator)
        await client.set_context(
            settings.collection_id,
            settings.environment_id,
            config_file=settings.config_file,
            live_update_enabled=settings.live_config_update_enabled,
        )
        return client

    @staticmethod
    def _invalid(code: str, message: str) -> AppConfigError:
        logger.error(message)
        return AppConfigError(code=code, message=message)

    def init(
        self,
        region: str,
        guid: str,
        apikey: str,
        authenticator: Authenticator | None = None,
    ) -> None:
        """サービスインスタンスの識別情報を設定する。

        Raises:
            AppConfigError: 引数が空の場合 (VALIDATION_ERROR)
        """
        for name, value in (("region", region), ("guid", guid), ("apikey", apikey)):
            if not value:
                raise self._invalid(AppConfigErrorCodes.VALIDATION, f"{name} is required")
        self._urls = UrlBuilder(region, guid, self._override_server_host)
        self._authenticator = authenticator or IamAuthenticator(
            apikey, self._urls.iam_url, timeout_seconds=self._request_timeout
        )

    async def set_context(
        self,
        collection_id: str,
        environment_id: str,
        config_file: str | Path | None = None,
        live_update_enabled: bool = True,
    ) -> None:
        """コレクション / 環境を設定し、設定の同期を開始する。

        再度呼び出した場合は以前のコンテキストを停止して置き換える。新しいキャッシュは
        ブートストラップ完了後に差し替えるため、切り替え中も直前の値を読める。

        Raises:
            AppConfigError: init 未実行 (NOT_INITIALIZED)、引数不正 (VALIDATION_ERROR)
        """
        if self._urls is None or self._authenticator is None:
            raise self._invalid(
                AppConfigErrorCodes.NOT_INITIALIZED,
                "init must be called before set_context",
            )
        if not collection_id:
            raise self._invalid(AppConfigErrorCodes.VALIDATION, "collection_id is required")
        if not environment_id:
            raise self._invalid(AppConfigErrorCodes.VALIDATION, "environment_id is required")
        if not live_update_enabled and not config_file:
            raise self._invalid(
                AppConfigErrorCodes.VALIDATION,
                "config_file is required when live updates are disabled",
            )

        cache = ConfigCache()
        store = LocalSnapshotStore(config_file) if config_file else None
        fetcher: RemoteConfigFetcher | None = None
        channel: LiveUpdateChannel | None = None
        if live_update_enabled:
            fetcher = RemoteConfigFetcher(
                self._urls,
                self._authenticator,
                retry=self._fetch_retry,
                timeout_seconds=self._request_timeout,
            )
            channel = LiveUpdateChannel(
                self._urls.websocket_url(collection_id, environment_id),
                self._authenticator,
                idle_timeout=self._idle_timeout,
                connector=self._connector,
            )

        sync = SyncOrchestrator(
            collection_id,
            environment_id,
            cache,
            self._notifier,
            fetcher=fetcher,
            channel=channel,
            store=store,
            reconnect=self._reconnect,
            bootstrap_timeout=self._bootstrap_timeout,
        )
        if self._sync is not None:
            await self._sync.stop()
            self._sync = None
        await sync.start(live_update_enabled)
        self._cache = cache
        self._sync = sync

    @property
    def state(self) -> SyncState:
        """現在の同期状態を返す。"""
        if self._sync is None:
            return SyncState.UNINITIALIZED
        return self._sync.state

    def get_feature(self, feature_id: str) -> Feature | None:
        """フィーチャーを取得する。存在しない場合は None。"""
        return self._cache.get_feature(feature_id)

    def get_features(self) -> Mapping[str, Feature]:
        """全フィーチャーを ID をキーとした読み取り専用マッピングで返す。"""
        return self._cache.get_features()

    def get_property(self, property_id: str) -> Property | None:
        """プロパティを取得する。存在しない場合は None。"""
        return self._cache.get_property(property_id)

    def get_properties(self) -> Mapping[str, Property]:
        """全プロパティを ID をキーとした読み取り専用マッピングで返す。"""
        return self._cache.get_properties()

    def evaluate_feature(
        self,
        feature: Feature | str,
        entity_id: str,
        entity_attributes: Mapping[str, Any] | None = None,
    ) -> Any:
        """現在のスナップショットのセグメント定義でフィーチャーを評価する。

        feature に ID を渡して見つからない場合は None を返す。

        Raises:
            AppConfigError: entity_id が空の場合 (VALIDATION_ERROR)
        """
        snapshot = self._cache.snapshot
        if isinstance(feature, str):
            found = snapshot.features.get(feature)
            if found is None:
                return None
            feature = found
        return evaluate_feature(feature, entity_id, entity_attributes, snapshot.segments)

    def evaluate_property(
        self,
        prop: Property | str,
        entity_id: str,
        entity_attributes: Mapping[str, Any] | None = None,
    ) -> Any:
        """現在のスナップショットのセグメント定義でプロパティを評価する。"""
        snapshot = self._cache.snapshot
        if isinstance(prop, str):
            found = snapshot.properties.get(prop)
            if found is None:
                return None
            prop = found
        return evaluate_property(prop, entity_id, entity_attributes, snapshot.segments)

    def subscribe(self, handler: ChangeHandler) -> None:
        """設定更新イベントのハンドラーを登録する。"""
        self._notifier.subscribe(handler)

    def unsubscribe(self, handler: ChangeHandler) -> bool:
        """設定更新イベントのハンドラーを解除する。"""
        return self._notifier.unsubscribe(handler)

    def set_debug(self, value: bool = False) -> None:
        """デバッグログを切り替える。"""
        log_config.set_debug(value)

    async def close(self) -> None:
        """同期を停止する。"""
        if self._sync is not None:
            await self._sync.stop()

    async def __aenter__(self) -> AppConfiguration:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
