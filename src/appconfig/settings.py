"""クライアント設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import AppConfigError, AppConfigErrorCodes
from .retry import RetryConfig


class RetrySettings(BaseModel):
    """リトライ / バックオフ設定。"""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=0.5, ge=0.0)
    max_delay: float = Field(default=30.0, gt=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
            jitter=self.jitter,
        )


def _reconnect_defaults() -> RetrySettings:
    return RetrySettings(initial_delay=1.0, max_delay=60.0)


class ClientSettings(BaseModel):
    """App Configuration クライアント設定全体。"""

    region: str = Field(min_length=1)
    guid: str = Field(min_length=1)
    apikey: str = Field(min_length=1)
    collection_id: str = Field(min_length=1)
    environment_id: str = Field(min_length=1)
    config_file: str | None = None
    live_config_update_enabled: bool = True
    override_server_host: str | None = None
    bootstrap_timeout: float = Field(default=30.0, gt=0.0)
    request_timeout: float = Field(default=30.0, gt=0.0)
    idle_timeout: float = Field(default=120.0, gt=0.0)
    fetch_retry: RetrySettings = Field(default_factory=RetrySettings)
    reconnect: RetrySettings = Field(default_factory=_reconnect_defaults)
    log_level: str = "WARNING"
    log_format: Literal["json", "text"] = "text"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise AppConfigError(
            code=AppConfigErrorCodes.READ_FILE,
            message=f"Failed to read settings file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise AppConfigError(
            code=AppConfigErrorCodes.PARSE,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise AppConfigError(
            code=AppConfigErrorCodes.PARSE,
            message=f"Settings file must contain a mapping: {path}",
        )
    return data


def load_settings(base_path: Path, env_path: Path | None = None) -> ClientSettings:
    """設定ファイルを読み込んで ClientSettings を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    try:
        return ClientSettings.model_validate(data)
    except ValidationError as e:
        raise AppConfigError(
            code=AppConfigErrorCodes.VALIDATION,
            message=f"Settings validation failed: {e}",
            cause=e,
        ) from e
