"""設定読み込みのユニットテスト"""

from pathlib import Path

import pytest
from appconfig import AppConfigError, AppConfigErrorCodes, load_settings
from appconfig.settings import deep_merge

BASE = """\
region: us-south
guid: guid-1
apikey: key-1
collection_id: web
environment_id: dev
"""


def test_load_minimal_settings(tmp_path: Path) -> None:
    """最小設定ファイルの読み込みとデフォルト値。"""
    path = tmp_path / "appconfig.yaml"
    path.write_text(BASE)
    settings = load_settings(path)
    assert settings.region == "us-south"
    assert settings.live_config_update_enabled is True
    assert settings.config_file is None
    assert settings.reconnect.max_delay == 60.0
    assert settings.fetch_retry.to_retry_config().max_attempts == 3


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別設定のマージ確認。"""
    base = tmp_path / "base.yaml"
    base.write_text(BASE + "reconnect:\n  initial_delay: 2.0\n")
    env = tmp_path / "prod.yaml"
    env.write_text("environment_id: prod\nreconnect:\n  max_delay: 120.0\n")
    settings = load_settings(base, env)
    assert settings.environment_id == "prod"
    assert settings.reconnect.initial_delay == 2.0
    assert settings.reconnect.max_delay == 120.0


def test_load_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで READ_FILE_ERROR。"""
    with pytest.raises(AppConfigError) as exc_info:
        load_settings(tmp_path / "missing.yaml")
    assert exc_info.value.code == AppConfigErrorCodes.READ_FILE


def test_load_invalid_yaml(tmp_path: Path) -> None:
    """不正 YAML で PARSE_ERROR。"""
    bad = tmp_path / "bad.yaml"
    bad.write_text("region: {invalid: yaml: content:\n")
    with pytest.raises(AppConfigError) as exc_info:
        load_settings(bad)
    assert exc_info.value.code == AppConfigErrorCodes.PARSE


def test_load_validation_error(tmp_path: Path) -> None:
    """必須項目が空なら VALIDATION_ERROR。"""
    bad = tmp_path / "bad.yaml"
    bad.write_text(BASE.replace("guid: guid-1", "guid: ''"))
    with pytest.raises(AppConfigError) as exc_info:
        load_settings(bad)
    assert exc_info.value.code == AppConfigErrorCodes.VALIDATION


def test_deep_merge_replaces_lists() -> None:
    """dict は再帰的にマージされ、リストは置換されること。"""
    merged = deep_merge({"a": {"b": 1, "c": [1]}}, {"a": {"c": [2]}})
    assert merged == {"a": {"b": 1, "c": [2]}}
