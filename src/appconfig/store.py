"""ローカルスナップショットファイルの読み書き"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from .exceptions import AppConfigError, AppConfigErrorCodes
from .models import Snapshot

logger = logging.getLogger(__name__)


class LocalSnapshotStore:
    """リモート取得と同じ JSON スキーマのローカルファイルを扱うストア。"""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot:
        """ファイルからスナップショットを読み込む。

        Raises:
            AppConfigError: 読み込み失敗 (READ_FILE_ERROR)、JSON / スキーマ不正 (PARSE_ERROR)
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.READ_FILE,
                message=f"Failed to read configuration file: {self._path}",
                cause=e,
            ) from e
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.PARSE,
                message=f"Failed to parse configuration file: {self._path}",
                cause=e,
            ) from e
        snapshot = Snapshot.from_document(document)
        logger.debug(
            "Loaded configuration file",
            extra={
                "path": str(self._path),
                "features": len(snapshot.features),
                "properties": len(snapshot.properties),
            },
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """スナップショットをファイルへ書き込む。

        一時ファイルに書いてから置き換えるため、途中状態のファイルは残らない。

        Raises:
            AppConfigError: 書き込みに失敗した場合 (WRITE_FILE_ERROR)
        """
        data = json.dumps(snapshot.to_document(), ensure_ascii=False, indent=2)
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise AppConfigError(
                code=AppConfigErrorCodes.WRITE_FILE,
                message=f"Failed to write configuration file: {self._path}",
                cause=e,
            ) from e
