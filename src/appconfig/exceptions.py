"""appconfig ライブラリの例外型定義"""

from __future__ import annotations


class AppConfigError(Exception):
    """appconfig ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class AppConfigErrorCodes:
    """AppConfigError のエラーコード定数。"""

    VALIDATION: str = "VALIDATION_ERROR"
    NOT_INITIALIZED: str = "NOT_INITIALIZED"
    FETCH_FAILED: str = "FETCH_FAILED"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE: str = "PARSE_ERROR"
    WRITE_FILE: str = "WRITE_FILE_ERROR"
    CHANNEL: str = "CHANNEL_ERROR"
    TOKEN_REQUEST_FAILED: str = "TOKEN_REQUEST_FAILED"


class RetryError(Exception):
    """リトライ上限に達した場合のエラー。"""

    def __init__(self, attempts: int, last_error: Exception | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        msg = f"Retry limit reached ({attempts} attempts)"
        if last_error:
            msg += f": {last_error}"
        super().__init__(msg)
        if last_error is not None:
            self.__cause__ = last_error
