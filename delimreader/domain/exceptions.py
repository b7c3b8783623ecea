from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from delimreader.domain.error_codes import ErrorCode


class ReaderError(Exception):
    """
    Назначение:
        Базовая ошибка ридера (строгий уровень: всегда пробрасывается вызывающему).
    Инварианты/гарантии:
        - code содержит значение ErrorCode.
        - str(error) возвращает человекочитаемое сообщение.
    """

    code: ErrorCode
    message: str = ""

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": str(self),
        }


class SourceEmptyError(ReaderError):
    """Первая строка источника отсутствует или пустая."""

    code = ErrorCode.SOURCE_EMPTY
    message = "Cannot read field names. Is the source empty?"


class NotInitializedError(ReaderError):
    """read_line вызван до load."""

    code = ErrorCode.NOT_INITIALIZED
    message = "The underlying stream reader is not initialized. Did you invoke the load method?"


class KeysNotReadError(ReaderError):
    code = ErrorCode.KEYS_NOT_READ
    message = "Keys not read. Did you invoke the load method?"


class ValuesNotReadError(ReaderError):
    code = ErrorCode.VALUES_NOT_READ
    message = "Values not read. Did you invoke the read_line method?"


class AlreadyLoadedError(ReaderError):
    """Повторный вызов load на том же экземпляре."""

    code = ErrorCode.ALREADY_LOADED
    message = "The source is already loaded."


class ReaderDisposedError(ReaderError):
    """load после dispose."""

    code = ErrorCode.DISPOSED
    message = "The reader has been disposed."


@dataclass
class FieldCountMismatchError(ReaderError):
    """
    Назначение:
        Количество значений в строке не совпадает с количеством ключей.
    Инварианты/гарантии:
        - expected == len(keys), actual == len(values), expected != actual.
        - line_no: номер физической строки источника (заголовок = 1).
    """

    expected: int
    actual: int
    line_no: int | None = None

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.FIELD_COUNT_MISMATCH

    def __str__(self) -> str:
        return (
            "The number of values does not match the number of keys "
            f"(expected={self.expected}, got={self.actual}, line_no={self.line_no})."
        )


@dataclass
class KeyNotFoundError(ReaderError):
    """
    Назначение:
        Запрошенный ключ отсутствует среди ключей.
    """

    key: str

    @property
    def code(self) -> ErrorCode:
        return ErrorCode.KEY_NOT_FOUND

    def __str__(self) -> str:
        return f'Key "{self.key}" not found.'


__all__ = [
    "ReaderError",
    "SourceEmptyError",
    "NotInitializedError",
    "KeysNotReadError",
    "ValuesNotReadError",
    "AlreadyLoadedError",
    "ReaderDisposedError",
    "FieldCountMismatchError",
    "KeyNotFoundError",
]
