from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import IO, Union


@dataclass(frozen=True)
class PathSource:
    """
    Назначение:
        Источник данных: файл на диске.
    """

    path: str

    def open_binary(self) -> IO[bytes]:
        return open(self.path, "rb")

    def describe(self) -> str:
        return f"path={self.path}"


@dataclass(frozen=True)
class BufferSource:
    """
    Назначение:
        Источник данных: содержимое файла в памяти.
    """

    data: bytes

    def open_binary(self) -> IO[bytes]:
        return io.BytesIO(self.data)

    def describe(self) -> str:
        return f"buffer={len(self.data)} bytes"


ByteSource = Union[PathSource, BufferSource]


def to_source(raw: object) -> ByteSource:
    """
    Назначение:
        Приводит аргумент конструктора ридера к PathSource/BufferSource.

    Входные данные:
        raw: PathSource | BufferSource | str | os.PathLike | bytes | bytearray | memoryview

    Выходные данные:
        ByteSource

    Поведение:
        - Неподдерживаемый тип -> TypeError.
    """
    if isinstance(raw, (PathSource, BufferSource)):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return BufferSource(data=bytes(raw))
    if isinstance(raw, (str, os.PathLike)):
        return PathSource(path=os.fspath(raw))
    raise TypeError(f"Unsupported source type: {type(raw).__name__}")


__all__ = ["PathSource", "BufferSource", "ByteSource", "to_source"]
