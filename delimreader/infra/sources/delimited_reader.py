from __future__ import annotations

import codecs
import io
import logging
import re
from datetime import datetime
from typing import IO, Iterator, Sequence

from delimreader.common.datetime_format import ZERO_DATETIME, try_parse_exact
from delimreader.domain.exceptions import (
    AlreadyLoadedError,
    FieldCountMismatchError,
    KeyNotFoundError,
    KeysNotReadError,
    NotInitializedError,
    ReaderDisposedError,
    SourceEmptyError,
    ValuesNotReadError,
)
from delimreader.domain.sources import BufferSource, ByteSource, PathSource, to_source

DEFAULT_ENCODING = "utf-8-sig"

# Порядок важен: BOM UTF-32 LE начинается с BOM UTF-16 LE.
BYTE_ORDER_MARKS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

# Пробельные символы Unicode без \x1c-\x1f (str.isspace их включает).
WHITESPACE = (
    "\t\n\v\f\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


class DelimitedReader:
    """
    Назначение/ответственность:
        Последовательный (forward-only) ридер строк с разделителями.
        Читает строку -> делит по разделителям -> отдаёт значения по именам колонок.

    Входные данные:
        source: PathSource | BufferSource | str | os.PathLike | bytes
            Путь к файлу или содержимое файла в памяти (взаимоисключающие варианты).
        *separator: str
            Один или несколько символов-разделителей (обязательно хотя бы один).
        convert_empty_string_to_null: bool
            Возвращать None вместо пустых строк в get_string_value.
        encoding: str
            Кодировка источника.
        logger: logging.Logger | None

    Инварианты/гарантии:
        - Конструктор только сохраняет конфигурацию, источник открывается в load().
        - После установки ключей каждая прочитанная строка содержит ровно len(keys) значений,
          иначе FieldCountMismatchError.
        - Ридер владеет не более чем одним открытым потоком; close()/dispose() идемпотентны.
        - Не потокобезопасен.
    """

    def __init__(
        self,
        source: ByteSource | str | bytes,
        *separator: str,
        convert_empty_string_to_null: bool = False,
        encoding: str = DEFAULT_ENCODING,
        logger: logging.Logger | None = None,
    ) -> None:
        if not separator:
            raise ValueError("At least one separator character is required")
        for sep in separator:
            if not isinstance(sep, str) or len(sep) != 1:
                raise ValueError(f"Separator must be a single character: {sep!r}")
        try:
            codecs.lookup(encoding)
        except LookupError as exc:
            raise ValueError(f"Unknown encoding: {encoding}") from exc

        self._source: ByteSource | None = to_source(source)
        self.separator: tuple[str, ...] = tuple(separator)
        self.convert_empty_string_to_null = convert_empty_string_to_null
        self.encoding = encoding
        self.stream_encoding: str | None = None
        self.logger = logger or logging.getLogger(__name__)

        self._splitter = re.compile("[" + "".join(re.escape(sep) for sep in self.separator) + "]")

        self._keys: list[str] | None = None
        self._line: str | None = None
        self._values: list[str] | None = None
        self._line_number = 0

        self._memory_stream: io.BytesIO | None = None
        self._stream: IO[str] | None = None
        self._loaded = False
        self._disposed = False

    @classmethod
    def from_path(cls, path: str, *separator: str, **options) -> "DelimitedReader":
        return cls(PathSource(path=str(path)), *separator, **options)

    @classmethod
    def from_bytes(cls, data: bytes, *separator: str, **options) -> "DelimitedReader":
        return cls(BufferSource(data=bytes(data)), *separator, **options)

    @property
    def source(self) -> ByteSource | None:
        """Источник данных; None после dispose()."""
        return self._source

    @property
    def keys(self) -> list[str] | None:
        """Имена полей; None до load()."""
        return self._keys

    @property
    def line(self) -> str | None:
        """
        Сырой текст текущей строки:
        None до load(); строка заголовка после load() и до первого read_line();
        последняя успешно прочитанная строка после каждого read_line().
        """
        return self._line

    @property
    def values(self) -> list[str] | None:
        """Значения текущей строки (без тримминга); None до первого успешного read_line()."""
        return self._values

    @property
    def line_number(self) -> int:
        """Номер последней прочитанной физической строки (заголовок = 1)."""
        return self._line_number

    def load(self, keys: Sequence[str] | None = None) -> None:
        """
        Назначение:
            Открывает источник и устанавливает ключи.

        Входные данные:
            keys: Sequence[str] | None
                None -> ключи читаются из первой строки источника;
                иначе ключи внедряются как есть, строка не потребляется.

        Поведение:
            - Первая строка отсутствует или пустая -> SourceEmptyError.
            - Повторный вызов -> AlreadyLoadedError; после dispose() -> ReaderDisposedError.
        """
        if self._disposed:
            raise ReaderDisposedError()
        if self._loaded:
            raise AlreadyLoadedError()

        self._open_stream()
        self._loaded = True

        if keys is not None:
            self._keys = list(keys)
            self.logger.debug("Source loaded with injected keys: %s keys=%d", self._source.describe(), len(self._keys))
            return

        header = self._read_fields()
        if header is None:
            raise SourceEmptyError()
        self._keys = header
        self.logger.debug(
            "Source loaded: %s encoding=%s keys=%s", self._source.describe(), self.stream_encoding, self._keys
        )

    def read_line(self) -> bool:
        """
        Назначение:
            Читает следующую строку значений.

        Выходные данные:
            bool
                True, если строка прочитана; False в конце источника или на пустой строке
                (в этом случае values и line не меняются).

        Поведение:
            - До load() -> NotInitializedError.
            - Количество значений != количеству ключей -> FieldCountMismatchError.
        """
        values = self._read_fields()
        if values is None:
            return False

        self._values = values
        if self._keys is not None and len(self._keys) != len(values):
            raise FieldCountMismatchError(
                expected=len(self._keys),
                actual=len(values),
                line_no=self._line_number,
            )
        return True

    def records(self) -> Iterator[dict[str, str | None]]:
        """
        Назначение:
            Итератор оставшихся строк в виде dict {ключ: get_string_value(ключ)}.
        """
        while self.read_line():
            yield {key: self.get_string_value(key) for key in self._keys or []}

    def __iter__(self) -> Iterator[dict[str, str | None]]:
        return self.records()

    def get_string_value(self, key: str) -> str | None:
        """
        Назначение:
            Возвращает значение поля по имени, без пробелов по краям.

        Поведение:
            - До load() -> KeysNotReadError; до read_line() -> ValuesNotReadError.
            - Неизвестный ключ -> KeyNotFoundError (первое совпадение выигрывает).
            - Пустая строка -> None, если включён convert_empty_string_to_null.
        """
        if self._keys is None:
            raise KeysNotReadError()
        if self._values is None:
            raise ValuesNotReadError()

        try:
            index = self._keys.index(key)
        except ValueError:
            raise KeyNotFoundError(key=key) from None

        value: str | None = self._values[index].strip(WHITESPACE)
        if value == "" and self.convert_empty_string_to_null:
            value = None
        return value

    def get_bool_value(self, key: str) -> bool:
        """
        Назначение:
            Значение поля как bool: "true"/"false" без учёта регистра.

        Поведение:
            - Ошибки get_string_value пробрасываются.
            - Нераспознанное значение (в т.ч. None) -> False, без исключения.
        """
        value = self.get_string_value(key)
        return value is not None and value.lower() == "true"

    def get_datetime_value(self, key: str, fmt: str) -> datetime:
        """
        Назначение:
            Значение поля как datetime по точному шаблону (например, "yyyy-MM-dd").

        Поведение:
            - Ошибки get_string_value пробрасываются.
            - Нераспознанное значение или шаблон -> datetime.min, без исключения.
        """
        value = self.get_string_value(key)
        parsed = try_parse_exact(value, fmt)
        return parsed if parsed is not None else ZERO_DATETIME

    def close(self) -> None:
        """
        Назначение:
            Закрывает поток; keys/line/values остаются доступны для чтения.
        """
        if self._stream is not None:
            self._stream.close()
            self._stream = None
            self.logger.debug("Source closed: lines_read=%d", self._line_number)
        if self._memory_stream is not None:
            self._memory_stream.close()
            self._memory_stream = None

    def dispose(self) -> None:
        """
        Назначение:
            close() + освобождение буфера источника в памяти.
        """
        self.close()
        self._disposed = True
        if isinstance(self._source, BufferSource):
            self._source = None

    def __enter__(self) -> "DelimitedReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _open_stream(self) -> None:
        binary = self._source.open_binary()
        if isinstance(binary, io.BytesIO):
            self._memory_stream = binary

        encoding = self.encoding
        head = binary.read(4)
        binary.seek(0)
        for bom, bom_encoding in BYTE_ORDER_MARKS:
            if head.startswith(bom):
                # BOM имеет приоритет над настроенной кодировкой
                encoding = bom_encoding
                binary.seek(len(bom))
                break
        self.stream_encoding = encoding

        # newline=None: CR, LF и CRLF распознаются как конец строки;
        # errors="replace": некорректные байты заменяются на U+FFFD
        self._stream = io.TextIOWrapper(binary, encoding=encoding, errors="replace", newline=None)

    def _read_fields(self) -> list[str] | None:
        if self._stream is None:
            raise NotInitializedError()

        raw = self._stream.readline()
        if raw == "":
            return None
        self._line_number += 1

        text = raw[:-1] if raw.endswith("\n") else raw
        if text.strip(WHITESPACE) == "":
            return None

        self._line = text
        if len(self.separator) == 1:
            return text.split(self.separator[0])
        return self._splitter.split(text)


__all__ = ["DelimitedReader", "DEFAULT_ENCODING"]
