from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from delimreader.domain.error_codes import ErrorCode
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
from delimreader.domain.sources import BufferSource, PathSource
from delimreader.infra.sources.delimited_reader import DelimitedReader

EMPTY = ""
WRONG_NUMBER_OF_KEYS = "String;Boolean1;Boolean2\n This is a test ;false;true;1975-01-23\n"
NO_HEADER_ROW = " This is a test ;false;true;1975-01-23\n"
WITH_HEADER_ROW = "String;Boolean1;Boolean2;DateTime\n This is a test ;false;true;1975-01-23\n"
PEOPLE = "Name;BirthDate;IsMarried\nJohn;1975-01-23;true\nJane;1985-07-07;false\n"


@pytest.fixture(params=["bytes", "path"])
def make_reader(request, tmp_path: Path):
    """
    Строит ридер поверх содержимого: из буфера в памяти или из файла.
    """

    def _make(content: str, *separator: str, **options) -> DelimitedReader:
        data = content.encode("utf-8")
        if not separator:
            separator = (";",)
        if request.param == "bytes":
            return DelimitedReader(data, *separator, **options)
        path = tmp_path / "source.csv"
        path.write_bytes(data)
        return DelimitedReader(str(path), *separator, **options)

    return _make


def test_load_empty_source_raises(make_reader):
    with make_reader(EMPTY) as reader:
        with pytest.raises(SourceEmptyError, match="Cannot read field names"):
            reader.load()


def test_load_blank_first_line_raises(make_reader):
    with make_reader("   \nA;B\n") as reader:
        with pytest.raises(SourceEmptyError):
            reader.load()


def test_read_line_with_wrong_number_of_keys_raises(make_reader):
    with make_reader(WRONG_NUMBER_OF_KEYS) as reader:
        reader.load()
        with pytest.raises(FieldCountMismatchError) as excinfo:
            reader.read_line()
    assert excinfo.value.expected == 3
    assert excinfo.value.actual == 4
    assert excinfo.value.line_no == 2
    assert excinfo.value.code == ErrorCode.FIELD_COUNT_MISMATCH
    assert "does not match the number of keys" in str(excinfo.value)


def test_read_line_with_too_few_values_raises(make_reader):
    with make_reader("A;B;C\n1;2\n") as reader:
        reader.load()
        with pytest.raises(FieldCountMismatchError):
            reader.read_line()


def test_read_line_with_wrong_number_of_injected_keys_raises(make_reader):
    with make_reader(NO_HEADER_ROW) as reader:
        reader.load([])
        with pytest.raises(FieldCountMismatchError) as excinfo:
            reader.read_line()
    assert excinfo.value.expected == 0
    assert excinfo.value.actual == 4


def test_read_line_before_load_raises(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        with pytest.raises(NotInitializedError, match="Did you invoke the load method"):
            reader.read_line()


def test_get_string_value_before_load_raises(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        with pytest.raises(KeysNotReadError):
            reader.get_string_value("String")


def test_get_string_value_before_read_line_raises(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        reader.load()
        with pytest.raises(ValuesNotReadError):
            reader.get_string_value("String")


def test_get_string_value_with_unknown_key_raises(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        reader.load()
        reader.read_line()
        with pytest.raises(KeyNotFoundError) as excinfo:
            reader.get_string_value("InvalidKey")
    assert excinfo.value.key == "InvalidKey"
    assert str(excinfo.value) == 'Key "InvalidKey" not found.'


@pytest.mark.parametrize("key, expected", [("Boolean1", False), ("Boolean2", True)])
def test_get_bool_value(make_reader, key: str, expected: bool):
    with make_reader(WITH_HEADER_ROW) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_bool_value(key) is expected


def test_get_datetime_value(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_datetime_value("DateTime", "yyyy-MM-dd") == datetime(1975, 1, 23)


def test_get_string_value_is_trimmed(make_reader):
    with make_reader(WITH_HEADER_ROW) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_string_value("String") == "This is a test"
        assert reader.values[0] == " This is a test "


def test_people_example(make_reader):
    people = []
    with make_reader(PEOPLE) as reader:
        reader.load()
        while reader.read_line():
            people.append(
                (
                    reader.get_string_value("Name"),
                    reader.get_datetime_value("BirthDate", "yyyy-MM-dd"),
                    reader.get_bool_value("IsMarried"),
                )
            )
        assert reader.read_line() is False

    assert people == [
        ("John", datetime(1975, 1, 23), True),
        ("Jane", datetime(1985, 7, 7), False),
    ]


def test_line_lifecycle(make_reader):
    with make_reader(PEOPLE) as reader:
        assert reader.line is None
        reader.load()
        assert reader.line == "Name;BirthDate;IsMarried"
        assert reader.keys == ["Name", "BirthDate", "IsMarried"]
        assert reader.values is None
        reader.read_line()
        assert reader.line == "John;1975-01-23;true"
        reader.read_line()
        assert reader.read_line() is False
        assert reader.line == "Jane;1985-07-07;false"
        assert reader.values == ["Jane", "1985-07-07", "false"]


def test_injected_keys_do_not_consume_a_line(make_reader):
    with make_reader("John;1975-01-23;true\n") as reader:
        reader.load(["Name", "BirthDate", "IsMarried"])
        assert reader.line is None
        assert reader.read_line() is True
        assert reader.get_string_value("Name") == "John"


def test_blank_line_stops_reading(make_reader):
    with make_reader("A;B\n1;2\n   \n3;4\n") as reader:
        reader.load()
        assert reader.read_line() is True
        assert reader.read_line() is False
        assert reader.values == ["1", "2"]
        assert reader.line == "1;2"


@pytest.mark.parametrize("newline", ["\n", "\r\n", "\r"])
def test_line_terminators(make_reader, newline: str):
    content = newline.join(["A;B", "1;2", "3;4"]) + newline
    with make_reader(content) as reader:
        reader.load()
        rows = list(reader)
    assert rows == [{"A": "1", "B": "2"}, {"A": "3", "B": "4"}]


def test_last_line_without_terminator(make_reader):
    with make_reader("A;B\n1;2") as reader:
        reader.load()
        assert reader.read_line() is True
        assert reader.get_string_value("B") == "2"
        assert reader.read_line() is False


def test_multiple_separators(make_reader):
    with make_reader("A;B,C\n1,2;3\n", ";", ",") as reader:
        reader.load()
        assert reader.keys == ["A", "B", "C"]
        reader.read_line()
        assert reader.get_string_value("C") == "3"


def test_duplicate_keys_first_match_wins(make_reader):
    with make_reader("A;A\n1;2\n") as reader:
        reader.load()
        reader.read_line()
        assert reader.get_string_value("A") == "1"


@pytest.mark.parametrize(
    "convert, expected",
    [(True, None), (False, "")],
)
def test_convert_empty_string_to_null(make_reader, convert: bool, expected):
    with make_reader("A;B\n1;   \n", convert_empty_string_to_null=convert) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_string_value("B") == expected


def test_bool_value_is_case_insensitive_and_best_effort(make_reader):
    with make_reader("A;B;C;D\nTRUE;False;yes;\n", convert_empty_string_to_null=True) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_bool_value("A") is True
        assert reader.get_bool_value("B") is False
        assert reader.get_bool_value("C") is False
        assert reader.get_bool_value("D") is False


def test_datetime_value_is_best_effort(make_reader):
    with make_reader("A;B\nnot a date;\n", convert_empty_string_to_null=True) as reader:
        reader.load()
        reader.read_line()
        assert reader.get_datetime_value("A", "yyyy-MM-dd") == datetime.min
        assert reader.get_datetime_value("B", "yyyy-MM-dd") == datetime.min


def test_typed_getters_propagate_strict_errors(make_reader):
    with make_reader(PEOPLE) as reader:
        with pytest.raises(KeysNotReadError):
            reader.get_bool_value("IsMarried")
        reader.load()
        with pytest.raises(ValuesNotReadError):
            reader.get_datetime_value("BirthDate", "yyyy-MM-dd")
        reader.read_line()
        with pytest.raises(KeyNotFoundError):
            reader.get_bool_value("Missing")


def test_second_load_is_rejected(make_reader):
    with make_reader(PEOPLE) as reader:
        reader.load()
        with pytest.raises(AlreadyLoadedError):
            reader.load()


def test_close_and_dispose_are_idempotent(make_reader):
    reader = make_reader(PEOPLE)
    reader.close()
    reader.close()
    reader.dispose()
    reader.dispose()


def test_close_keeps_state_readable(make_reader):
    reader = make_reader(PEOPLE)
    reader.load()
    reader.read_line()
    reader.close()
    reader.close()
    assert reader.keys == ["Name", "BirthDate", "IsMarried"]
    assert reader.line == "John;1975-01-23;true"
    assert reader.get_string_value("Name") == "John"
    with pytest.raises(NotInitializedError):
        reader.read_line()
    reader.dispose()
    reader.dispose()


def test_load_after_dispose_is_rejected(make_reader):
    reader = make_reader(PEOPLE)
    reader.dispose()
    with pytest.raises(ReaderDisposedError):
        reader.load()


def test_context_manager_disposes_on_error(make_reader):
    reader = make_reader(PEOPLE)
    with pytest.raises(RuntimeError):
        with reader:
            reader.load()
            raise RuntimeError("boom")
    assert reader._stream is None
    with pytest.raises(ReaderDisposedError):
        reader.load()


def test_records_yield_one_row_per_line(make_reader):
    with make_reader(PEOPLE) as reader:
        reader.load()
        rows = list(reader.records())
        assert reader.line_number == 3
    assert [row["Name"] for row in rows] == ["John", "Jane"]


def test_buffer_source_is_released_on_dispose():
    reader = DelimitedReader(PEOPLE.encode("utf-8"), ";")
    assert isinstance(reader.source, BufferSource)
    reader.dispose()
    assert reader.source is None


def test_explicit_sources_and_factories(tmp_path: Path):
    path = tmp_path / "people.csv"
    path.write_text(PEOPLE, encoding="utf-8")

    from_path = DelimitedReader.from_path(str(path), ";")
    from_bytes = DelimitedReader.from_bytes(PEOPLE.encode("utf-8"), ";")
    explicit = DelimitedReader(PathSource(path=str(path)), ";")

    assert from_path.source == PathSource(path=str(path))
    assert isinstance(from_bytes.source, BufferSource)
    for reader in (from_path, from_bytes, explicit):
        with reader:
            reader.load()
            assert reader.read_line() is True
            assert reader.get_string_value("Name") == "John"


def test_path_like_source(tmp_path: Path):
    path = tmp_path / "people.csv"
    path.write_text(PEOPLE, encoding="utf-8")
    with DelimitedReader(path, ";") as reader:
        assert reader.source == PathSource(path=str(path))
        reader.load()
        assert reader.keys == ["Name", "BirthDate", "IsMarried"]


def test_encoding_is_applied():
    data = "Nom;Ville\nRené;Orléans\n".encode("cp1252")
    with DelimitedReader(data, ";", encoding="cp1252") as reader:
        reader.load()
        reader.read_line()
        assert reader.get_string_value("Nom") == "René"
        assert reader.get_string_value("Ville") == "Orléans"


def test_utf8_byte_order_mark_is_skipped():
    data = b"\xef\xbb\xbf" + PEOPLE.encode("utf-8")
    with DelimitedReader(data, ";") as reader:
        reader.load()
        assert reader.keys[0] == "Name"


def test_missing_file_raises_on_load(tmp_path: Path):
    reader = DelimitedReader(str(tmp_path / "missing.csv"), ";")
    with pytest.raises(FileNotFoundError):
        reader.load()
    reader.dispose()


@pytest.mark.parametrize("separator", [(), ("",), (";;",)])
def test_invalid_separator_is_rejected(separator):
    with pytest.raises(ValueError):
        DelimitedReader(b"A;B\n", *separator)


def test_unknown_encoding_is_rejected():
    with pytest.raises(ValueError, match="Unknown encoding"):
        DelimitedReader(b"A;B\n", ";", encoding="no-such-codec")


def test_unsupported_source_type_is_rejected():
    with pytest.raises(TypeError):
        DelimitedReader(42, ";")


def test_invalid_byte_on_late_line_is_replaced(tmp_path: Path):
    data = ("A;B\n" + "1;2\n" * 100).encode("utf-8") + b"x;\xe9\n"
    path = tmp_path / "source.csv"
    path.write_bytes(data)

    for reader in (DelimitedReader(data, ";", encoding="utf-8"), DelimitedReader(str(path), ";", encoding="utf-8")):
        with reader:
            reader.load()
            assert reader.keys == ["A", "B"]
            rows = list(reader)
        assert len(rows) == 101
        assert rows[-1] == {"A": "x", "B": "\ufffd"}


@pytest.mark.parametrize(
    "bom, codec",
    [
        (b"\xef\xbb\xbf", "utf-8"),
        (b"\xff\xfe", "utf-16-le"),
        (b"\xfe\xff", "utf-16-be"),
        (b"\xff\xfe\x00\x00", "utf-32-le"),
        (b"\x00\x00\xfe\xff", "utf-32-be"),
    ],
)
@pytest.mark.parametrize("encoding", ["utf-8", "cp1252"])
def test_byte_order_mark_overrides_encoding(bom: bytes, codec: str, encoding: str):
    data = bom + "Name;City\nRené;Orléans\n".encode(codec)
    with DelimitedReader(data, ";", encoding=encoding) as reader:
        reader.load()
        assert reader.stream_encoding == codec
        assert reader.keys == ["Name", "City"]
        reader.read_line()
        assert reader.get_string_value("Name") == "René"
        assert reader.get_string_value("City") == "Orléans"


def test_without_byte_order_mark_configured_encoding_is_used():
    with DelimitedReader("Nom\nRené\n".encode("cp1252"), ";", encoding="cp1252") as reader:
        reader.load()
        assert reader.stream_encoding == "cp1252"


def test_control_separator_line_is_not_blank(make_reader):
    with make_reader("A\n\x1c\n") as reader:
        reader.load()
        assert reader.read_line() is True
        assert reader.values == ["\x1c"]
        assert reader.get_string_value("A") == "\x1c"


def test_unicode_whitespace_line_is_blank(make_reader):
    with make_reader("A\n\u3000\xa0\t\n") as reader:
        reader.load()
        assert reader.read_line() is False
