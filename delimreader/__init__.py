from delimreader.domain.exceptions import (
    AlreadyLoadedError,
    FieldCountMismatchError,
    KeyNotFoundError,
    KeysNotReadError,
    NotInitializedError,
    ReaderDisposedError,
    ReaderError,
    SourceEmptyError,
    ValuesNotReadError,
)
from delimreader.domain.sources import BufferSource, PathSource
from delimreader.infra.sources.delimited_reader import DelimitedReader

__version__ = "1.0.0"

__all__ = [
    "DelimitedReader",
    "PathSource",
    "BufferSource",
    "ReaderError",
    "SourceEmptyError",
    "FieldCountMismatchError",
    "NotInitializedError",
    "KeysNotReadError",
    "ValuesNotReadError",
    "KeyNotFoundError",
    "AlreadyLoadedError",
    "ReaderDisposedError",
]
