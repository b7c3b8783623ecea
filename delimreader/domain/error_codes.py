from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок ридера.
    """

    SOURCE_EMPTY = "SOURCE_EMPTY"
    FIELD_COUNT_MISMATCH = "FIELD_COUNT_MISMATCH"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    KEYS_NOT_READ = "KEYS_NOT_READ"
    VALUES_NOT_READ = "VALUES_NOT_READ"
    KEY_NOT_FOUND = "KEY_NOT_FOUND"
    ALREADY_LOADED = "ALREADY_LOADED"
    DISPOSED = "DISPOSED"
