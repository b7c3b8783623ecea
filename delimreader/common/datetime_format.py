from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache

# Инвариантная культура: английские названия, ':' и '/' как разделители.
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
MONTH_ABBREVIATIONS = tuple(name[:3] for name in MONTH_NAMES)
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DAY_ABBREVIATIONS = tuple(name[:3] for name in DAY_NAMES)

# Двузначный год: 00..49 -> 2000..2049, 50..99 -> 1950..1999.
TWO_DIGIT_YEAR_MAX = 2049

STANDARD_FORMATS = {
    "d": "MM/dd/yyyy",
    "D": "dddd, dd MMMM yyyy",
    "f": "dddd, dd MMMM yyyy HH:mm",
    "F": "dddd, dd MMMM yyyy HH:mm:ss",
    "g": "MM/dd/yyyy HH:mm",
    "G": "MM/dd/yyyy HH:mm:ss",
    "M": "MMMM dd",
    "m": "MMMM dd",
    "o": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "O": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "s": "yyyy'-'MM'-'dd'T'HH':'mm':'ss",
    "t": "HH:mm",
    "T": "HH:mm:ss",
    "u": "yyyy'-'MM'-'dd HH':'mm':'ss'Z'",
    "Y": "yyyy MMMM",
    "y": "yyyy MMMM",
}

ZERO_DATETIME = datetime.min


class DateTimeFormatError(ValueError):
    """
    Назначение:
        Некорректный шаблон формата даты/времени.
    """


@dataclass(frozen=True)
class CompiledFormat:
    """
    Назначение:
        Скомпилированный шаблон: regex + виды полей по именам групп.
    """

    pattern: re.Pattern
    kinds: dict


def _names_alternation(names: tuple[str, ...]) -> str:
    # длинные варианты первыми; названия и AM/PM без учёта регистра, остальное строго
    return "(?i:" + "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True)) + ")"


def _token(ch: str, run: int) -> tuple[str, str, str] | None:
    """
    Назначение:
        Переводит повтор спецификатора (например, "yyyy") в фрагмент regex.

    Выходные данные:
        (group_name, kind, regex) или None, если символ не является спецификатором.
    """
    if ch == "y":
        if run == 1:
            return "year", "year_short", r"[0-9]{1,2}"
        if run == 2:
            return "year", "year_short", r"[0-9]{2}"
        if run == 3:
            return "year", "year", r"[0-9]{3,4}"
        return "year", "year", r"[0-9]{%d}" % run
    if ch == "M":
        if run == 1:
            return "month", "month", r"[0-9]{1,2}"
        if run == 2:
            return "month", "month", r"[0-9]{2}"
        if run == 3:
            return "month", "month_abbr", _names_alternation(MONTH_ABBREVIATIONS)
        return "month", "month_name", _names_alternation(MONTH_NAMES)
    if ch == "d":
        if run == 1:
            return "day", "day", r"[0-9]{1,2}"
        if run == 2:
            return "day", "day", r"[0-9]{2}"
        if run == 3:
            return "weekday", "weekday_abbr", _names_alternation(DAY_ABBREVIATIONS)
        return "weekday", "weekday_name", _names_alternation(DAY_NAMES)
    if ch in "Hhms":
        if run > 2:
            raise DateTimeFormatError(f"Invalid format specifier: {ch * run}")
        name = {"H": "hour", "h": "hour12", "m": "minute", "s": "second"}[ch]
        return name, name, r"[0-9]{1,2}" if run == 1 else r"[0-9]{2}"
    if ch == "f":
        if run > 7:
            raise DateTimeFormatError(f"Invalid format specifier: {ch * run}")
        return "fraction", "fraction", r"[0-9]{%d}" % run
    if ch == "F":
        if run > 7:
            raise DateTimeFormatError(f"Invalid format specifier: {ch * run}")
        return "fraction", "fraction", r"[0-9]{0,%d}" % run
    if ch == "t":
        return "designator", "designator", "(?i:[AP])" if run == 1 else "(?i:AM|PM)"
    if ch == "z":
        if run == 1:
            return "offset", "offset", r"[+-][0-9]{1,2}"
        if run == 2:
            return "offset", "offset", r"[+-][0-9]{2}"
        return "offset", "offset", r"[+-][0-9]{2}:[0-9]{2}"
    if ch == "K":
        return "offset", "offset", r"Z|[+-][0-9]{2}:[0-9]{2}|"
    return None


@lru_cache(maxsize=128)
def compile_format(fmt: str) -> CompiledFormat:
    """
    Назначение:
        Компилирует шаблон формата (yyyy-MM-dd и т.п.) в regex.

    Входные данные:
        fmt: str
            Пользовательский шаблон или стандартный однобуквенный формат.

    Выходные данные:
        CompiledFormat

    Поведение:
        - Пустой/некорректный шаблон -> DateTimeFormatError.
        - Литералы в кавычках и после '\\' сравниваются как есть.
    """
    if not fmt:
        raise DateTimeFormatError("Format string is empty")
    if len(fmt) == 1:
        if fmt not in STANDARD_FORMATS:
            raise DateTimeFormatError(f"Unknown standard format: {fmt}")
        fmt = STANDARD_FORMATS[fmt]

    parts: list[str] = []
    kinds: dict[str, str] = {}
    i = 0
    n = len(fmt)
    while i < n:
        ch = fmt[i]
        if ch in "'\"":
            end = fmt.find(ch, i + 1)
            if end == -1:
                raise DateTimeFormatError(f"Unterminated literal in format: {fmt}")
            parts.append(re.escape(fmt[i + 1:end]))
            i = end + 1
            continue
        if ch == "\\":
            if i + 1 >= n:
                raise DateTimeFormatError(f"Dangling escape in format: {fmt}")
            parts.append(re.escape(fmt[i + 1]))
            i += 2
            continue
        if ch == "%":
            i += 1
            continue

        run = 1
        while i + run < n and fmt[i + run] == ch:
            run += 1
        token = _token(ch, run)
        if token is None:
            parts.append(re.escape(ch * run))
        else:
            name, kind, regex = token
            if name in kinds:
                raise DateTimeFormatError(f"Repeated format specifier: {ch * run}")
            kinds[name] = kind
            parts.append(f"(?P<{name}>{regex})")
        i += run

    return CompiledFormat(pattern=re.compile("".join(parts)), kinds=kinds)


def _name_index(value: str, names: tuple[str, ...]) -> int:
    lowered = [name.lower() for name in names]
    return lowered.index(value.lower())


def _parse_offset(value: str) -> timezone | None:
    if value == "":
        return None
    if value.upper() == "Z":
        return timezone.utc
    sign = -1 if value[0] == "-" else 1
    hours, _, minutes = value[1:].partition(":")
    delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
    return timezone(sign * delta)


def parse_exact(value: str, fmt: str) -> datetime:
    """
    Назначение:
        Строгий разбор даты/времени по шаблону (инвариантная культура).

    Входные данные:
        value: str
        fmt: str

    Выходные данные:
        datetime
            Наивный datetime; aware, если шаблон содержит смещение (z/K) и оно задано.

    Поведение:
        - Несовпадение с шаблоном, недопустимые значения -> ValueError.
        - Если шаблон не содержит ни одной части даты, подставляется текущая дата.
    """
    compiled = compile_format(fmt)
    match = compiled.pattern.fullmatch(value)
    if match is None:
        raise ValueError(f"Value {value!r} does not match format {fmt!r}")
    groups = match.groupdict()
    kinds = compiled.kinds

    if any(name in groups for name in ("year", "month", "day")):
        year, month, day = 1, 1, 1
    else:
        today = date.today()
        year, month, day = today.year, today.month, today.day

    if "year" in groups:
        year = int(groups["year"])
        if kinds["year"] == "year_short":
            century = TWO_DIGIT_YEAR_MAX // 100 * 100
            year += century if year <= TWO_DIGIT_YEAR_MAX % 100 else century - 100

    if "month" in groups:
        kind = kinds["month"]
        if kind == "month_name":
            month = _name_index(groups["month"], MONTH_NAMES) + 1
        elif kind == "month_abbr":
            month = _name_index(groups["month"], MONTH_ABBREVIATIONS) + 1
        else:
            month = int(groups["month"])

    if "day" in groups:
        day = int(groups["day"])

    hour = int(groups.get("hour") or 0)
    designator = (groups.get("designator") or "").upper()
    if "hour12" in groups:
        hour = int(groups["hour12"])
        if hour > 12:
            raise ValueError(f"Hour out of range for 12-hour clock: {hour}")
        if designator:
            hour = hour % 12 + (12 if designator.startswith("P") else 0)
    elif designator:
        if designator.startswith("A") and hour >= 12:
            raise ValueError(f"AM designator conflicts with hour {hour}")
        if designator.startswith("P") and hour < 12:
            hour += 12

    minute = int(groups.get("minute") or 0)
    second = int(groups.get("second") or 0)
    microsecond = int((groups.get("fraction") or "").ljust(6, "0")[:6])
    tzinfo = _parse_offset(groups.get("offset") or "")

    result = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tzinfo)

    if "weekday" in groups:
        names = DAY_NAMES if kinds["weekday"] == "weekday_name" else DAY_ABBREVIATIONS
        if _name_index(groups["weekday"], names) != result.weekday():
            raise ValueError(f"Day of week {groups['weekday']!r} does not match date {result.date()}")

    return result


def try_parse_exact(value: str | None, fmt: str) -> datetime | None:
    """
    Назначение:
        Как parse_exact, но возвращает None вместо исключения.
    """
    if value is None:
        return None
    try:
        return parse_exact(value, fmt)
    except ValueError:
        return None


__all__ = [
    "DateTimeFormatError",
    "ZERO_DATETIME",
    "compile_format",
    "parse_exact",
    "try_parse_exact",
]
