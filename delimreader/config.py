from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml

SEPARATOR_ALIASES = {
    "\\t": "\t",
    "tab": "\t",
    "space": " ",
}


@dataclass(frozen=True)
class Settings:
    # Reader
    separator: tuple[str, ...] = (";",)
    encoding: str = "utf-8-sig"
    convert_empty_string_to_null: bool = False

    # Logging
    log_dir: str = "./logs"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parse_bool(v: str | None) -> bool | None:
    if v is None:
        return None
    vv = v.lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def parse_separator(value) -> tuple[str, ...] | None:
    """
    Назначение:
        Нормализует разделители из config/ENV/CLI в кортеж одиночных символов.

    Входные данные:
        value: None | str | list[str]
            Строка трактуется как набор символов (";," -> (";", ",")),
            поддерживаются алиасы "\\t", "tab", "space".

    Выходные данные:
        tuple[str, ...] | None
    """
    if value is None:
        return None
    items = [value] if isinstance(value, str) else list(value)
    result: list[str] = []
    for item in items:
        item = str(item)
        alias = SEPARATOR_ALIASES.get(item.lower() if len(item) > 1 else item)
        if alias is not None:
            result.append(alias)
            continue
        result.extend(item)
    if not result:
        raise ValueError("Separator must not be empty")
    return tuple(result)


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    # 2) env
    env = {
        "separator": _env_get("DELIMREADER_SEPARATOR"),
        "encoding": _env_get("DELIMREADER_ENCODING"),
        "convert_empty_string_to_null": _env_get("DELIMREADER_EMPTY_AS_NULL"),
        "log_dir": _env_get("DELIMREADER_LOG_DIR"),
        "log_level": _env_get("DELIMREADER_LOG_LEVEL"),
    }
    if any(v is not None for v in env.values()):
        sources.append("env")

    # merge config -> env -> cli
    merged = {
        "separator": parse_separator(cfg.get("separator")) or defaults.separator,
        "encoding": cfg.get("encoding", defaults.encoding),
        "convert_empty_string_to_null": cfg.get(
            "convert_empty_string_to_null", defaults.convert_empty_string_to_null
        ),
        "log_dir": cfg.get("log_dir", defaults.log_dir),
        "log_level": cfg.get("log_level", defaults.log_level),
    }

    # apply env
    if env["separator"] is not None:
        merged["separator"] = parse_separator(env["separator"])
    if env["encoding"] is not None:
        merged["encoding"] = env["encoding"]
    if env["convert_empty_string_to_null"] is not None:
        merged["convert_empty_string_to_null"] = parse_bool(env["convert_empty_string_to_null"])
    if env["log_dir"] is not None:
        merged["log_dir"] = env["log_dir"]
    if env["log_level"] is not None:
        merged["log_level"] = env["log_level"]

    # 3) apply CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = parse_separator(v) if k == "separator" else v

    settings = Settings(
        separator=merged["separator"],
        encoding=merged["encoding"],
        convert_empty_string_to_null=bool(merged["convert_empty_string_to_null"]),
        log_dir=merged["log_dir"],
        log_level=merged["log_level"],
    )

    return LoadedSettings(settings=settings, sources_used=sources)
