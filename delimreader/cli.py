from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from delimreader.common.run_id import generate_run_id
from delimreader.config import Settings, load_settings
from delimreader.domain.exceptions import ReaderError
from delimreader.infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent
from delimreader.infra.sources.delimited_reader import DelimitedReader

app = typer.Typer(no_args_is_help=True, add_completion=False)


def ensureDir(path: str) -> None:
    """
    Назначение:
        Создаёт каталог, если он отсутствует.
    """
    Path(path).mkdir(parents=True, exist_ok=True)


def requireCsv(csvPath: str | None) -> None:
    """
    Назначение:
        Базовая проверка наличия CSV-файла.

    Поведение:
        - Если csvPath не задан или файл не существует, завершает процесс с exit code 2.
    """
    if not csvPath:
        typer.echo("ERROR: --csv is required", err=True)
        raise typer.Exit(code=2)

    p = Path(csvPath)
    if not p.exists() or not p.is_file():
        typer.echo(f"ERROR: CSV file not found: {csvPath}", err=True)
        raise typer.Exit(code=2)


def parseKeys(keys: str | None) -> list[str] | None:
    """
    Назначение:
        Разбирает --keys "a,b,c" в список имён колонок (None, если не задано).
    """
    if keys is None:
        return None
    return [key.strip() for key in keys.split(",")]


def buildReader(settings: Settings, csvPath: str, logger: logging.Logger) -> DelimitedReader:
    return DelimitedReader.from_path(
        csvPath,
        *settings.separator,
        convert_empty_string_to_null=settings.convert_empty_string_to_null,
        encoding=settings.encoding,
        logger=logger,
    )


def runWithReader(ctx: typer.Context, commandName: str, csvPath: str | None, keys: str | None, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - валидирует наличие CSV
        - открывает ридер (с заголовком или внедрёнными ключами) и гарантирует dispose
        - переводит ошибки ридера в exit code 2

    Входные данные:
        ctx: typer.Context
        commandName: str
        csvPath: str | None
        keys: str | None
            Ключи через запятую; None -> ключи читаются из первой строки.
        runner: Callable[[DelimitedReader], None]
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]

    logger, _logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )
    exitCode: int | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", f"Command started: sources={ctx.obj['sources']}")
        try:
            requireCsv(csvPath)
        except typer.Exit:
            logEvent(logger, logging.ERROR, runId, "csv", "CSV is missing or not accessible")
            exitCode = 2
            return

        try:
            with buildReader(settings, csvPath, logger) as reader:
                reader.load(parseKeys(keys))
                runner(reader)
                logEvent(logger, logging.INFO, runId, "reader", f"Lines read: {reader.line_number}")
        except ReaderError as exc:
            logEvent(logger, logging.ERROR, runId, "reader", f"{commandName} failed: code={exc.code.value} {exc}")
            typer.echo(f"ERROR: {exc}", err=True)
            exitCode = 2
        except OSError as exc:
            logEvent(logger, logging.ERROR, runId, "csv", f"{commandName} failed: {exc}")
            typer.echo(f"ERROR: cannot read CSV: {exc}", err=True)
            exitCode = 2
        except ValueError as exc:
            logEvent(logger, logging.ERROR, runId, "config", f"Invalid reader settings: {exc}")
            typer.echo(f"ERROR: {exc}", err=True)
            exitCode = 2
    finally:
        logEvent(logger, logging.INFO, runId, "core", f"Command finished: exit_code={exitCode or 0}")
        closeCommandLogger(logger)
        if exitCode is not None:
            raise typer.Exit(code=exitCode)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to YAML config"),
    separator: list[str] | None = typer.Option(None, "--separator", help="Field separator character(s), repeatable"),
    encoding: str | None = typer.Option(None, "--encoding", help="Source encoding"),
    emptyAsNull: bool | None = typer.Option(
        None,
        "--empty-as-null/--no-empty-as-null",
        help="Return empty values as null",
        show_default=True,
    ),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for log files"),
    logLevel: str | None = typer.Option(None, "--log-level", help="ERROR|WARN|INFO|DEBUG"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (generated when omitted)"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталог логов
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "separator": separator or None,
        "encoding": encoding,
        "convert_empty_string_to_null": emptyAsNull,
        "log_dir": logDir,
        "log_level": logLevel,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("keys")
def keysCommand(
    ctx: typer.Context,
    csv: str | None = typer.Option(None, "--csv", help="Path to input CSV"),
):
    """Print the header keys, one per line."""

    def execute(reader: DelimitedReader) -> None:
        for key in reader.keys or []:
            typer.echo(key)

    runWithReader(ctx, "keys", csv, None, execute)


@app.command("rows")
def rowsCommand(
    ctx: typer.Context,
    csv: str | None = typer.Option(None, "--csv", help="Path to input CSV"),
    keys: str | None = typer.Option(None, "--keys", help="Comma separated keys to inject (no header row)"),
    column: list[str] | None = typer.Option(None, "--column", help="Output only these columns, repeatable"),
    limit: int | None = typer.Option(None, "--limit", help="Max rows to print"),
):
    """Print records as JSON objects, one per line."""

    def execute(reader: DelimitedReader) -> None:
        printed = 0
        while (limit is None or printed < limit) and reader.read_line():
            columns = column or reader.keys or []
            row = {name: reader.get_string_value(name) for name in columns}
            typer.echo(json.dumps(row, ensure_ascii=False))
            printed += 1

    runWithReader(ctx, "rows", csv, keys, execute)


@app.command("count")
def countCommand(
    ctx: typer.Context,
    csv: str | None = typer.Option(None, "--csv", help="Path to input CSV"),
    keys: str | None = typer.Option(None, "--keys", help="Comma separated keys to inject (no header row)"),
):
    """Print the number of records."""

    def execute(reader: DelimitedReader) -> None:
        total = 0
        while reader.read_line():
            total += 1
        typer.echo(str(total))

    runWithReader(ctx, "count", csv, keys, execute)


if __name__ == "__main__":
    app()
