"""
Command line interface

Uses typer for argument handling and rich for output.
"""

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.markup import escape

from .codec.codepages import supported_names
from .config import load_config, write_default_config
from .errors import ConfigError
from .output import ConsoleReporter, err_console
from .runner import process_many

app = typer.Typer(
    help="Fix Cyrillic filename encodings inside ZIP archives.",
    add_completion=False,
)

LOG_LEVELS = {0: "INFO", 1: "DEBUG"}


def setup_logger(verbosity: int = 0, log_dir: Optional[str] = None, console_output: bool = True):
    """Configure loguru.

    Args:
        verbosity: 0 for INFO, 1 for DEBUG, 2 or more for TRACE (raw name bytes)
        log_dir: optional directory for DEBUG level log files
        console_output: whether to log to stderr

    Returns:
        tuple: (logger, config_info)
            - logger: the configured logger
            - config_info: dict with the log file path, if any
    """
    logger.remove()

    level = LOG_LEVELS.get(verbosity, "TRACE")
    if console_output:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <blue>{elapsed}</blue> | <level>{level.icon} {level: <8}</level> | <cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>",
        )

    config_info = {"log_file": None}
    if log_dir:
        current_time = datetime.now()
        date_str = current_time.strftime("%Y-%m-%d")
        hour_str = current_time.strftime("%H")
        minute_str = current_time.strftime("%M%S")

        target_dir = os.path.join(os.path.expanduser(log_dir), "runzip", date_str, hour_str)
        os.makedirs(target_dir, exist_ok=True)
        log_file = os.path.join(target_dir, f"{minute_str}.log")

        logger.add(
            log_file,
            level="DEBUG" if verbosity < 2 else "TRACE",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            encoding="utf-8",
            format="{time:YYYY-MM-DD HH:mm:ss} | {elapsed} | {level.icon} {level: <8} | {name}:{function}:{line} - {message}",
            enqueue=True,
        )
        config_info["log_file"] = log_file

    return logger, config_info


@app.command()
def main(
    files: Optional[List[Path]] = typer.Argument(
        None,
        help="ZIP files to process",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run", "-n",
        help="Dry run. Do not modify the archives",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose", "-v",
        count=True,
        help="Verbose output (can be repeated)",
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source", "-s",
        help=f"Set source encoding ({', '.join(supported_names())}). Auto-detect, if not set",
    ),
    target: Optional[str] = typer.Option(
        None,
        "--target", "-t",
        help="Target encoding, utf-8 by default",
    ),
    legacy_windows: bool = typer.Option(
        False,
        "--legacy-windows", "-w",
        help="Write names in cp866 for the Windows built-in ZIP folder (overrides --target)",
    ),
    jobs: Optional[int] = typer.Option(
        None,
        "--jobs", "-j",
        help="Number of archives processed in parallel",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="TOML config file",
    ),
    log_dir: Optional[str] = typer.Option(
        None,
        "--log-dir",
        help="Also write a log file under this directory",
    ),
    init_config: Optional[Path] = typer.Option(
        None,
        "--init-config",
        help="Write the default config to this path and exit",
    ),
):
    """Convert filenames inside ZIP archives from koi8-r, koi8-u, cp866 or windows-1251 to UTF-8."""
    if init_config is not None:
        written = write_default_config(init_config)
        typer.echo(f"Default config written to {written}")
        raise typer.Exit(code=0)

    if not files:
        err_console.print("[red]Error: No ZIP files specified[/red]")
        raise typer.Exit(code=1)

    try:
        config = load_config(config_path).with_overrides(
            source_encoding=source,
            target_encoding=target,
            dry_run=dry_run or None,
            legacy_windows_mode=legacy_windows or None,
            verbosity=verbose,
            jobs=jobs,
            log_dir=log_dir,
        )
    except ConfigError as exc:
        err_console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)

    setup_logger(config.verbosity, config.log_dir)

    reporter = ConsoleReporter(verbosity=config.verbosity)
    try:
        summaries = process_many(files, config, sink=reporter)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=130)

    reporter.print_totals()
    if any(s.error for s in summaries):
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()
