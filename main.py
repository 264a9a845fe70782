"""Kindler CLI entry point."""

from __future__ import annotations

import configparser
import logging
from pathlib import Path
from typing import Optional

import typer

from kindler.config import DATA_DIR, DEFAULT_CONFIG_PATH, KindlerConfig, load_config, write_default_config
from kindler.console import render, render_book, render_library
from kindler.device import DeviceMonitor, locate_documents
from kindler.logging_config import setup_logging
from kindler.mobi import ExtractError, extract_metadata
from kindler.models import Ready, Refresh, Select
from kindler.scanner import scan_library
from kindler.session import DiscoverySession


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Kindler e-reader library browser")
logger = logging.getLogger("kindler")


def _ensure_config(config_path: Optional[Path]) -> KindlerConfig:
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError, configparser.Error) as exc:
        typer.echo(f"[ERROR] Bad configuration: {exc}")
        raise typer.Exit(code=1)


ConfigOption = typer.Option(None, "--config", help="Path to config.ini")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config.ini"),
) -> None:
    """Write config.ini with default settings."""
    if DEFAULT_CONFIG_PATH.exists() and not force:
        typer.echo(f"[ERROR] {DEFAULT_CONFIG_PATH} already exists. Use --force.")
        raise typer.Exit(code=1)
    path = write_default_config()
    typer.echo(f"[OK] Config created at {path}")


@app.command()
def status(config_path: Optional[Path] = ConfigOption) -> None:
    """Check once whether the device is connected."""
    config = _ensure_config(config_path)
    monitor = DeviceMonitor.from_config(config.device)

    if monitor.is_device_present():
        typer.echo(f"[OK] Device mounted at {monitor.find_mount_point()}")
        typer.echo(f"     Books folder: {locate_documents(config.device, monitor)}")
    else:
        typer.echo(f"[INFO] No '{config.device.label}' device connected.")
        raise typer.Exit(code=1)


@app.command()
def scan(
    path: Optional[Path] = typer.Argument(None, help="Folder to scan (default: device documents)"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Scan a folder for books and list them."""
    setup_logging(DATA_DIR)

    config = _ensure_config(config_path)
    root = path or locate_documents(config.device)
    logger.info(f"Scanning {root}")
    library = scan_library(root, config.scanner)

    for line in render_library(library):
        typer.echo(line)


@app.command()
def info(book: Path = typer.Argument(..., help="Book file")) -> None:
    """Show the metadata of one book file."""
    try:
        record = extract_metadata(book)
    except ExtractError as exc:
        typer.echo(f"[ERROR] {book.name}: {exc}")
        raise typer.Exit(code=1)

    for line in render_book(record):
        typer.echo(line)


@app.command()
def watch(
    config_path: Optional[Path] = ConfigOption,
    log_level: str = typer.Option("WARNING", "--log-level", help="Console log level"),
) -> None:
    """Wait for the device, list its books and browse them."""
    setup_logging(DATA_DIR, log_level)

    config = _ensure_config(config_path)
    monitor = DeviceMonitor.from_config(config.device)
    logger.info(
        f"Watching for '{config.device.label}' every {config.poll_interval}s "
        f"(mount table {config.device.mounts_file})"
    )

    def scan_device():
        return scan_library(locate_documents(config.device, monitor), config.scanner)

    session = DiscoverySession(monitor, scan_device, poll_interval=config.poll_interval)
    session.subscribe(lambda phase: typer.echo(render(phase)))
    typer.echo(render(session.phase))
    session.start()

    try:
        while True:
            session.wait_for(lambda phase: isinstance(phase, Ready))
            choice = typer.prompt("[r]efresh, [q]uit or book number").strip().lower()
            phase = session.phase
            if choice == "q":
                break
            if choice == "r":
                logger.info("Refresh requested")
                session.submit(Refresh())
                session.wait_for(lambda p: not isinstance(p, Ready), timeout=5.0)
                continue
            if isinstance(phase, Ready) and choice.isdigit() and 1 <= int(choice) <= len(phase.library):
                record = phase.library[int(choice) - 1]
                session.submit(Select(record))
                session.wait_for(
                    lambda p: isinstance(p, Ready) and p.selection is record, timeout=5.0
                )
            else:
                typer.echo(f"Unknown choice: {choice}")
    except (KeyboardInterrupt, typer.Abort):
        pass
    finally:
        session.stop()


if __name__ == "__main__":
    app()
