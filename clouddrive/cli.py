"""Typer based command line entry points for clouddrive."""

from __future__ import annotations

import logging

import typer

from clouddrive.core.logger import get_logger
from clouddrive.services.acd import acd_app

app = typer.Typer(help="Command line client for Amazon Cloud Drive.")
app.add_typer(acd_app, name="acd")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    logger = get_logger()

    level_value = getattr(logging, log_level.upper(), None)
    if not isinstance(level_value, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")

    logging.getLogger().setLevel(level_value)
    logger.setLevel(level_value)


if __name__ == "__main__":
    app()
