import logging
from pathlib import Path
from typing import Optional

import typer

from crnch import __version__
from crnch.config import Config
from crnch.logging_utils import configure_logging

from .compress_commands import compress_command
from .config_commands import config_app
from .tools_commands import tools_command

# --- Main Application ---
app = typer.Typer(
    help="crnch: shrink PNG, JPG and PDF files to a target size or a compression level."
)

app.add_typer(config_app, name="config")

app.command("compress")(compress_command)
app.command("tools")(tools_command)


def version_callback(value: bool):
    if value:
        typer.echo(f"crnch version: {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Path to write debug logs. If not set, logs are not written to file.",
        resolve_path=True,
        show_default=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose (DEBUG level) logging to console and log file (if specified).",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the application version and exit.",
    ),
):
    """
    crnch CLI entry point.
    Loads configuration and sets up logging for the subcommands.
    """
    if ctx.obj is None:
        ctx.obj = {}

    # Files and environment first; CLI options override below.
    config = Config()
    config.update_from_cli("verbose", True if verbose else None)
    config.update_from_cli("log_file", str(log_file) if log_file else None)
    if not config.validate():
        raise typer.Exit(code=1)

    resolved_log_file = config.get("log_file")
    resolved_verbose = config.get("verbose")

    if resolved_log_file:
        level = logging.DEBUG if resolved_verbose else logging.INFO
        configure_logging(Path(resolved_log_file).expanduser(), level)
    elif resolved_verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    ctx.obj["config"] = config
    ctx.obj["verbose"] = resolved_verbose
    ctx.obj["log_file"] = resolved_log_file or None


if __name__ == "__main__":
    app()
