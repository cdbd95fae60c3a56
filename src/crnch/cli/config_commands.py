from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from crnch.config import Config, DEFAULT_CONFIG, LOCAL_CONFIG_PATH, USER_CONFIG_PATH

config_app = typer.Typer(help="Manage crnch configuration settings.")


@config_app.command(
    "set",
    help="Sets a configuration key in the user's global config file.\n\nUsage Examples:\n  crnch config set tolerance 0.03\n  crnch config set default_level high",
)
def set_config_command(
    ctx: typer.Context,
    key: str = typer.Argument(
        ...,
        help=f"The configuration key to set. Valid keys: {', '.join(DEFAULT_CONFIG.keys())}.",
    ),
    value: str = typer.Argument(..., help="The new value for the configuration key."),
) -> None:
    config: Config = ctx.obj["config"]
    # Config.set reports its own validation errors on stderr.
    if not config.set(key, value):
        raise typer.Exit(code=1)
    typer.secho(
        f"Successfully set '{key}' to '{config.get(key)}' in {USER_CONFIG_PATH}",
        fg=typer.colors.GREEN,
    )
    typer.echo(
        f"Note: environment variables or a local '{LOCAL_CONFIG_PATH}' may override this setting."
    )


@config_app.command(
    "show",
    help="Displays effective configuration values and where each one came from.\n\nUsage Examples:\n  crnch config show\n  crnch config show --key tolerance",
)
def show_config_command(
    ctx: typer.Context,
    key: Optional[str] = typer.Option(
        None,
        "--key",
        "-k",
        help=f"Specific configuration key to display. Valid keys: {', '.join(DEFAULT_CONFIG.keys())}.",
    ),
) -> None:
    config: Config = ctx.obj["config"]
    console = Console(width=200)
    table = Table(title="crnch Configuration")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Effective Value", style="magenta", overflow="fold")
    table.add_column("Source", style="green", no_wrap=True, overflow="fold")

    if key:
        if key not in config.get_all_keys():
            typer.secho(
                f"Error: Configuration key '{key}' is not a recognized key.",
                fg=typer.colors.RED,
                err=True,
            )
            typer.echo("Known configuration keys are:")
            for known_key in sorted(config.get_all_keys()):
                typer.echo(f"- {known_key}")
            raise typer.Exit(code=1)
        value, source_info = config.get_with_source(key)
        table.add_row(key, str(value), source_info)
    else:
        for k_val, (value, source_info) in sorted(config.get_all_with_sources().items()):
            table.add_row(k_val, str(value), source_info)

    console.print(table)
