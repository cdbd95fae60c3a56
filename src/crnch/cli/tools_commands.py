import typer
from rich.console import Console
from rich.table import Table

from crnch.dependencies import detect_tools
from crnch.tools.registry import available_tools, get_tool_metadata


def tools_command() -> None:
    """List the external encoders crnch drives and whether they are installed."""
    metadata = [get_tool_metadata(tool_id) for tool_id in available_tools()]
    executables = sorted({info["executable"] for info in metadata if info})
    statuses = detect_tools(executables)

    table = Table(title="External tools")
    table.add_column("Executable", style="cyan", no_wrap=True)
    table.add_column("Used by", style="magenta")
    table.add_column("Status")
    table.add_column("Version", overflow="fold")

    for executable in executables:
        users = ", ".join(
            info["tool_id"] for info in metadata if info and info["executable"] == executable
        )
        status = statuses[executable]
        if status.available:
            table.add_row(executable, users, "[green]installed[/green]", status.version or "")
        else:
            table.add_row(executable, users, "[red]missing[/red]", "")

    Console().print(table)
    missing = [name for name, status in statuses.items() if not status.available]
    if missing:
        typer.secho(
            f"Missing: {', '.join(missing)}. Stages that need them are skipped.",
            fg=typer.colors.YELLOW,
        )
