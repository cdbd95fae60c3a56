import sys
from pathlib import Path
from typing import Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from crnch.config import Config
from crnch.engine_config import EngineConfig
from crnch.exceptions import CrnchError, EscalationAborted, JobCancelled
from crnch.models import (
    AttemptOutcome,
    CompressionJob,
    CompressionLevel,
    CompressionResult,
    EscalationDecision,
    JobState,
    ProgressEvent,
    StageResult,
)
from crnch.orchestrator import JobOrchestrator
from crnch.utils import default_output_path, detect_media_kind, format_size, parse_size

console = Console()


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _prompt_level(default: str) -> CompressionLevel:
    choices = [level.value for level in CompressionLevel]
    while True:
        answer = typer.prompt(
            f"Compression level [{'/'.join(choices)}]", default=default
        ).strip().lower()
        if answer in choices:
            return CompressionLevel(answer)
        typer.secho(f"Please choose one of: {', '.join(choices)}", fg=typer.colors.YELLOW)


def escalation_prompt(
    best: Optional[StageResult], options: Sequence[EscalationDecision]
) -> EscalationDecision:
    """Ask the user how to continue once the ordinary stages missed the target."""
    best_text = format_size(best.size) if best is not None else "nothing"
    typer.secho(f"Target not reached. Best so far: {best_text}.", fg=typer.colors.YELLOW)
    choices = [d.value for d in options] + [
        EscalationDecision.ACCEPT_BEST.value,
        EscalationDecision.ABORT.value,
    ]
    while True:
        answer = typer.prompt(f"Next step [{'/'.join(choices)}]", default=choices[0]).strip().lower()
        if answer in choices:
            return EscalationDecision(answer)
        typer.secho(f"Please choose one of: {', '.join(choices)}", fg=typer.colors.YELLOW)


def _print_progress(event: ProgressEvent) -> None:
    param = "" if event.parameter is None else f" param={event.parameter}"
    hit = " [green]meets target[/green]" if event.outcome is AttemptOutcome.SUCCESS else ""
    console.print(
        f"[dim]#{event.attempt_number:>3}[/dim] {event.stage}{param}: "
        f"{format_size(event.size)} (best {format_size(event.best_size)}){hit}"
    )


def _attempts_table(result: CompressionResult) -> Table:
    table = Table(title="Attempts")
    table.add_column("#", justify="right")
    table.add_column("Stage", style="cyan")
    table.add_column("Tool")
    table.add_column("Param", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("ms", justify="right")
    table.add_column("Outcome")
    for number, attempt in enumerate(result.attempts, start=1):
        table.add_row(
            str(number),
            attempt.stage,
            attempt.tool,
            "" if attempt.parameter is None else str(attempt.parameter),
            format_size(attempt.size),
            format_size(attempt.best_size),
            f"{attempt.elapsed_ms:.0f}",
            attempt.outcome.value if attempt.detail is None else f"{attempt.outcome.value}: {attempt.detail}",
        )
    return table


def compress_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        resolve_path=True,
        help="PNG, JPG or PDF file to compress.",
    ),
    size: Optional[str] = typer.Option(
        None,
        "--size",
        "-s",
        help="Target size, e.g. 200k, 1.5m, 500kb. A bare number is read as KB.",
        show_default=False,
    ),
    level: Optional[CompressionLevel] = typer.Option(
        None,
        "--level",
        "-l",
        case_sensitive=False,
        help="Compression level when no target size is given.",
        show_default=False,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        help="Output path. Defaults to crnched_<filename> in the current directory.",
        show_default=False,
    ),
    nerd: bool = typer.Option(
        False,
        "--nerd",
        "--verbose",
        "-v",
        help="Show every attempt while running and a table of attempts at the end.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Accept grayscale and resize fallbacks without asking.",
    ),
) -> None:
    """Compress FILE to a target size (--size) or with a fixed level (--level)."""
    config: Config = ctx.obj["config"]

    target_bytes = None
    if size is not None:
        target_bytes = parse_size(size)
        if target_bytes is None or target_bytes <= 0:
            typer.secho(f"Error: invalid size '{size}'. Try 200k, 1.5m or 500kb.", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    interactive = _is_interactive()
    if level is None:
        default_level = config.get("default_level")
        if target_bytes is None and interactive:
            level = _prompt_level(default_level)
        else:
            level = CompressionLevel(default_level)

    try:
        media_kind = detect_media_kind(file)
    except CrnchError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        engine_config = EngineConfig.from_app_config(config)
    except CrnchError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    auto_yes = yes or bool(config.get("auto_yes"))
    job = CompressionJob(
        file,
        output if output is not None else default_output_path(file),
        media_kind,
        target_bytes=target_bytes,
        level=level,
        auto_yes=auto_yes,
    )
    orchestrator = JobOrchestrator(
        engine_config,
        on_progress=_print_progress if nerd else None,
        prompt=escalation_prompt if interactive and not auto_yes else None,
    )

    try:
        result = orchestrator.run(job)
    except JobCancelled:
        typer.secho("Cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)
    except EscalationAborted:
        typer.secho("Aborted, no output written.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    except (CrnchError, OSError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if nerd:
        console.print(_attempts_table(result))

    typer.echo(
        f"{file.name}: {format_size(result.original_size)} -> {format_size(result.final_size)} "
        f"({result.reduction_percent:.1f}% smaller) via {result.stage}, saved to {result.output_path}"
    )
    if result.state is JobState.PARTIALLY_CONVERGED:
        typer.secho(
            f"Warning: target {format_size(result.target_bytes)} not reached; kept the smallest result.",
            fg=typer.colors.YELLOW,
        )
