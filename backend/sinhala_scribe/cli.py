"""Command line client for the transcription service."""
import asyncio
import signal
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from sinhala_scribe import __version__
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.core.exceptions import InsufficientCredit, ScribeError
from sinhala_scribe.core.logging import setup_logging
from sinhala_scribe.pipeline.gateway import ApiGateway
from sinhala_scribe.pipeline.models import CreditEstimate, PipelineRun
from sinhala_scribe.pipeline.orchestrator import ChunkPipeline

console = Console(stderr=True)


def show_estimate(source: AudioSource, estimate: CreditEstimate) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    mins = int(estimate.duration_seconds) // 60
    secs = int(estimate.duration_seconds) % 60
    table.add_row("File", source.filename)
    table.add_row("Duration", f"{mins}m{secs:02d}s")
    table.add_row("Credits required", str(estimate.required_credits))
    table.add_row("Credits available", str(estimate.current_credits))

    style = "green" if estimate.can_proceed else "red"
    console.print(Panel(table, title="[bold]Credit estimate[/bold]", border_style=style))


def show_summary(run: PipelineRun) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    table.add_row("Chunks", f"{run.credits_used}/{run.total_chunks}")
    table.add_row("Credits used", str(run.credits_used))
    if run.credits_remaining is not None:
        table.add_row("Credits remaining", str(run.credits_remaining))
    table.add_row("Saved as", run.transcript_id or "[red]not saved[/red]")

    title = "Partial transcript" if run.is_partial else "Transcript complete"
    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style="yellow" if run.is_partial else "green"))


async def _transcribe(path: Path, api_url: str, token: str, assume_yes: bool) -> Optional[PipelineRun]:
    source = AudioSource.from_path(path)

    async with ApiGateway(api_url, token) as gateway:
        pipeline = ChunkPipeline(gateway)

        with console.status("Analyzing audio..."):
            estimate = await pipeline.analyze(source)
        show_estimate(source, estimate)

        if not estimate.can_proceed:
            raise InsufficientCredit(
                f"Not enough credits: {estimate.required_credits} required, {estimate.current_credits} available"
            )
        if not assume_yes and not click.confirm("Start transcription?", default=True, err=True):
            pipeline.reset()
            return None

        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, pipeline.cancel)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=console,
                transient=True,
            ) as progress:
                task_id = progress.add_task("Chunking", total=None)

                def on_progress(completed: int, total: int, text: str) -> None:
                    progress.update(task_id, total=total, completed=completed,
                                    description=f"Chunk {min(completed + 1, total)}/{total}")

                pipeline.on_progress = on_progress
                run = await pipeline.start()
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    if run.cancelled:
        console.print("[yellow]⚠[/yellow] Transcription cancelled; nothing was saved")
        return None
    return run


@click.group()
@click.version_option(version=__version__, prog_name="sinhala-scribe")
@click.option("--verbose", "-v", is_flag=True, help="Show pipeline log messages")
def cli(verbose: bool) -> None:
    """Sinhala speech-to-text client."""
    setup_logging(console_only=True, level="DEBUG" if verbose else "WARNING")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--api-url", envvar="SCRIBE_API_URL", default="http://localhost:8000", show_default=True,
              help="Base URL of the transcription service")
@click.option("--token", envvar="SCRIBE_TOKEN", required=True, help="Bearer token from the identity provider")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Start without asking for confirmation")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the transcript to this file instead of stdout")
def transcribe(file: Path, api_url: str, token: str, assume_yes: bool, output: Optional[Path]) -> None:
    """Transcribe a Sinhala audio FILE."""
    try:
        run = asyncio.run(_transcribe(file, api_url, token, assume_yes))
    except ScribeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1)

    if run is None:
        return

    show_summary(run)
    if output:
        output.write_text(run.accumulated_text + "\n", encoding="utf-8")
        console.print(f"[green]✓[/green] Transcript written to {output}")
    else:
        click.echo(run.accumulated_text)


@cli.command()
@click.option("--api-url", envvar="SCRIBE_API_URL", default="http://localhost:8000", show_default=True)
@click.option("--token", envvar="SCRIBE_TOKEN", required=True)
def balance(api_url: str, token: str) -> None:
    """Show the remaining credit balance."""

    async def _balance() -> int:
        async with ApiGateway(api_url, token) as gateway:
            return await gateway.fetch_credit_balance()

    try:
        credits = asyncio.run(_balance())
    except ScribeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1)

    console.print(f"Credits remaining: [bold]{credits}[/bold]")


if __name__ == "__main__":
    cli()
