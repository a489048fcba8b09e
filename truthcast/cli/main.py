"""Command line interface for the TruthCast verification pipeline using Typer and Rich."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from truthcast.config.logging import get_logger
from truthcast.config.settings import settings
from truthcast.data_management.schemas import PodcastWork, TranscriptUnit, Verdict
from truthcast.pipeline.service import build_service
from truthcast.verification.errors import TruthCastError

app = typer.Typer(
    help="TruthCast CLI - claim verification for podcasts and live streams",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

LABEL_STYLES = {
    "verified": "green",
    "false": "red",
    "partial": "yellow",
    "disputed": "magenta",
    "uncertain": "dim",
}


def load_transcript(path: Path, offset_step_ms: int = 5000) -> list[TranscriptUnit]:
    """
    Read a transcript file.

    JSON files hold a list of TranscriptUnit objects (or {"units": [...]}).
    Any other file is plain text: each non-empty line becomes one unit,
    spaced ``offset_step_ms`` apart.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(raw)
        if isinstance(data, dict):
            data = data.get("units", [])
        return [TranscriptUnit.model_validate(item) for item in data]

    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    return [
        TranscriptUnit(
            text=line,
            start_offset_ms=index * offset_step_ms,
            end_offset_ms=(index + 1) * offset_step_ms,
        )
        for index, line in enumerate(lines)
    ]


def _format_offset(offset_ms: int) -> str:
    seconds = offset_ms // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def _verdict_table(verdicts: list[Verdict], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("At", style="cyan", width=6)
    table.add_column("Claim", ratio=3)
    table.add_column("Verdict", width=10)
    table.add_column("Conf.", justify="right", width=5)
    table.add_column("Flag", width=4)
    for verdict in sorted(verdicts, key=lambda v: v.origin_offset_ms):
        style = LABEL_STYLES.get(verdict.label.value, "white")
        table.add_row(
            _format_offset(verdict.origin_offset_ms),
            verdict.claim_text,
            f"[{style}]{verdict.label.value}[/{style}]",
            str(verdict.confidence),
            "⚑" if verdict.is_flagged else "",
        )
    return table


@app.command()
def status() -> None:
    """
    Display pipeline configuration.

    Shows reasoning, search provider, threshold and logging settings.
    """
    logger.info("Displaying system status")

    table = Table(title="TruthCast Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    if settings.gemini_api_key:
        table.add_row(
            "Reasoning",
            "✓ Gemini",
            f"{settings.gemini_model} (RPM: {settings.max_rpm}, TPM: {settings.max_tpm:,})",
        )
    else:
        table.add_row("Reasoning", "⚠ Lexical", "GEMINI_API_KEY not set, offline stance judge")

    news = "✓ Configured" if settings.news_api_key else "✗ Disabled"
    table.add_row("NewsAPI", news, "news sources")
    serper = "✓ Configured" if settings.serper_api_key else "✗ Disabled"
    table.add_row("Serper", serper, "academic and government sources")

    table.add_row(
        "Thresholds",
        "✓ Active",
        f"importance ≥ {settings.importance_threshold}, "
        f"flag below {settings.flag_confidence_threshold}% confidence",
    )
    table.add_row(
        "Concurrency",
        "✓ Active",
        f"{settings.session_max_workers} workers/session, "
        f"{settings.gateway_max_concurrency} provider calls, "
        f"{settings.provider_timeout_seconds}s provider timeout",
    )
    store = settings.verification_store_path or "in-memory"
    table.add_row("Store", "✓ Ready", store)
    table.add_row("Logging", "✓ Active", f"Level: {settings.log_level}, Format: {settings.log_format}")

    console.print(table)


@app.command()
def check(
    transcript: Path = typer.Argument(..., exists=True, dir_okay=False, help="Transcript file (.txt or .json)"),
    owner: str = typer.Option("cli", help="Owner id recorded on the work"),
    offset_step_ms: int = typer.Option(5000, help="Offset spacing for plain-text lines"),
) -> None:
    """
    Verify every checkable claim in a transcript file.
    """
    logger.info(f"Checking transcript {transcript}")
    try:
        units = load_transcript(transcript, offset_step_ms)
    except (OSError, ValueError) as e:
        console.print(f"[red]✗[/red] Could not read transcript: {e}")
        raise typer.Exit(1)

    async def _run():
        service = build_service()
        try:
            work = PodcastWork(owner_id=owner, title=transcript.name)
            handle = await service.start_verification(work, units)
            with console.status("[dim]Verifying claims...[/dim]"):
                return await handle.wait()
        finally:
            await service.shutdown()

    result = asyncio.run(_run())

    if result.error_message:
        console.print(f"\n[red]✗[/red] Session {result.status.value}: {result.error_message}")
        raise typer.Exit(1)

    console.print(_verdict_table(result.verdicts, f"Verdicts for {transcript.name}"))
    stats = result.stats
    console.print(
        f"\n[green]✓[/green] {stats.total_claims} claims checked, "
        f"{stats.flagged_claims} flagged, mean confidence {stats.mean_confidence:.0f}% "
        f"({stats.duration_ms / 1000:.1f}s)"
    )


@app.command()
def claim(
    text: str = typer.Argument(..., help="Claim to verify"),
    context: str = typer.Option("", help="Surrounding context"),
) -> None:
    """
    Verify a single claim.
    """
    logger.info("Checking single claim")

    async def _run() -> Verdict:
        service = build_service()
        try:
            return await service.check_claim(text, context)
        finally:
            await service.shutdown()

    try:
        verdict = asyncio.run(_run())
    except TruthCastError as e:
        console.print(f"\n[red]✗[/red] Error: {e}")
        raise typer.Exit(1)

    style = LABEL_STYLES.get(verdict.label.value, "white")
    console.print(
        Panel(
            verdict.explanation,
            title=f"[{style}]{verdict.label.value.upper()}[/{style}] · {verdict.confidence}% confidence",
            border_style=style,
        )
    )
    for perspective in verdict.perspectives:
        console.print(
            f"  [cyan]{perspective.domain}[/cyan] {perspective.stance.value} "
            f"[dim](relevance {perspective.relevance_score}, "
            f"credibility {perspective.credibility_score})[/dim]"
        )


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]TruthCast Claim Verification Pipeline[/bold]")
    console.print("Version: 0.1.0")


if __name__ == "__main__":
    app()
