#!/usr/bin/env python3
"""
Article Narration System - Main CLI

Turns Markdown articles into narrated MP3 files with word-level WebVTT
captions, ready for a read-along player.

Features:
- Markdown cleaning into narratable prose
- Sentence-respecting chunking for the synthesis endpoint
- Concurrent article jobs with per-chunk retries
- Caption offsets from measured audio durations
- Caption/text alignment diagnostics
"""

import asyncio
import shutil
import sys
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from newscast import __version__
from newscast.articles import load_article, load_articles
from newscast.audio import get_duration_probe
from newscast.captions import format_timestamp, load_track
from newscast.chunker import chunk_text
from newscast.errors import CaptionFormatError, NewscastError
from newscast.orchestrator import RunSummary, SynthesisOrchestrator
from newscast.readalong.aligner import CueAligner
from newscast.readalong.tokens import tokenize_text
from newscast.synthesis import EDGE_VOICES, EdgeSynthesizer, list_edge_voices
from newscast.utils import logger
from newscast.utils.config import config


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file (default: config/settings.yaml)",
)
def cli(config_path: Optional[str]):
    """
    Article Narration System

    Generate narrated audio and synchronized captions for articles.
    """
    if config_path:
        config.reload(Path(config_path))


@cli.command()
@click.argument("articles_dir", type=click.Path(file_okay=False), required=False)
@click.option(
    "-o", "--output",
    type=click.Path(file_okay=False),
    help="Output directory for audio and captions (default: paths.output)",
)
@click.option("--force", is_flag=True, help="Regenerate even when audio and captions exist")
@click.option(
    "-v", "--voice",
    default=None,
    help=f"Voice to use (default: {config.voice})",
)
@click.option(
    "-j", "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help=f"Article jobs in flight (default: {config.concurrency})",
)
@click.option(
    "--max-length",
    type=click.IntRange(min=1),
    default=None,
    help=f"Maximum characters per synthesis request (default: {config.max_chunk_length})",
)
def generate(
    articles_dir: Optional[str],
    output: Optional[str],
    force: bool,
    voice: Optional[str],
    concurrency: Optional[int],
    max_length: Optional[int],
):
    """
    Generate audio and captions for every article.

    Articles whose audio and caption files already exist are skipped unless
    --force is given. Exits with status 1 if any article fails.
    """
    source = Path(articles_dir) if articles_dir else config.get_path("articles")
    output_dir = Path(output) if output else config.get_path("output")

    logger.header("Generating article audio")

    logger.step(f"Loading articles from {source}", 1, 2)
    try:
        articles = load_articles(source)
    except NewscastError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Found {len(articles)} articles." + (" (forced regeneration)" if force else ""))

    logger.step(f"Writing audio and captions to {output_dir}", 2, 2)

    orchestrator = SynthesisOrchestrator(
        synthesizer=EdgeSynthesizer(),
        probe=get_duration_probe(),
        output_dir=output_dir,
        voice=voice,
        max_length=max_length,
        concurrency=concurrency,
    )

    with logger.create_progress() as progress:
        summary = asyncio.run(orchestrator.run(articles, force=force, progress=progress))

    _print_summary(summary)
    sys.exit(summary.exit_code)


def _print_summary(summary: RunSummary) -> None:
    logger.header("Audio generation finished")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Outcome")
    table.add_column("Articles", justify="right")
    table.add_row("[success]succeeded[/success]", str(summary.succeeded))
    table.add_row("[info]skipped[/info]", str(summary.skipped))
    table.add_row("[error]failed[/error]", str(summary.failed))
    logger.console.print(table)

    for result in summary.failures:
        logger.error(result.error or "failed", result.article_id)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", type=click.Path(), help="Output text file path")
def clean(input_file: str, output: Optional[str]):
    """
    Show the narration text of a Markdown article (title + cleaned body).
    """
    try:
        article = load_article(Path(input_file))
    except NewscastError as e:
        logger.error(str(e))
        sys.exit(1)
    text = article.narration_text()
    logger.success(f"Cleaned text: {len(article.body):,} -> {len(text):,} characters")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        logger.success(f"Saved cleaned text to {output_path}")
    else:
        logger.console.print(text, markup=False, highlight=False)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-length", type=click.IntRange(min=1), default=None)
def chunks(input_file: str, max_length: Optional[int]):
    """
    Show how an article is split into synthesis requests.
    """
    try:
        article = load_article(Path(input_file))
    except NewscastError as e:
        logger.error(str(e))
        sys.exit(1)
    text = article.narration_text()
    pieces = chunk_text(text, max_length)

    logger.info(f"{len(text):,} characters -> {len(pieces)} segments")
    for chunk in pieces:
        preview = chunk.text[:60].replace("\n", " ")
        logger.console.print(f"  [{chunk.index:03d}] {len(chunk):5d}  {preview}...", markup=False)


@cli.command()
@click.argument("captions_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-n", "--show", default=10, help="Number of cues to print")
def captions(captions_file: str, show: int):
    """
    Inspect a WebVTT caption file.
    """
    try:
        track = load_track(Path(captions_file))
    except CaptionFormatError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"{len(track)} cues, ending at {format_timestamp(track.end_ms)}")
    if not track.is_well_formed():
        logger.warning("Cues overlap or are out of order")

    for cue in track.cues[:show]:
        logger.console.print(
            f"  {format_timestamp(cue.start_ms)} --> {format_timestamp(cue.end_ms)}  {cue.text}",
            markup=False,
        )


@cli.command()
@click.argument("captions_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
def align(captions_file: str, text_file: str):
    """
    Align a caption file with rendered article text and report coverage.
    """
    try:
        track = load_track(Path(captions_file))
    except CaptionFormatError as e:
        logger.error(str(e))
        sys.exit(1)

    words = tokenize_text(Path(text_file).read_text(encoding="utf-8"))
    mapping = CueAligner().align(track, words)

    logger.info(f"Cues:  {len(mapping)}/{len(track)} mapped")
    logger.info(f"Words: {mapping.coverage(len(words)):.1%} of {len(words)} covered")
    if mapping.is_monotonic():
        logger.success("Alignment is monotonic")
    else:
        logger.error("Alignment regresses")


@cli.command()
@click.option("--locale", default=None, help="Only voices for this locale (e.g. fr-FR)")
def list_voices(locale: Optional[str]):
    """
    List available voices.
    """
    logger.header("Available Voices")

    logger.console.print("[bold]Shortcuts:[/bold]")
    for name, voice_id in EDGE_VOICES.items():
        logger.console.print(f"  {name:<12} {voice_id}")

    if locale:
        voices = asyncio.run(list_edge_voices(locale))
        logger.console.print(f"\n[bold]{locale} voices from the service:[/bold]")
        for voice in voices:
            logger.console.print(f"  {voice['ShortName']:<40} {voice.get('Gender', '')}")

    logger.console.print(f"\nCurrent default: [highlight]{config.voice}[/highlight]")


@cli.command()
def info():
    """
    Show system information and configuration.
    """
    logger.header("Article Narration System")

    logger.console.print("[bold]Paths:[/bold]")
    logger.console.print(f"  Project root: {config.project_root}")
    logger.console.print(f"  Articles:     {config.get_path('articles')}")
    logger.console.print(f"  Output:       {config.get_path('output')}")

    logger.console.print("\n[bold]Synthesis:[/bold]")
    logger.console.print(f"  Voice:         {config.voice}")
    logger.console.print(f"  Rate:          {config.voice_rate}")
    logger.console.print(f"  Max chunk:     {config.max_chunk_length} characters")
    logger.console.print(f"  Concurrency:   {config.concurrency}")
    logger.console.print(f"  Duration probe: {config.get('audio', 'probe')}")

    logger.console.print("\n[bold]Dependencies:[/bold]")

    tools = {
        "ffprobe": shutil.which("ffprobe"),
    }
    for tool, path in tools.items():
        status = "[green]OK[/green]" if path else "[red]NOT FOUND[/red]"
        logger.console.print(f"  {tool:<12} {status}")

    try:
        import edge_tts  # noqa: F401
        logger.console.print(f"  {'edge-tts':<12} [green]OK[/green]")
    except ImportError:
        logger.console.print(f"  {'edge-tts':<12} [red]NOT FOUND[/red]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
