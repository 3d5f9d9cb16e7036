"""
Rich logging utilities for the article narration system.

Per-article messages take an optional ``article_id`` and are printed as
``[<id>] message`` so interleaved output from concurrent jobs stays readable.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.theme import Theme

# Theme for the narration pipeline
custom_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "step": "blue bold",
        "highlight": "magenta",
        "article": "dim cyan",
    }
)

GLYPHS = {
    "info": "ℹ",
    "success": "✓",
    "warning": "⚠",
    "error": "✗",
}

# Global console instance
console = Console(theme=custom_theme)


def _emit(level: str, message: str, article_id: Optional[str]) -> None:
    # Escaped bracket: ids are shown literally, not parsed as markup
    prefix = f"[article]\\[{article_id}][/article] " if article_id else ""
    console.print(f"[{level}]{GLYPHS[level]}[/{level}] {prefix}{message}")


def info(message: str, article_id: Optional[str] = None) -> None:
    _emit("info", message, article_id)


def success(message: str, article_id: Optional[str] = None) -> None:
    _emit("success", message, article_id)


def warning(message: str, article_id: Optional[str] = None) -> None:
    _emit("warning", message, article_id)


def error(message: str, article_id: Optional[str] = None) -> None:
    _emit("error", message, article_id)


def step(message: str, step_num: Optional[int] = None, total: Optional[int] = None) -> None:
    """Print a pipeline stage, numbered when its position is known."""
    marker = f"[{step_num}/{total}]" if step_num and total else "→"
    console.print(f"[step]{marker}[/step] {message}")


def header(message: str) -> None:
    """Print a section rule."""
    console.print()
    console.rule(f"[bold]{message}[/bold]")
    console.print()


def create_progress() -> Progress:
    """Progress bar for a generation run: one task, advanced per article."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
