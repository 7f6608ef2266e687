"""Console, logging and file helpers shared by the CLI and the store."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

if TYPE_CHECKING:
    from chat_history.config import Settings

console = Console()
err_console = Console(stderr=True)


def setup_logging(log_level: str, log_file: str | None, *, quiet: bool) -> None:
    """Configure the root logger for the CLI.

    Library modules only create loggers; handlers are installed here.
    """
    handlers: list[logging.Handler] = []
    if not quiet:
        handlers.append(RichHandler(console=err_console, rich_tracebacks=True, show_path=False))
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w"))

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers or [logging.NullHandler()],
        force=True,
    )


def print_error_message(message: str, suggestion: str | None = None) -> None:
    """Print an error panel with an optional suggestion."""
    body = f"[bold red]{escape(message)}[/bold red]"
    if suggestion:
        body += f"\n\n{escape(suggestion)}"
    console.print(Panel(body, title="Error", border_style="red"))


def print_settings(settings: Settings) -> None:
    """Show the effective history limits."""
    history = settings.history
    console.print(
        f"[dim]model={settings.provider.model} "
        f"pairs<={history.max_turn_pairs} "
        f"summarize>={history.summary_trigger_tokens:,} tokens "
        f"budget={history.token_budget:,}[/dim]",
    )


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temp file so readers never see partial data."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        Path(tmp_name).replace(path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
