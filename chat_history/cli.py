"""Command line interface: interactive chat, stored conversations and exports."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path  # noqa: TC003

import typer
from rich.markup import escape
from rich.table import Table

from chat_history.commands import handle_slash_command, parse_slash_command
from chat_history.config import Settings, load_config, parse_reasoning_policy
from chat_history.errors import ChatHistoryError
from chat_history.presets import SYSTEM_PROMPT_PRESETS
from chat_history.services.factory import get_chat_session
from chat_history.store import ConversationStore, export_json, export_markdown
from chat_history.utils import console, print_error_message, print_settings, setup_logging

LOGGER = logging.getLogger(__name__)

app = typer.Typer(
    name="chat-history",
    help="Chat with an LLM while keeping long conversations inside the context window.",
    add_completion=True,
)


class ExportFormat(str, Enum):
    """Output format for conversation exports."""

    markdown = "markdown"
    json = "json"


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Path to a TOML config file.",
)
LOG_LEVEL_OPTION = typer.Option("WARNING", "--log-level", help="Set logging level.")
LOG_FILE_OPTION = typer.Option(None, "--log-file", help="Path to a file to write logs to.")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Chat with history trimming and rolling summaries."""
    if ctx.invoked_subcommand is None:
        console.print("[bold red]No command specified.[/bold red]")
        console.print("[bold yellow]Running --help for your convenience.[/bold yellow]")
        console.print(ctx.get_help())
        raise typer.Exit
    import dotenv  # noqa: PLC0415

    dotenv.load_dotenv()


def _load_settings(config_file: str | None) -> Settings:
    try:
        return Settings.from_mapping(load_config(config_file))
    except ValueError as e:
        print_error_message(f"Invalid configuration: {e}", "Check your config file.")
        raise typer.Exit(1) from e


async def _chat_loop(settings: Settings, *, persist: bool) -> None:
    session = get_chat_session(settings, persist=persist)
    print_settings(settings)
    console.print("[dim]Type /help for commands.[/dim]")
    while True:
        try:
            text = await asyncio.to_thread(console.input, "[bold cyan]You[/bold cyan]: ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            return
        if not text.strip():
            continue

        parsed = parse_slash_command(text)
        if parsed is not None:
            command, args = parsed
            console.print(await handle_slash_command(command, args, session), markup=False)
            continue

        console.print("[bold green]Assistant[/bold green]: ", end="")
        try:
            async for fragment in session.send(text):
                style = "dim italic" if fragment.is_reasoning else None
                console.print(fragment.text, style=style, end="", markup=False)
        except ChatHistoryError as e:
            console.print()
            LOGGER.exception("Chat request failed")
            print_error_message(str(e), "Your message was not kept; please try again.")
            continue
        console.print()
        manager = session.manager
        console.print(
            f"[dim]{manager.token_count:,} / {manager.token_budget:,} tokens[/dim]",
        )


@app.command("chat")
def chat(
    config_file: str | None = CONFIG_OPTION,
    model: str | None = typer.Option(None, "--model", help="Model name."),
    reasoning: str | None = typer.Option(
        None,
        "--reasoning",
        help="Reasoning level: off, minimal, low, medium or high.",
    ),
    no_store: bool = typer.Option(
        False,  # noqa: FBT003
        "--no-store",
        help="Do not persist the conversation.",
    ),
    log_level: str = LOG_LEVEL_OPTION,
    log_file: str | None = LOG_FILE_OPTION,
) -> None:
    """Start an interactive chat."""
    setup_logging(log_level, log_file, quiet=False)
    settings = _load_settings(config_file)
    if model:
        settings.provider.model = model
    if reasoning:
        try:
            policy = parse_reasoning_policy(reasoning)
        except ValueError as e:
            print_error_message(str(e))
            raise typer.Exit(1) from e
        settings = settings.model_copy(
            update={"generation": settings.generation.model_copy(update={"reasoning": policy})},
        )
    asyncio.run(_chat_loop(settings, persist=not no_store))


@app.command("conversations")
def conversations(config_file: str | None = CONFIG_OPTION) -> None:
    """List stored conversations."""
    settings = _load_settings(config_file)
    store = ConversationStore(settings.store.resolved_path)
    stored = store.list_conversations()
    if not stored:
        console.print("[yellow]No stored conversations.[/yellow]")
        return
    table = Table(title="Conversations")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Turns", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Updated")
    for conv in stored:
        table.add_row(
            conv.id,
            escape(conv.title) if conv.title else "-",
            str(len(conv.turns)),
            f"{conv.token_count:,}",
            f"{conv.updated_at:%Y-%m-%d %H:%M}",
        )
    console.print(table)


@app.command("export")
def export(
    conversation_id: str = typer.Argument(..., help="Conversation ID."),
    output_format: ExportFormat = typer.Option(
        ExportFormat.markdown,
        "--format",
        "-f",
        help="Export format.",
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file."),  # noqa: B008
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Export a stored conversation as Markdown or JSON."""
    settings = _load_settings(config_file)
    store = ConversationStore(settings.store.resolved_path)
    try:
        conversation = store.get(conversation_id)
    except ChatHistoryError as e:
        print_error_message(str(e))
        raise typer.Exit(1) from e
    if conversation is None:
        print_error_message(f"Conversation not found: {conversation_id}")
        raise typer.Exit(1)

    if output_format == ExportFormat.json:
        content = export_json(conversation)
    else:
        content = export_markdown(conversation)

    if output:
        output.write_text(content, encoding="utf-8")
        console.print(f"[green]Exported to {output}[/green]")
    else:
        console.print(content, markup=False, highlight=False)


@app.command("rename")
def rename(
    conversation_id: str = typer.Argument(..., help="Conversation ID."),
    title: str = typer.Argument(..., help="New title."),
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Rename a stored conversation."""
    settings = _load_settings(config_file)
    store = ConversationStore(settings.store.resolved_path)
    try:
        store.update_title(conversation_id, title)
    except ChatHistoryError as e:
        print_error_message(str(e))
        raise typer.Exit(1) from e
    console.print(f"[green]Renamed {conversation_id}[/green]")


@app.command("delete")
def delete(
    conversation_id: str = typer.Argument(..., help="Conversation ID."),
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Delete a stored conversation."""
    settings = _load_settings(config_file)
    store = ConversationStore(settings.store.resolved_path)
    try:
        deleted = store.delete(conversation_id)
    except ChatHistoryError as e:
        print_error_message(str(e))
        raise typer.Exit(1) from e
    if not deleted:
        print_error_message(f"Conversation not found: {conversation_id}")
        raise typer.Exit(1)
    console.print(f"[green]Deleted {conversation_id}[/green]")


@app.command("presets")
def presets() -> None:
    """List the available personas."""
    table = Table(title="Personas")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for preset in SYSTEM_PROMPT_PRESETS:
        table.add_row(preset.id, preset.name, preset.description or "")
    console.print(table)
