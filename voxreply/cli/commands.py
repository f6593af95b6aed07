"""CLI commands for voxreply."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer

from voxreply import __version__
from voxreply.config.loader import load_config
from voxreply.errors import ReplyError
from voxreply.event import ConversationEvent
from voxreply.logging import setup_logging
from voxreply.renderer import DictRenderer
from voxreply.turn import TurnComposer

app = typer.Typer(
    name="voxreply",
    help="voxreply - compose voice assistant turn replies",
    no_args_is_help=True,
)


def version_callback(value: bool):
    if value:
        typer.echo(f"voxreply v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """voxreply - compose voice assistant turn replies."""
    pass


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"Error: cannot read {what} {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def compose(
    event_file: Path = typer.Argument(..., help="Request envelope JSON"),
    fragments_file: Path = typer.Argument(..., help="JSON list of reply fragments"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config JSON"),
    messages_file: Optional[Path] = typer.Option(None, "--messages", help="Messages JSON used to render hint keys"),
    plain: bool = typer.Option(False, "--plain", help="Emit PlainText speech instead of SSML"),
    strict: bool = typer.Option(False, "--strict", help="Fail instead of emitting the fallback reply"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
):
    """Compose a reply from fragments and print the outbound payload."""
    config = load_config(config_path)
    setup_logging(config.logging, level=log_level)
    if plain:
        config.reply.speech_kind = "PlainText"

    envelope = _read_json(event_file, "event")
    fragments = _read_json(fragments_file, "fragments")
    if not isinstance(fragments, list):
        fragments = [fragments]
    renderer = DictRenderer(_read_json(messages_file, "messages")) if messages_file else None

    event = ConversationEvent(envelope, renderer=renderer)
    composer = TurnComposer(config)
    if strict:
        try:
            payload = asyncio.run(composer.compose_strict(event, fragments))
        except ReplyError as e:
            typer.echo(f"Error [{e.code}]: {e}", err=True)
            raise typer.Exit(1)
    else:
        payload = asyncio.run(composer.compose(event, fragments))

    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    app()
