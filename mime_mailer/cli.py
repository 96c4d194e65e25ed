# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for mime-mailer.

Usage:
    mime-mailer render message.json > message.eml
    mime-mailer send message.json --host smtp.example.com --port 587 \\
        --user mailer@example.com --password secret --tls-mode required

Connection options fall back to the config file and MIME_MAILER_*
environment variables (see :mod:`mime_mailer.config_loader`).
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from .builder import MessageBuilder
from .config_loader import ENV_PREFIX, load_settings
from .errors import MailError
from .logger import configure_logging
from .schema import MessagePayload
from .sender import Sender
from .smtp_session import TLSMode

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Execute an async coroutine synchronously from CLI context."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")


def load_payload(path: str) -> MessagePayload:
    """Parse and validate the JSON message document at ``path``.

    Raises:
        click.ClickException: when the file is not valid JSON or fails validation.
    """
    try:
        data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc
    try:
        return MessagePayload.model_validate(data)
    except ValidationError as exc:
        raise click.ClickException(f"Invalid message in {path}:\n{exc}") from exc


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Logging level.",
)
def main(log_level: str) -> None:
    """Compose MIME messages and deliver them over SMTP."""
    configure_logging(log_level)


@main.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", type=click.Path(dir_okay=False, writable=True), help="Write to a file instead of stdout.")
def render(payload: str, output: Optional[str]) -> None:
    """Render PAYLOAD (a JSON message document) to MIME bytes."""
    message_payload = load_payload(payload)
    try:
        message = message_payload.to_message(base_dir=Path(payload).parent)
        raw = MessageBuilder().render(message)
    except MailError as exc:
        print_error(str(exc))
        sys.exit(1)
    if output:
        Path(output).write_bytes(raw)
        print_success(f"Message written to {output} ({len(raw)} bytes)")
        return
    stream = click.get_binary_stream("stdout")
    stream.write(raw)
    stream.flush()


@main.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="INI file with an [smtp] section.")
@click.option("--host", help="SMTP server host.")
@click.option("--port", type=int, help="SMTP server port.")
@click.option("--user", help="SMTP username.")
@click.option("--password", help="SMTP password.")
@click.option(
    "--tls-mode",
    type=click.Choice([mode.value for mode in TLSMode]),
    help="opportunistic: STARTTLS when offered; required: STARTTLS or fail; implicit: TLS on connect.",
)
@click.option("--timeout", type=float, help="Per-command timeout in seconds.")
def send(
    payload: str,
    config_path: Optional[str],
    host: Optional[str],
    port: Optional[int],
    user: Optional[str],
    password: Optional[str],
    tls_mode: Optional[str],
    timeout: Optional[float],
) -> None:
    """Send PAYLOAD (a JSON message document) through an SMTP server."""
    message_payload = load_payload(payload)
    try:
        settings = load_settings(config_path)
        overrides = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "tls_mode": TLSMode(tls_mode) if tls_mode else None,
            "timeout": timeout,
        }
        settings = dataclasses.replace(
            settings, **{key: value for key, value in overrides.items() if value is not None}
        )
        message = message_payload.to_message(base_dir=Path(payload).parent)
        sender = Sender.from_settings(settings)
        run_async(sender.send_mail(message))
    except MailError as exc:
        print_error(f"{exc} [{exc.code}]")
        sys.exit(1)

    recipients = len(message.to) + len(message.cc) + len(message.bcc)
    print_success(f"Message sent to {recipients} recipient(s) via {settings.host}:{settings.port}")


if __name__ == "__main__":
    main()
