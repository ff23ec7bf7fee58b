"""Notify mode: send a stored digest, or a day's digests, through a channel."""

import asyncio
from datetime import date
from typing import Optional

import typer

from inbox_digest.db.repositories.digest_repo import DigestStore

from .shared import build_dispatcher, console, logger


def notify(
    user_id: str = typer.Argument(..., help="Owning user id"),
    channel: str = typer.Option("email", "--channel", "-c", help="email | whatsapp"),
    digest_id: Optional[int] = typer.Option(None, "--digest", "-d", help="Send this digest regardless of status"),
    on: Optional[str] = typer.Option(None, "--date", help="YYYY-MM-DD, default today"),
    console_only: bool = typer.Option(False, "--console", help="Print instead of sending"),
) -> None:
    """Send one digest, or every digest of a day that needs attention."""
    if channel not in ("email", "whatsapp"):
        console.print(f"[red]Unknown channel: {channel}[/red]")
        raise typer.Exit(2)
    log = logger.bind(command="notify", user_id=user_id, channel=channel)
    dispatcher = build_dispatcher(console_only=console_only)
    store = DigestStore()

    if digest_id is not None:
        digest = store.get(digest_id)
        if digest is None or digest.user_id != user_id:
            console.print(f"[red]Digest {digest_id} not found for {user_id}[/red]")
            raise typer.Exit(1)
        result = asyncio.run(dispatcher.notify(user_id, digest, channel))
        colour = "green" if result.success else "red"
        console.print(f"[{colour}]{result.message}[/{colour}]")
        log.info("notify.single", digest_id=digest_id, success=result.success)
        if not result.success:
            raise typer.Exit(1)
        return

    day = date.fromisoformat(on) if on else date.today()
    digests = store.list_for_user(user_id, limit=100, digest_date=day)
    if not digests:
        console.print(f"[yellow]No digests for {day.isoformat()}.[/yellow]")
        return
    batch = asyncio.run(dispatcher.notify_digests(user_id, digests, channel))
    console.print(f"Sent: {batch.sent}  Failed: {batch.failed}  Skipped (all clear): {batch.skipped}")
    log.info("notify.batch", sent=batch.sent, failed=batch.failed, skipped=batch.skipped)
    if not batch.success:
        raise typer.Exit(1)
