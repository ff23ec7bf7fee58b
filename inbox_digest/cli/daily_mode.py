"""Daily mode: the scheduled job. Digests for every user, then optional notifications."""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.utils.logger import pipeline_context

from .shared import (
    build_dispatcher,
    build_orchestrator,
    build_provider,
    close_provider,
    console,
    logger,
    print_all_accounts,
)


def daily(
    notify: bool = typer.Option(False, "--notify", "-n", help="Send notifications for digests that need attention"),
    channel: str = typer.Option("email", "--channel", "-c", help="email | whatsapp"),
    user: Optional[list[str]] = typer.Option(None, "--user", "-u", help="Limit to these user ids"),
    mock_inbox: Optional[Path] = typer.Option(None, "--mock-inbox", help="Read messages from a JSON file"),
    console_only: bool = typer.Option(False, "--console", help="Print notifications instead of sending"),
) -> None:
    """Run the daily digest job across users."""
    if channel not in ("email", "whatsapp"):
        console.print(f"[red]Unknown channel: {channel}[/red]")
        raise typer.Exit(2)
    log = logger.bind(command="daily", notify=notify, channel=channel)
    log.info("daily.start")

    async def _run():
        provider = build_provider(mock_inbox)
        try:
            orchestrator = build_orchestrator(provider)
            run = await orchestrator.run_daily(user_ids=user or None)
        finally:
            await close_provider(provider)
        if not notify:
            return run, {}
        dispatcher = build_dispatcher(console_only=console_only)
        store = DigestStore()
        notified = {}
        for user_id, result in run.users.items():
            ids = {r.summary_id for r in result.results if r.success and r.summary_id is not None}
            digests = [d for d in (store.get(i) for i in sorted(ids)) if d is not None]
            with pipeline_context(command="daily", user_id=user_id):
                try:
                    notified[user_id] = await dispatcher.notify_digests(user_id, digests, channel)
                except Exception:
                    log.exception("daily.notify_user_failed")
        return run, notified

    run, notified = asyncio.run(_run())
    for user_id, result in run.users.items():
        print_all_accounts(result, title=f"User {user_id}")
        batch = notified.get(user_id)
        if batch is not None:
            console.print(f"  Notifications: sent={batch.sent} failed={batch.failed} skipped={batch.skipped}")
    console.print(
        f"\n[bold]Users: {run.total_users}  Accounts: {run.total_accounts}  "
        f"Successful: {run.successful_accounts}  Failed: {run.failed_accounts}[/bold]"
    )
    log.info(
        "daily.complete",
        users=run.total_users,
        accounts=run.total_accounts,
        failed=run.failed_accounts,
    )
