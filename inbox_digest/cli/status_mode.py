"""Status mode: latest digest per account, and digest history with statistics."""

from datetime import date
from typing import Optional

import typer
from rich.table import Table

from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.mail_provider import MockMailProvider
from inbox_digest.notifications import format_digest_message

from .shared import STATUS_STYLE, build_orchestrator, console, logger


def status(user_id: str = typer.Argument(..., help="Owning user id")) -> None:
    """Show each account's latest digest and whether today's exists."""
    log = logger.bind(command="status", user_id=user_id)
    # Status reads only the store, so no real provider is needed
    result = build_orchestrator(MockMailProvider()).get_user_summary_status(user_id)
    if not result.success:
        console.print(f"[red]{result.message}[/red]")
        raise typer.Exit(1)
    table = Table(title=f"Summary status for {user_id}")
    table.add_column("ID", justify="right")
    table.add_column("Account", style="cyan")
    table.add_column("Last summary")
    table.add_column("Status")
    table.add_column("Today", justify="center")
    for a in result.accounts:
        style = STATUS_STYLE.get(a.last_summary_status or "", "white")
        table.add_row(
            str(a.account_id),
            a.account_email,
            a.last_summary_date.isoformat() if a.last_summary_date else "-",
            f"[{style}]{a.last_summary_status or '-'}[/{style}]",
            "[green]yes[/green]" if a.has_recent_summary else "no",
        )
    console.print(table)
    log.info("status.complete", accounts=len(result.accounts))


def history(
    user_id: str = typer.Argument(..., help="Owning user id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of digests"),
    account_id: Optional[int] = typer.Option(None, "--account", "-a", help="Only this account"),
    show: bool = typer.Option(False, "--show", help="Print each digest as its notification text"),
    days: int = typer.Option(30, "--days", help="Window for statistics"),
) -> None:
    """List recent digests and status statistics."""
    store = DigestStore()
    digests = store.list_for_user(user_id, limit=limit, account_id=account_id)
    if not digests:
        console.print("[yellow]No digests yet.[/yellow]")
        return
    table = Table(title=f"Digests for {user_id}")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Account", justify="right")
    table.add_column("Rev", justify="right")
    table.add_column("Status")
    table.add_column("Emails", justify="right")
    table.add_column("Delivery")
    for d in digests:
        style = STATUS_STYLE.get(d.status, "white")
        table.add_row(
            str(d.id),
            d.date_processed.isoformat(),
            str(d.account_id),
            str(d.revision),
            f"[{style}]{d.status}[/{style}]",
            str(d.email_count),
            f"{d.delivery_status} via {d.sent_via}" if d.delivery_status else "-",
        )
    console.print(table)
    if show:
        for d in digests:
            console.print(f"\n[bold]#{d.id} {d.date_processed.isoformat()}[/bold]")
            console.print(format_digest_message(d))
    stats = store.stats_for_user(user_id, days=days, today=date.today())
    by_status = ", ".join(f"{k}={v}" for k, v in stats["by_status"].items())
    console.print(
        f"\nLast {days} days: {stats['total_summaries']} digests ({by_status}), "
        f"avg {stats['avg_emails_per_summary']} emails"
    )
