"""Summarize mode: build today's (or a given window's) digest for one account or all of a user's accounts."""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from inbox_digest.utils.logger import bind_context, clear_context

from .shared import (
    build_orchestrator,
    build_provider,
    close_provider,
    console,
    logger,
    print_account_result,
    print_all_accounts,
)

RANGE_HELP = "today | initial_setup | <days> | YYYY-MM-DD:YYYY-MM-DD"


def summarize(
    user_id: str = typer.Argument(..., help="Owning user id"),
    account_id: int = typer.Argument(..., help="Connected account id"),
    date_range: str = typer.Option("today", "--range", "-r", help=RANGE_HELP),
    force: bool = typer.Option(False, "--force", "-f", help="Regenerate even if today's digest exists"),
    mock_inbox: Optional[Path] = typer.Option(None, "--mock-inbox", help="Read messages from a JSON file"),
) -> None:
    """Generate the digest for one account."""
    log = logger.bind(command="summarize", user_id=user_id, account_id=account_id, date_range=date_range)
    log.info("summarize.start", force=force)
    bind_context(command="summarize")

    async def _run():
        provider = build_provider(mock_inbox)
        try:
            orchestrator = build_orchestrator(provider)
            return await orchestrator.generate_account_summary(user_id, account_id, date_range, force=force)
        finally:
            await close_provider(provider)

    try:
        result = asyncio.run(_run())
    finally:
        clear_context()
    print_account_result(result)
    log.info("summarize.complete", success=result.success, summary_id=result.summary_id)
    if not result.success:
        raise typer.Exit(1)


def summarize_all(
    user_id: str = typer.Argument(..., help="Owning user id"),
    date_range: str = typer.Option("today", "--range", "-r", help=RANGE_HELP),
    force: bool = typer.Option(False, "--force", "-f", help="Regenerate existing digests"),
    mock_inbox: Optional[Path] = typer.Option(None, "--mock-inbox", help="Read messages from a JSON file"),
) -> None:
    """Generate digests for every account of a user; one failing account does not stop the others."""
    log = logger.bind(command="summarize-all", user_id=user_id, date_range=date_range)
    log.info("summarize_all.start", force=force)

    async def _run():
        provider = build_provider(mock_inbox)
        try:
            orchestrator = build_orchestrator(provider)
            return await orchestrator.generate_all_account_summaries(user_id, date_range, force=force)
        finally:
            await close_provider(provider)

    result = asyncio.run(_run())
    if result.total_accounts == 0:
        console.print(f"[yellow]{result.message}[/yellow]")
    else:
        print_all_accounts(result)
    log.info(
        "summarize_all.complete",
        total=result.total_accounts,
        successful=result.successful_accounts,
    )
    if not result.success:
        raise typer.Exit(1)
