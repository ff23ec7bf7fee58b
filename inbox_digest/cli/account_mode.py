"""Account mode: connect/disconnect mailboxes and set notification preferences."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer

from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.auth.google_oauth import GoogleTokenClient
from inbox_digest.db.repositories import account_repo, settings_repo
from inbox_digest.errors import CredentialError
from inbox_digest.models.account import TokenGrant
from inbox_digest.utils.validators import is_valid_e164, is_valid_email

from .shared import build_orchestrator, build_provider, close_provider, console, logger, print_account_result


def add_account(
    user_id: str = typer.Argument(..., help="Owning user id"),
    email: str = typer.Argument(..., help="Mailbox address"),
    code: Optional[str] = typer.Option(None, "--code", help="OAuth authorization code to exchange"),
    redirect_uri: str = typer.Option("http://localhost:8080/callback", "--redirect-uri"),
    access_token: Optional[str] = typer.Option(None, "--access-token", help="Existing access token"),
    refresh_token: Optional[str] = typer.Option(None, "--refresh-token", help="Existing refresh token"),
    expires_in: int = typer.Option(3600, "--expires-in", help="Seconds until the access token expires"),
    initial_summary: bool = typer.Option(True, "--initial-summary/--no-initial-summary"),
    mock_inbox: Optional[Path] = typer.Option(None, "--mock-inbox", help="Read messages from a JSON file"),
) -> None:
    """Connect a mailbox from an OAuth code or existing tokens, then build its first digest."""
    log = logger.bind(command="add-account", user_id=user_id)
    token_client = GoogleTokenClient()
    if code:
        try:
            grant = asyncio.run(token_client.exchange_code(code, redirect_uri))
        except CredentialError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1) from e
    elif access_token:
        grant = TokenGrant(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )
    else:
        console.print("[red]Provide --code or --access-token[/red]")
        raise typer.Exit(2)

    account = CredentialManager(token_client).connect_account(user_id, email, grant)
    console.print(f"[green]Connected {email} as account {account.id}[/green]")
    log.info("add_account.connected", account_id=account.id)

    if initial_summary:
        async def _run():
            provider = build_provider(mock_inbox)
            try:
                return await build_orchestrator(provider).trigger_initial_summary(user_id, account.id)
            finally:
                await close_provider(provider)

        print_account_result(asyncio.run(_run()))


def remove_account(account_id: int = typer.Argument(..., help="Account id to disconnect")) -> None:
    """Disconnect a mailbox; its digests and ledger entries are removed with it."""
    if account_repo.delete_account(account_id):
        console.print(f"[green]Removed account {account_id}[/green]")
        logger.info("remove_account.done", account_id=account_id)
    else:
        console.print(f"[yellow]No account {account_id}[/yellow]")
        raise typer.Exit(1)


def set_preferences(
    user_id: str = typer.Argument(..., help="Owning user id"),
    by_email: Optional[bool] = typer.Option(None, "--email/--no-email", help="Receive digests by email"),
    by_whatsapp: Optional[bool] = typer.Option(None, "--whatsapp/--no-whatsapp", help="Receive digests by WhatsApp"),
    email_address: Optional[str] = typer.Option(None, "--email-address"),
    whatsapp_number: Optional[str] = typer.Option(None, "--whatsapp-number", help="E.164, e.g. +15551234567"),
) -> None:
    """Create or update notification preferences."""
    if email_address is not None and not is_valid_email(email_address):
        console.print(f"[red]Invalid email address: {email_address}[/red]")
        raise typer.Exit(2)
    if whatsapp_number is not None and not is_valid_e164(whatsapp_number):
        console.print(f"[red]Invalid WhatsApp number (expected E.164): {whatsapp_number}[/red]")
        raise typer.Exit(2)
    updates = {
        "receive_by_email": by_email,
        "receive_by_whatsapp": by_whatsapp,
        "email": email_address,
        "whatsapp_number": whatsapp_number,
    }
    settings = settings_repo.upsert_settings(user_id, **{k: v for k, v in updates.items() if v is not None})
    console.print(
        f"[green]Saved.[/green] email={'on' if settings.receive_by_email else 'off'} ({settings.email or '-'}), "
        f"whatsapp={'on' if settings.receive_by_whatsapp else 'off'} ({settings.whatsapp_number or '-'})"
    )
    logger.info("set_preferences.saved", user_id=user_id)
