"""Shared CLI helpers: console, logger, pipeline wiring, result printing."""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from inbox_digest.agents.summarizer import SummarizationEngine
from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.auth.google_oauth import GoogleTokenClient
from inbox_digest.fetcher import MessageFetcher
from inbox_digest.mail_provider import GmailProvider, MailProvider, MockMailProvider
from inbox_digest.models.results import AccountSummaryResult, AllAccountsResult
from inbox_digest.notifications import (
    ConsoleChannel,
    NotificationChannel,
    NotificationDispatcher,
    SmtpEmailChannel,
    TwilioWhatsAppChannel,
)
from inbox_digest.orchestrator import DigestOrchestrator
from inbox_digest.utils.logger import get_logger

console = Console()
logger = get_logger("inbox_digest.cli")

STATUS_STYLE = {
    "attention_needed": "red",
    "worth_a_look": "yellow",
    "all_clear": "green",
}


def build_provider(mock_inbox: Optional[Path] = None) -> MailProvider:
    """Gmail API provider, or the JSON mock when ``mock_inbox`` is given."""
    if mock_inbox is not None:
        return MockMailProvider(inbox_path=mock_inbox)
    return GmailProvider()


async def close_provider(provider: MailProvider) -> None:
    aclose = getattr(provider, "aclose", None)
    if aclose is not None:
        await aclose()


def build_orchestrator(provider: MailProvider) -> DigestOrchestrator:
    return DigestOrchestrator(
        credentials=CredentialManager(GoogleTokenClient()),
        fetcher=MessageFetcher(provider),
        summarizer=SummarizationEngine(),
    )


def build_dispatcher(console_only: bool = False) -> NotificationDispatcher:
    """Real channels where configured; the console stands in for any that are not."""
    smtp = SmtpEmailChannel()
    twilio = TwilioWhatsAppChannel()
    channels: dict[str, NotificationChannel] = {
        "email": smtp if smtp.configured and not console_only else ConsoleChannel("email", console=console),
        "whatsapp": twilio
        if twilio.configured and not console_only
        else ConsoleChannel("whatsapp", console=console),
    }
    logger.debug(
        "cli.dispatcher_built",
        email=type(channels["email"]).__name__,
        whatsapp=type(channels["whatsapp"]).__name__,
    )
    return NotificationDispatcher(channels)


def print_account_result(result: AccountSummaryResult) -> None:
    colour = "green" if result.success else "red"
    console.print(f"[{colour}]{result.message}[/{colour}]")
    console.print(f"  Account: {result.account_email or result.account_id}")
    if result.summary_id is not None:
        style = STATUS_STYLE.get(result.inbox_status or "", "white")
        console.print(f"  Summary ID: {result.summary_id}")
        console.print(f"  Status: [{style}]{result.inbox_status}[/{style}]")
        console.print(f"  Emails: {result.email_count}")
    if result.error:
        console.print(f"  [dim]Error: {result.error}[/dim]")


def print_all_accounts(result: AllAccountsResult, title: str = "Account summaries") -> None:
    table = Table(title=title)
    table.add_column("Account", style="cyan")
    table.add_column("OK", justify="center")
    table.add_column("Status")
    table.add_column("Emails", justify="right")
    table.add_column("Message")
    for r in result.results:
        style = STATUS_STYLE.get(r.inbox_status or "", "white")
        table.add_row(
            r.account_email or str(r.account_id),
            "[green]yes[/green]" if r.success else "[red]no[/red]",
            f"[{style}]{r.inbox_status or '-'}[/{style}]",
            str(r.email_count),
            r.error or r.message,
        )
    console.print(table)
    console.print(f"[bold]{result.message}[/bold]")
