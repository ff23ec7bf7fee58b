"""Orchestrate the digest pipeline: credentials -> fetch -> dedup -> summarize -> persist -> ledger."""

import asyncio
from datetime import date
from time import perf_counter
from typing import Callable, Optional

from opentelemetry.trace import Status, StatusCode

from inbox_digest.agents.summarizer import SummarizationEngine
from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.config import ACCOUNT_TIMEOUT_SECONDS
from inbox_digest.db.repositories import account_repo
from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.db.repositories.ledger_repo import DeduplicationLedger
from inbox_digest.errors import (
    CredentialError,
    DigestError,
    DigestValidationError,
    FetchError,
    PersistenceError,
    SummarizationError,
)
from inbox_digest.fetcher import MessageFetcher
from inbox_digest.models.account import Account
from inbox_digest.models.results import (
    AccountSummaryResult,
    AccountSummaryStatus,
    AllAccountsResult,
    DailyRunResult,
    Err,
    SummaryStatusResult,
)
from inbox_digest.models.window import DateRangeSpec, DateWindow
from inbox_digest.utils.logger import get_logger, log_pipeline_step, pipeline_context
from inbox_digest.utils.tracing import get_tracer

logger = get_logger("inbox_digest.orchestrator")


class DigestOrchestrator:
    """Composes the pipeline for one account, or for every account of a user.

    Public methods return result models; expected failures never escape as exceptions.
    """

    def __init__(
        self,
        credentials: CredentialManager,
        fetcher: MessageFetcher,
        summarizer: SummarizationEngine,
        ledger: Optional[DeduplicationLedger] = None,
        digests: Optional[DigestStore] = None,
        account_timeout: float = ACCOUNT_TIMEOUT_SECONDS,
        today: Optional[Callable[[], date]] = None,
    ):
        self._credentials = credentials
        self._fetcher = fetcher
        self._summarizer = summarizer
        self._ledger = ledger or DeduplicationLedger()
        self._digests = digests or DigestStore()
        self._account_timeout = account_timeout
        self._today = today or date.today

    async def generate_account_summary(
        self,
        user_id: str,
        account_id: int,
        date_range: DateRangeSpec = "today",
        force: bool = False,
    ) -> AccountSummaryResult:
        try:
            window = DateWindow.parse(date_range)
        except ValueError as e:
            return AccountSummaryResult(
                account_id=account_id, success=False, message="Invalid date range", error=str(e)
            )
        try:
            account = account_repo.get_account(account_id, user_id=user_id)
        except DigestError as e:
            logger.error("orchestrator.account_lookup_failed", account_id=account_id, error=str(e))
            return AccountSummaryResult(
                account_id=account_id, success=False, message="Failed to load account", error=str(e)
            )
        if account is None:
            return AccountSummaryResult(
                account_id=account_id,
                success=False,
                message="Account not found",
                error=f"No account {account_id} for user {user_id}",
            )
        return await self._guarded(user_id, account, window, force)

    async def _guarded(
        self,
        user_id: str,
        account: Account,
        window: DateWindow,
        force: bool,
    ) -> AccountSummaryResult:
        """Run one account's pipeline, converting every failure into a result."""
        log = logger.bind(account_email=account.email, window=window.mode, force=force)
        with pipeline_context(user_id=user_id, account_id=account.id):
            try:
                run = self._run_account(user_id, account, window, force)
                if self._account_timeout and self._account_timeout > 0:
                    return await asyncio.wait_for(run, timeout=self._account_timeout)
                return await run
            except asyncio.TimeoutError:
                log.error("orchestrator.account_timeout", timeout=self._account_timeout)
                return self._failure(account, "Summary generation timed out", f"Exceeded {self._account_timeout}s")
            except DigestError as e:
                log.warning("orchestrator.account_failed", error=str(e), error_type=type(e).__name__)
                return self._failure(account, _failure_message(e), str(e))
            except Exception as e:
                log.exception("orchestrator.account_unexpected_error")
                return self._failure(account, "Failed to generate summary", f"{type(e).__name__}: {e}")

    @staticmethod
    def _failure(account: Account, message: str, error: str) -> AccountSummaryResult:
        return AccountSummaryResult(
            account_id=account.id,
            account_email=account.email,
            success=False,
            message=message,
            error=error or message,
        )

    async def _run_account(
        self,
        user_id: str,
        account: Account,
        window: DateWindow,
        force: bool,
    ) -> AccountSummaryResult:
        tracer = get_tracer()
        start = perf_counter()
        today = self._today()
        digest_date = window.digest_date(today)
        log = logger.bind(window=window.mode, force=force)
        log.info("account_summary.start", digest_date=digest_date.isoformat())

        with pipeline_context(digest_date=digest_date.isoformat()), tracer.start_as_current_span(
            "generate_account_summary",
            attributes={
                "digest.account_id": account.id,
                "digest.date": digest_date.isoformat(),
                "digest.force": force,
            },
        ) as root_span:
            try:
                if not force:
                    existing = self._digests.latest_for_date(account.id, digest_date)
                    if existing is not None:
                        log.info("account_summary.already_exists", summary_id=existing.id)
                        root_span.set_attribute("digest.already_exists", True)
                        return AccountSummaryResult(
                            account_id=account.id,
                            account_email=account.email,
                            success=True,
                            message=f"Summary already exists for {digest_date.isoformat()}",
                            summary_id=existing.id,
                            inbox_status=existing.status,
                            email_count=existing.email_count,
                            already_exists=True,
                        )

                with tracer.start_as_current_span("credentials"):
                    valid = await self._credentials.get_valid_credentials(account)
                    if valid is None:
                        raise CredentialError(f"Could not obtain valid credentials for {account.email}")

                with tracer.start_as_current_span("fetch") as span:
                    fetched = await self._fetcher.fetch_messages(valid.access_token, window, today=today)
                    span.set_attribute("digest.fetched", len(fetched.messages))

                with tracer.start_as_current_span("dedup") as span:
                    fresh = self._ledger.filter_unprocessed(account.id, fetched.messages)
                    span.set_attribute("digest.unprocessed", len(fresh))
                log_pipeline_step(
                    "dedup", "Filtered processed messages", fetched=len(fetched.messages), unprocessed=len(fresh)
                )

                with tracer.start_as_current_span("summarize"):
                    summary = await self._summarizer.summarize(fresh, window.describe(today))
                if isinstance(summary, Err):
                    raise summary.error

                with tracer.start_as_current_span("persist"):
                    outcome = self._digests.create_if_absent(
                        user_id=user_id,
                        account_id=account.id,
                        digest_date=digest_date,
                        content=summary.value,
                        email_count=len(fresh),
                        force=force,
                    )
                    ledger_warning = None
                    if outcome.created and fresh:
                        try:
                            self._ledger.record_processed(account.id, [m.id for m in fresh])
                        except PersistenceError as e:
                            # Digest is already committed
                            log.error("account_summary.ledger_failed", summary_id=outcome.digest.id, error=str(e))
                            ledger_warning = f"processed messages not recorded: {e}"

                digest = outcome.digest
                if not outcome.created:
                    message = f"Summary already exists for {digest_date.isoformat()}"
                elif ledger_warning:
                    message = f"Summary generated with a warning: {ledger_warning}"
                else:
                    message = "Summary generated successfully"
                root_span.set_attribute("digest.status", digest.status)
                log.info(
                    "account_summary.complete",
                    summary_id=digest.id,
                    created=outcome.created,
                    inbox_status=digest.status,
                    email_count=digest.email_count,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                )
                return AccountSummaryResult(
                    account_id=account.id,
                    account_email=account.email,
                    success=True,
                    message=message,
                    summary_id=digest.id,
                    inbox_status=digest.status,
                    email_count=digest.email_count,
                    created=outcome.created,
                    already_exists=not outcome.created,
                )
            except Exception as e:
                root_span.set_status(Status(StatusCode.ERROR, str(e)))
                root_span.record_exception(e)
                raise

    async def generate_all_account_summaries(
        self,
        user_id: str,
        date_range: DateRangeSpec = "today",
        force: bool = False,
    ) -> AllAccountsResult:
        """Run every account of the user sequentially; one account's failure never stops the rest."""
        try:
            window = DateWindow.parse(date_range)
        except ValueError as e:
            return AllAccountsResult(success=False, message=f"Invalid date range: {e}")
        try:
            accounts = account_repo.list_accounts(user_id)
        except DigestError as e:
            logger.error("orchestrator.list_accounts_failed", user_id=user_id, error=str(e))
            return AllAccountsResult(success=False, message=f"Failed to load accounts: {e}")
        if not accounts:
            return AllAccountsResult(success=True, message="No connected accounts", total_accounts=0)

        results = []
        for account in accounts:
            results.append(await self._guarded(user_id, account, window, force))
        successful = sum(1 for r in results if r.success)
        logger.info(
            "orchestrator.all_accounts_complete",
            user_id=user_id,
            total=len(accounts),
            successful=successful,
        )
        return AllAccountsResult(
            success=successful > 0,
            message=f"Generated summaries for {successful}/{len(accounts)} accounts",
            total_accounts=len(accounts),
            successful_accounts=successful,
            results=results,
        )

    async def trigger_initial_summary(self, user_id: str, account_id: int) -> AccountSummaryResult:
        """First digest after an account is connected: short lookback, never forced."""
        return await self.generate_account_summary(user_id, account_id, "initial_setup", force=False)

    def get_user_summary_status(self, user_id: str) -> SummaryStatusResult:
        """Latest digest per account plus whether today's digest exists."""
        today = self._today()
        try:
            accounts = account_repo.list_accounts(user_id)
            statuses = []
            for account in accounts:
                latest = self._digests.latest_for_account(account.id)
                statuses.append(
                    AccountSummaryStatus(
                        account_id=account.id,
                        account_email=account.email,
                        last_summary_date=latest.date_processed if latest else None,
                        last_summary_status=latest.status if latest else None,
                        has_recent_summary=bool(latest and latest.date_processed == today),
                    )
                )
        except DigestError as e:
            logger.error("orchestrator.status_failed", user_id=user_id, error=str(e))
            return SummaryStatusResult(success=False, message=f"Failed to load summary status: {e}")
        return SummaryStatusResult(success=True, message=f"{len(statuses)} accounts", accounts=statuses)

    async def run_daily(
        self,
        user_ids: Optional[list[str]] = None,
        date_range: DateRangeSpec = "today",
    ) -> DailyRunResult:
        """Daily job: every user with connected accounts, one after another."""
        if user_ids is None:
            try:
                user_ids = account_repo.list_user_ids()
            except DigestError as e:
                logger.error("orchestrator.list_users_failed", error=str(e))
                return DailyRunResult()
        summary = DailyRunResult(total_users=len(user_ids))
        for user_id in user_ids:
            result = await self.generate_all_account_summaries(user_id, date_range)
            summary.users[user_id] = result
            summary.total_accounts += result.total_accounts
            summary.successful_accounts += result.successful_accounts
            summary.failed_accounts += result.total_accounts - result.successful_accounts
        logger.info(
            "orchestrator.daily_complete",
            users=summary.total_users,
            accounts=summary.total_accounts,
            successful=summary.successful_accounts,
            failed=summary.failed_accounts,
        )
        return summary


def _failure_message(error: DigestError) -> str:
    if isinstance(error, CredentialError):
        return "Failed to get valid credentials"
    if isinstance(error, FetchError):
        return "Failed to fetch emails"
    if isinstance(error, DigestValidationError):
        return f"Summary failed validation: {error.constraint or error}"
    if isinstance(error, SummarizationError):
        return "Failed to generate summary"
    if isinstance(error, PersistenceError):
        return "Failed to save summary"
    return "Failed to generate summary"
