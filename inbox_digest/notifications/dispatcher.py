"""Notification dispatch policy: preferences, destination checks, severity gating, bookkeeping."""

from typing import Mapping, Optional

from inbox_digest.db.repositories import notification_repo, settings_repo
from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.errors import NotificationDeliveryError, PersistenceError
from inbox_digest.models.account import Channel
from inbox_digest.models.digest import Digest
from inbox_digest.models.results import BatchNotifyResult, NotifyResult
from inbox_digest.notifications.channels import NotificationChannel
from inbox_digest.notifications.formatting import email_subject, format_digest_message
from inbox_digest.utils.logger import get_logger
from inbox_digest.utils.validators import is_valid_e164, is_valid_email, normalize_phone

logger = get_logger("inbox_digest.notifications")

# Batch sends skip all_clear digests
NOTIFY_STATUSES = ("attention_needed", "worth_a_look")

_CHANNEL_LABEL = {"email": "email", "whatsapp": "WhatsApp"}
_MISSING_DESTINATION = {
    "email": "No email address configured",
    "whatsapp": "No WhatsApp number configured",
}


class NotificationDispatcher:
    def __init__(
        self,
        channels: Mapping[str, NotificationChannel],
        digest_store: Optional[DigestStore] = None,
    ):
        self._channels = dict(channels)
        self._digests = digest_store or DigestStore()

    def _check_destination(self, channel: Channel, destination: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        """Return (normalized destination, error message)."""
        if not destination:
            return None, _MISSING_DESTINATION[channel]
        if channel == "email":
            if not is_valid_email(destination):
                return None, f"Invalid email address: {destination}"
            return destination.strip(), None
        if not is_valid_e164(destination):
            return None, f"Invalid WhatsApp number (expected E.164, e.g. +15551234567): {destination}"
        return normalize_phone(destination), None

    def _record(
        self,
        digest: Digest,
        user_id: str,
        channel: str,
        status: str,
        destination: Optional[str] = None,
        external_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        try:
            notification_repo.record_notification(
                digest_id=digest.id,
                user_id=user_id,
                channel=channel,
                delivery_status=status,
                destination=destination,
                external_id=external_id,
                detail=detail,
            )
            self._digests.mark_delivery(digest.id, channel, status)
        except PersistenceError:
            # The send outcome stands; only the bookkeeping is lost
            logger.exception("notifications.record_failed", digest_id=digest.id, channel=channel, status=status)

    async def notify(self, user_id: str, digest: Digest, channel: Channel = "email") -> NotifyResult:
        log = logger.bind(user_id=user_id, digest_id=digest.id, channel=channel)
        try:
            settings = settings_repo.get_settings(user_id)
        except PersistenceError as e:
            log.error("notifications.settings_lookup_failed", error=str(e))
            return NotifyResult(success=False, message=f"Could not load notification settings: {e}", channel=channel)
        if settings is None:
            log.warning("notifications.settings_missing")
            return NotifyResult(success=False, message="User notification settings not found", channel=channel)

        if not settings.channel_enabled(channel):
            log.info("notifications.channel_disabled")
            return NotifyResult(
                success=True,
                message=f"User has disabled {_CHANNEL_LABEL[channel]} notifications",
                channel=channel,
            )

        destination, problem = self._check_destination(channel, settings.destination(channel))
        if problem:
            log.warning("notifications.bad_destination", problem=problem)
            self._record(digest, user_id, channel, "failed", destination=settings.destination(channel), detail=problem)
            return NotifyResult(success=False, message=problem, channel=channel)

        sender = self._channels.get(channel)
        if sender is None:
            message = f"No {_CHANNEL_LABEL[channel]} channel configured"
            log.warning("notifications.channel_missing")
            self._record(digest, user_id, channel, "failed", destination=destination, detail=message)
            return NotifyResult(success=False, message=message, channel=channel)

        content = format_digest_message(digest)
        try:
            receipt = await sender.send(destination, content, email_subject(digest))
        except NotificationDeliveryError as e:
            log.error("notifications.send_failed", error=str(e))
            self._record(digest, user_id, channel, "failed", destination=destination, detail=str(e))
            return NotifyResult(success=False, message=str(e), channel=channel)
        except Exception as e:
            log.exception("notifications.send_crashed")
            detail = f"{type(e).__name__}: {e}"
            self._record(digest, user_id, channel, "failed", destination=destination, detail=detail)
            return NotifyResult(success=False, message=f"Unexpected delivery error: {detail}", channel=channel)

        self._record(
            digest,
            user_id,
            channel,
            "sent",
            destination=destination,
            external_id=receipt.external_id,
            detail=receipt.detail,
        )
        log.info("notifications.sent", external_id=receipt.external_id)
        return NotifyResult(
            success=True,
            message=receipt.detail or f"{_CHANNEL_LABEL[channel]} notification sent",
            channel=channel,
            external_id=receipt.external_id,
        )

    async def notify_digests(
        self,
        user_id: str,
        digests: list[Digest],
        channel: Channel = "email",
    ) -> BatchNotifyResult:
        """Send digests that need attention; all_clear ones are skipped."""
        sent = failed = skipped = 0
        for digest in digests:
            if digest.status not in NOTIFY_STATUSES:
                skipped += 1
                continue
            result = await self.notify(user_id, digest, channel)
            if result.success:
                sent += 1
            else:
                failed += 1
        logger.info(
            "notifications.batch_complete",
            user_id=user_id,
            channel=channel,
            sent=sent,
            failed=failed,
            skipped=skipped,
        )
        return BatchNotifyResult(success=failed == 0, sent=sent, failed=failed, skipped=skipped)
