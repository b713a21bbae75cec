"""
Assignment notifications.

Notices are handed to the dispatcher after the ticket transaction commits.
Each sink runs on its own background task:
- a sink failure is logged and dropped
- the workflow never awaits delivery
- pending tasks are drained on application shutdown
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, List, Optional, Protocol, Set

import httpx
from pydantic import BaseModel, ConfigDict

from core.config import EmailSettings, Settings, SmsSettings
from db.enums import AssignmentRole

logger = logging.getLogger(__name__)


class AssignmentNotice(BaseModel):
    """What a newly assigned user is told about a ticket."""

    model_config = ConfigDict(frozen=True)

    ticket_id: int
    ticket_title: str
    role: AssignmentRole
    recipient_id: int
    recipient_name: str
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None
    assigned_by_id: int
    note: Optional[str] = None

    @property
    def subject(self) -> str:
        return f"Ticket #{self.ticket_id} assigned to you"

    def render_text(self) -> str:
        lines = [
            f"Hello {self.recipient_name},",
            "",
            f"Ticket #{self.ticket_id} \"{self.ticket_title}\" has been assigned to you "
            f"as {self.role.value}.",
        ]
        if self.note:
            lines.extend(["", f"Note: {self.note}"])
        return "\n".join(lines)


class NotificationSink(Protocol):
    """Delivery channel for assignment notices."""

    name: str

    async def send(self, notice: AssignmentNotice) -> None:
        ...


class EmailNotificationSink:
    """SMTP delivery. smtplib is blocking, so it runs in a worker thread."""

    name = "email"

    def __init__(self, config: EmailSettings):
        self.config = config

    def _build_message(self, notice: AssignmentNotice) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.config.smtp_from
        msg["To"] = notice.recipient_email
        msg["Subject"] = notice.subject
        msg.attach(MIMEText(notice.render_text(), "plain"))
        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        config = self.config
        if config.smtp_tls:
            server = smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=config.timeout)
            server.starttls()
        elif config.smtp_port == 465:
            server = smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, timeout=config.timeout)
        else:
            server = smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=config.timeout)

        try:
            if config.smtp_user and config.smtp_password:
                server.login(config.smtp_user, config.smtp_password)
            server.send_message(msg)
        finally:
            server.quit()

    async def send(self, notice: AssignmentNotice) -> None:
        if not self.config.enabled:
            logger.debug(f"Email disabled, skipping notice for ticket {notice.ticket_id}")
            return
        if not notice.recipient_email:
            logger.debug(f"User {notice.recipient_id} has no email address, skipping")
            return

        await asyncio.to_thread(self._send_sync, self._build_message(notice))
        logger.info(f"Assignment email sent to {notice.recipient_email} for ticket {notice.ticket_id}")


class SmsNotificationSink:
    """SMS delivery through an HTTP gateway webhook."""

    name = "sms"

    def __init__(self, config: SmsSettings, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    async def send(self, notice: AssignmentNotice) -> None:
        if not self.config.enabled or not self.config.webhook_url:
            logger.debug(f"SMS disabled, skipping notice for ticket {notice.ticket_id}")
            return
        if not notice.recipient_phone:
            logger.debug(f"User {notice.recipient_id} has no phone number, skipping")
            return

        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        payload = {"to": notice.recipient_phone, "message": notice.render_text()}

        if self._client is not None:
            response = await self._client.post(self.config.webhook_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.post(self.config.webhook_url, json=payload, headers=headers)
        response.raise_for_status()

        logger.info(
            f"Assignment SMS sent for ticket {notice.ticket_id} "
            f"(status={response.status_code})"
        )


class NotificationDispatcher:
    """Fans a notice out to every sink on background tasks."""

    def __init__(self, sinks: Iterable[NotificationSink]):
        self._sinks: List[NotificationSink] = list(sinks)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationDispatcher":
        return cls([EmailNotificationSink(settings.email), SmsNotificationSink(settings.sms)])

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, notice: AssignmentNotice) -> None:
        """Schedule delivery and return immediately. Never raises."""
        for sink in self._sinks:
            try:
                task = asyncio.create_task(
                    self._deliver(sink, notice),
                    name=f"notify-{sink.name}-{notice.ticket_id}",
                )
            except RuntimeError as e:
                logger.warning(f"Could not schedule {sink.name} notice for ticket {notice.ticket_id}: {e}")
                continue
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(self, sink: NotificationSink, notice: AssignmentNotice) -> None:
        try:
            await sink.send(notice)
        except Exception as e:
            logger.warning(
                f"[NOTIFICATION] {sink.name} delivery failed for ticket {notice.ticket_id} "
                f"(recipient {notice.recipient_id}): {e}"
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries; cancel whatever is left after `timeout`."""
        if not self._tasks:
            return

        tasks = set(self._tasks)
        logger.info(f"Draining {len(tasks)} notification task(s)")
        _, not_done = await asyncio.wait(tasks, timeout=timeout)
        if not_done:
            for task in not_done:
                task.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)
            logger.warning(f"Cancelled {len(not_done)} notification task(s) on shutdown")
