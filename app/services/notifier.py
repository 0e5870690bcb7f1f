"""
Outbound member notifications.

Every implementation reports one ``NotificationResult`` per recipient and
never raises for an individual delivery failure. ``dispatch_each`` fans a
message out as independent tasks so one slow or failing recipient cannot
hold up or cancel the others.
"""

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config.loader import get_notification_settings

logger = logging.getLogger("notifications")

EMAIL_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

TEMPLATE_SUBJECTS = {
    "minutes_published": "Meeting Minutes Published: {title}",
    "meeting_reminder": "Meeting Reminder: {title}",
    "meeting_invitation": "Meeting Invitation: {title}",
}


@dataclass(frozen=True)
class Recipient:
    user_id: str
    name: str
    email: str


@dataclass
class NotificationResult:
    user_id: str
    email: str
    delivered: bool
    error: Optional[str] = None


class Notifier:
    """Base class for notification channels."""

    async def notify(
        self,
        recipients: Sequence[Recipient],
        template_kind: str,
        context: Dict[str, Any],
    ) -> List[NotificationResult]:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes notifications to the log instead of delivering them."""

    async def notify(self, recipients, template_kind, context):
        results = []
        for recipient in recipients:
            logger.info(
                "Notification %s for %s <%s> (meeting %s)",
                template_kind,
                recipient.name,
                recipient.email,
                context.get("meeting_id"),
            )
            results.append(
                NotificationResult(
                    user_id=recipient.user_id, email=recipient.email, delivered=True
                )
            )
        return results


@dataclass(frozen=True)
class RenderedEmail:
    to: str
    subject: str
    html: str


class EmailNotifier(Notifier):
    """Renders Jinja2 email templates and delivers them through Amazon SES."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None, client=None):
        self.settings = settings or get_notification_settings()
        self.env = Environment(
            loader=FileSystemLoader(str(EMAIL_TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self._client = client

    @property
    def client(self):
        # Created on first send so that building a notifier needs no AWS setup.
        if self._client is None:
            timeout = self.settings["timeout_seconds"]
            self._client = boto3.client(
                "ses",
                region_name=self.settings["ses_region"],
                endpoint_url=self.settings.get("ses_endpoint_url"),
                aws_access_key_id=self.settings.get("aws_access_key_id"),
                aws_secret_access_key=self.settings.get("aws_secret_access_key"),
                config=Config(connect_timeout=timeout, read_timeout=timeout),
            )
        return self._client

    def render(
        self, recipient: Recipient, template_kind: str, context: Dict[str, Any]
    ) -> RenderedEmail:
        if template_kind not in TEMPLATE_SUBJECTS:
            raise ValueError(f"Unknown notification template '{template_kind}'")
        template = self.env.get_template(f"{template_kind}.html")
        html_body = template.render(
            recipient=recipient,
            portal_url=self.settings.get("portal_url"),
            **context,
        )
        return RenderedEmail(
            to=recipient.email,
            subject=TEMPLATE_SUBJECTS[template_kind].format(
                title=context.get("title", "")
            ),
            html=html_body,
        )

    def _send(self, message: RenderedEmail) -> None:
        self.client.send_email(
            Source=self.settings["sender"],
            Destination={"ToAddresses": [message.to]},
            Message={
                "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": message.html, "Charset": "UTF-8"}},
            },
        )

    async def _deliver(
        self, recipient: Recipient, template_kind: str, context: Dict[str, Any]
    ) -> NotificationResult:
        try:
            message = self.render(recipient, template_kind, context)
            await asyncio.to_thread(self._send, message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Email %s to %s failed: %s", template_kind, recipient.email, exc
            )
            return NotificationResult(
                user_id=recipient.user_id,
                email=recipient.email,
                delivered=False,
                error=str(exc),
            )
        logger.info("Email %s sent to %s", template_kind, recipient.email)
        return NotificationResult(
            user_id=recipient.user_id, email=recipient.email, delivered=True
        )

    async def notify(self, recipients, template_kind, context):
        return list(
            await asyncio.gather(
                *(self._deliver(r, template_kind, context) for r in recipients)
            )
        )


async def _notify_one(
    notifier: Notifier,
    recipient: Recipient,
    template_kind: str,
    context: Dict[str, Any],
) -> NotificationResult:
    try:
        results = await notifier.notify([recipient], template_kind, context)
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Notifier %s raised for %s: %s",
            type(notifier).__name__,
            recipient.email,
            exc,
        )
        return NotificationResult(
            user_id=recipient.user_id,
            email=recipient.email,
            delivered=False,
            error=str(exc),
        )
    if not results:
        return NotificationResult(
            user_id=recipient.user_id,
            email=recipient.email,
            delivered=False,
            error="No delivery result reported",
        )
    return results[0]


async def dispatch_each(
    notifier: Notifier,
    recipients: Sequence[Recipient],
    template_kind: str,
    context: Dict[str, Any],
) -> List[NotificationResult]:
    """
    Send one notification per recipient concurrently.

    Failures are captured per recipient. Cancellation of the caller still
    propagates into every pending dispatch.
    """
    if not recipients:
        return []
    results = await asyncio.gather(
        *(_notify_one(notifier, r, template_kind, context) for r in recipients)
    )
    failed = [result for result in results if not result.delivered]
    if failed:
        logger.warning(
            "%s of %s %s notifications failed",
            len(failed),
            len(results),
            template_kind,
        )
    return list(results)


def get_notifier() -> Notifier:
    """Dependency provider for the configured notification channel."""
    settings = get_notification_settings()
    if settings["enabled"]:
        return EmailNotifier(settings)
    return LoggingNotifier()
