import asyncio

import pytest

from app.services import notifier as notifier_module
from app.services.notifier import (
    EmailNotifier,
    LoggingNotifier,
    NotificationResult,
    Notifier,
    Recipient,
    dispatch_each,
    get_notifier,
)

RECIPIENTS = [
    Recipient(user_id="USR-DSOUZAA-001", name="Alice Dsouza", email="alice@council.example.edu"),
    Recipient(user_id="USR-KULKARB-001", name="Bob Kulkarni", email="bob@council.example.edu"),
    Recipient(user_id="USR-NAIRXXC-001", name="Carol Nair", email="carol@council.example.edu"),
]

CONTEXT = {
    "id": "0f1e2d3c",
    "meeting_id": "SC-2025-11-04-001",
    "title": "Fest <Planning>",
    "type": "regular",
    "date": "10 November 2025",
    "start_time": "10:00",
    "end_time": "11:30",
    "venue": "Seminar Hall 2",
    "objective": "Plan the annual fest",
    "summary": "Budget approved.",
    "decisions": [{"decision": "Approve fest budget"}],
    "action_items": [{"task": "Book the venue", "deadline": "2025-11-15", "priority": "high"}],
}

SETTINGS = {
    "enabled": True,
    "ses_region": "us-east-1",
    "ses_endpoint_url": None,
    "aws_access_key_id": None,
    "aws_secret_access_key": None,
    "sender": "Council <council@localhost>",
    "portal_url": "https://council.example.edu",
    "timeout_seconds": 5,
}


class FlakyNotifier(Notifier):
    """Fails for one address, is slow for another, succeeds otherwise."""

    def __init__(self, failing_email, slow_email):
        self.failing_email = failing_email
        self.slow_email = slow_email
        self.calls = []

    async def notify(self, recipients, template_kind, context):
        recipient = recipients[0]
        self.calls.append(recipient.email)
        if recipient.email == self.slow_email:
            await asyncio.sleep(0.01)
        if recipient.email == self.failing_email:
            raise ConnectionError("connection reset")
        return [
            NotificationResult(
                user_id=recipient.user_id, email=recipient.email, delivered=True
            )
        ]


@pytest.mark.anyio
async def test_dispatch_each_isolates_failures():
    notifier = FlakyNotifier(RECIPIENTS[0].email, RECIPIENTS[1].email)

    results = await dispatch_each(notifier, RECIPIENTS, "minutes_published", CONTEXT)

    assert sorted(notifier.calls) == sorted(r.email for r in RECIPIENTS)
    assert [r.user_id for r in results] == [r.user_id for r in RECIPIENTS]
    assert [r.delivered for r in results] == [False, True, True]
    assert results[0].error == "connection reset"


@pytest.mark.anyio
async def test_dispatch_each_without_recipients():
    assert await dispatch_each(LoggingNotifier(), [], "meeting_reminder", CONTEXT) == []


@pytest.mark.anyio
async def test_dispatch_each_propagates_cancellation():
    started = asyncio.Event()

    class HangingNotifier(Notifier):
        async def notify(self, recipients, template_kind, context):
            started.set()
            await asyncio.sleep(60)

    task = asyncio.create_task(
        dispatch_each(HangingNotifier(), RECIPIENTS[:1], "meeting_reminder", CONTEXT)
    )
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


class RecordingSesClient:
    def __init__(self, failing_email=None):
        self.failing_email = failing_email
        self.calls = []

    def send_email(self, **kwargs):
        recipient = kwargs["Destination"]["ToAddresses"][0]
        if recipient == self.failing_email:
            raise ConnectionError("SES throttled the request")
        self.calls.append(kwargs)
        return {"MessageId": f"msg-{len(self.calls)}"}


def test_email_notifier_renders_escaped_html():
    message = EmailNotifier(SETTINGS).render(RECIPIENTS[0], "minutes_published", CONTEXT)

    assert message.subject == "Meeting Minutes Published: Fest <Planning>"
    assert message.to == "alice@council.example.edu"
    assert "Dear Alice Dsouza" in message.html
    assert "Fest &lt;Planning&gt;" in message.html
    assert "Approve fest budget" in message.html
    assert "Book the venue" in message.html
    assert "https://council.example.edu/meetings/0f1e2d3c" in message.html


@pytest.mark.anyio
async def test_email_notifier_sends_through_ses():
    client = RecordingSesClient()
    email_notifier = EmailNotifier(SETTINGS, client=client)

    results = await email_notifier.notify(RECIPIENTS[:1], "meeting_reminder", CONTEXT)

    assert [r.delivered for r in results] == [True]
    assert len(client.calls) == 1
    call = client.calls[0]
    assert call["Source"] == "Council <council@localhost>"
    assert call["Destination"] == {"ToAddresses": ["alice@council.example.edu"]}
    assert call["Message"]["Subject"]["Data"] == "Meeting Reminder: Fest <Planning>"
    assert "Dear Alice Dsouza" in call["Message"]["Body"]["Html"]["Data"]


def test_email_notifier_builds_ses_client_lazily(monkeypatch):
    created = []

    def fake_client(service_name, **kwargs):
        created.append((service_name, kwargs))
        return RecordingSesClient()

    monkeypatch.setattr(notifier_module.boto3, "client", fake_client)
    settings = dict(
        SETTINGS,
        ses_region="ap-south-1",
        ses_endpoint_url="http://localhost:4566",
        aws_access_key_id="key",
        aws_secret_access_key="secret",
    )
    email_notifier = EmailNotifier(settings)
    assert created == []

    client = email_notifier.client
    assert email_notifier.client is client
    assert len(created) == 1
    service_name, kwargs = created[0]
    assert service_name == "ses"
    assert kwargs["region_name"] == "ap-south-1"
    assert kwargs["endpoint_url"] == "http://localhost:4566"
    assert kwargs["aws_access_key_id"] == "key"
    assert kwargs["aws_secret_access_key"] == "secret"
    assert kwargs["config"].connect_timeout == 5
    assert kwargs["config"].read_timeout == 5

def test_email_notifier_rejects_unknown_template():
    with pytest.raises(ValueError):
        EmailNotifier(SETTINGS).render(RECIPIENTS[0], "weekly_digest", CONTEXT)


@pytest.mark.anyio
async def test_email_notifier_reports_delivery_failures():
    client = RecordingSesClient(failing_email=RECIPIENTS[1].email)
    email_notifier = EmailNotifier(SETTINGS, client=client)

    results = await email_notifier.notify(RECIPIENTS, "meeting_invitation", CONTEXT)

    sent = [call["Destination"]["ToAddresses"][0] for call in client.calls]
    assert sorted(sent) == sorted([RECIPIENTS[0].email, RECIPIENTS[2].email])
    assert [r.delivered for r in results] == [True, False, True]
    assert results[1].error == "SES throttled the request"

def test_get_notifier_follows_settings(monkeypatch):
    monkeypatch.setattr(
        notifier_module, "get_notification_settings", lambda: dict(SETTINGS, enabled=False)
    )
    assert isinstance(get_notifier(), LoggingNotifier)

    monkeypatch.setattr(notifier_module, "get_notification_settings", lambda: SETTINGS)
    assert isinstance(get_notifier(), EmailNotifier)
