"""Tests for notification delivery of committed workflow events."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.marketplace.models import EntityType
from src.marketplace.services import DomainEvent, NotificationService
from src.marketplace.services import notification_service as module

pytestmark = pytest.mark.unit


def user(email: str):
    return SimpleNamespace(id=uuid4(), email=email, full_name=email.split("@")[0])


@pytest.fixture
def sent(monkeypatch):
    calls: list[dict] = []

    def fake_send(to, recipient_name, subject, message, link_path, event_kind):
        calls.append(
            {
                "to": to,
                "subject": subject,
                "message": message,
                "link_path": link_path,
                "kind": event_kind,
            }
        )
        return not to.startswith("broken")

    monkeypatch.setattr(module, "send_event_email", fake_send)
    return calls


def make_service(*users):
    repo = AsyncMock()
    repo.get_active_by_ids.return_value = list(users)
    return NotificationService(repo), repo


class TestNotificationService:
    async def test_one_email_per_recipient(self, sent):
        service, repo = make_service(user("ana@example.com"), user("ben@example.com"))
        event = DomainEvent(
            kind="milestone.released",
            entity_type=EntityType.MILESTONE,
            entity_id=uuid4(),
            project_id=uuid4(),
            recipients=(uuid4(), uuid4()),
        )

        await service.publish([event])

        repo.get_active_by_ids.assert_awaited_once_with(event.recipients)
        assert [call["to"] for call in sent] == ["ana@example.com", "ben@example.com"]
        assert sent[0]["subject"] == "Funds released"
        assert sent[0]["link_path"] == f"/milestones/{event.entity_id}"

    async def test_chat_message_used_as_body(self, sent):
        service, _ = make_service(user("ana@example.com"))
        event = DomainEvent(
            kind="milestone.changes_requested",
            entity_type=EntityType.MILESTONE,
            entity_id=uuid4(),
            project_id=uuid4(),
            recipients=(uuid4(),),
            channel="chat",
            payload={"message": "Please add tests for the ingestion job"},
        )

        await service.publish([event])

        assert sent[0]["message"] == "Please add tests for the ingestion job"

    async def test_application_links_to_project(self, sent):
        service, _ = make_service(user("ana@example.com"))
        event = DomainEvent(
            kind="something.new",
            entity_type=EntityType.APPLICATION,
            entity_id=uuid4(),
            project_id=uuid4(),
            recipients=(uuid4(),),
        )

        await service.publish([event])

        assert sent[0]["link_path"] == f"/projects/{event.project_id}"
        assert sent[0]["subject"] == "Project update"

    async def test_failed_delivery_does_not_stop_others(self, sent):
        service, _ = make_service(user("broken@example.com"), user("ben@example.com"))
        event = DomainEvent(
            kind="application.assigned",
            entity_type=EntityType.APPLICATION,
            entity_id=uuid4(),
            project_id=uuid4(),
            recipients=(uuid4(), uuid4()),
        )

        await service.publish([event])

        assert len(sent) == 2
