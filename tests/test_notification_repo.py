"""Tests for the notification store."""

import json
from pathlib import Path

import pytest
from sqlalchemy import Text

from coar_exchange.db.models.notification import NotificationRow
from coar_exchange.errors.exceptions import DuplicateNotificationError, ValidationError
from coar_exchange.models.enums import Direction, NotificationStatus
from coar_exchange.models.notification import Notification
from coar_exchange.repositories.notification_repo import NotificationRepository

EXAMPLES_DIR = Path(__file__).resolve().parent / "examples"


def load_example(name: str) -> dict:
    return json.loads((EXAMPLES_DIR / name).read_text(encoding="utf-8"))


@pytest.fixture
def repo(db_session, ctx):
    return NotificationRepository(db_session, ctx.directory)


def record_fields(**overrides) -> dict:
    fields = {
        "notification_id": "urn:uuid:1",
        "notification_types": ["Accept"],
        "origin_id": "https://prereview.org",
        "target_id": "https://repo.example.org",
        "object_id": "https://doi.org/10.55458/neurolibre.00027",
        "payload": {"id": "urn:uuid:1"},
    }
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_create_assigns_prefixed_record_id(repo):
    row = await repo.create(Direction.RECEIVED, **record_fields())
    assert row.record_id.startswith("ntf_")
    assert row.status == "pending"
    assert row.direction == "received"
    assert row.primary_type == "Accept"


@pytest.mark.asyncio
async def test_create_reports_every_blank_field(repo):
    with pytest.raises(ValidationError) as exc_info:
        await repo.create(
            "sideways",
            **record_fields(origin_id="", notification_types=[], status="archived"),
        )
    details = exc_info.value.details
    assert set(details) == {"origin_id", "notification_types", "direction", "status"}


@pytest.mark.asyncio
async def test_dual_direction_uniqueness(repo):
    """One id may be stored once as sent and once as received, never twice per direction."""
    await repo.create(Direction.SENT, **record_fields())
    await repo.create(Direction.RECEIVED, **record_fields())

    with pytest.raises(DuplicateNotificationError):
        await repo.create(Direction.RECEIVED, **record_fields())

    assert await repo.count() == 2


@pytest.mark.asyncio
async def test_unique_constraint_maps_to_duplicate_error(repo, monkeypatch):
    await repo.create(Direction.RECEIVED, **record_fields())

    async def _no_existing(*args, **kwargs):
        return None

    # Simulate a concurrent insert the existence check could not see
    monkeypatch.setattr(repo, "find_by_notification_id_and_direction", _no_existing)
    with pytest.raises(DuplicateNotificationError):
        await repo.create(Direction.RECEIVED, **record_fields())


def test_derive_doi():
    assert NotificationRepository.derive_doi("https://doi.org/10.55458/neurolibre.00027") == "10.55458/neurolibre.00027"
    assert NotificationRepository.derive_doi("https://example.org/no-doi-here") is None
    assert NotificationRepository.derive_doi(None, "https://doi.org/10.1234/abc-1") == "10.1234/abc-1"
    assert NotificationRepository.derive_doi("urn:uuid:1", None) is None


def test_derive_service_name(ctx):
    repo = NotificationRepository(None, ctx.directory)
    assert repo.derive_service_name(Direction.RECEIVED, "https://prereview.org", "https://repo.example.org") == "prereview"
    assert repo.derive_service_name(Direction.SENT, "https://repo.example.org", "https://peercommunityin.org") == "pci"
    assert repo.derive_service_name(Direction.RECEIVED, "https://unknown.example", None) == "https://unknown.example"


@pytest.mark.asyncio
async def test_create_from_notification_projects_columns(repo):
    payload = load_example("announce_review.json")
    row = await repo.create_from_notification(Notification.from_payload(payload), Direction.RECEIVED, payload=payload)

    assert row.notification_id == payload["id"]
    assert row.notification_types == ["Announce", "coar-notify:ReviewAction"]
    assert row.primary_type == "coar-notify:ReviewAction"
    assert row.origin_inbox == "https://prereview.example/inbox"
    assert row.object_type == ["Page", "sorg:Review"]
    assert row.context_id == "https://doi.org/10.55458/neurolibre.00027"
    assert row.paper_doi == "10.55458/neurolibre.00027"
    assert row.service_name == "prereview"
    assert row.actor_name == "PREreview"
    assert row.payload == payload
    assert row.to_domain_object().id == payload["id"]


@pytest.mark.asyncio
async def test_status_transitions(repo):
    row = await repo.create(Direction.RECEIVED, **record_fields())

    await repo.mark_processing(row)
    assert row.status == NotificationStatus.PROCESSING

    await repo.mark_failed(row, RuntimeError("boom"))
    assert row.status == "failed"
    assert row.error_message == "RuntimeError: boom"

    await repo.mark_processed(row)
    assert row.status == "processed"
    assert row.error_message is None
    assert row.processed_at is not None

    await repo.mark_failed(row, "Service reported: broken")
    assert row.error_message == "Service reported: broken"
    assert row.processed_at is not None


@pytest.mark.asyncio
async def test_set_issue_id(repo):
    row = await repo.create(Direction.RECEIVED, **record_fields(object_id="urn:uuid:x"))
    await repo.set_issue_id(row, 7, paper_doi="10.1/abc")
    fetched = await repo.get(row.record_id)
    assert fetched.issue_id == 7
    assert fetched.paper_doi == "10.1/abc"


@pytest.mark.asyncio
async def test_query_filters_and_summary(repo):
    await repo.create(Direction.RECEIVED, **record_fields(notification_id="a", paper_doi="10.1/p", issue_id=1))
    await repo.create(Direction.RECEIVED, **record_fields(notification_id="b", service_name="pci"))
    await repo.create(Direction.SENT, **record_fields(notification_id="c", paper_doi="10.1/p", status="processed"))

    assert {r.notification_id for r in await repo.query(direction=Direction.RECEIVED)} == {"a", "b"}
    assert [r.notification_id for r in await repo.query(paper_doi="10.1/p", direction="sent")] == ["c"]
    assert [r.notification_id for r in await repo.query(service_name="pci")] == ["b"]
    assert [r.notification_id for r in await repo.query(issue_id=1)] == ["a"]
    assert len(await repo.query(limit=1)) == 1
    assert await repo.count(status="pending") == 2

    summary = await repo.status_summary(paper_doi="10.1/p")
    assert summary["received"]["pending"] == 1
    assert summary["sent"]["processed"] == 1
    assert summary["sent"]["total"] == 1


@pytest.mark.parametrize("column", ["notification_id", "object_id", "context_id", "in_reply_to"])
def test_url_columns_are_unbounded(column):
    assert isinstance(NotificationRow.__table__.c[column].type, Text)


@pytest.mark.asyncio
async def test_long_object_and_context_ids_are_stored_whole(repo, db_session):
    long_url = "https://repository.example.org/records/" + "a1b2c3d4/" * 100
    row = await repo.create(Direction.RECEIVED, **record_fields(object_id=long_url, context_id=long_url))
    await db_session.commit()
    await db_session.refresh(row)

    assert len(row.object_id) > 500
    assert row.object_id == long_url
    assert row.context_id == long_url
