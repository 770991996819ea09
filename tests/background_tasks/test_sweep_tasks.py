from datetime import timedelta
from unittest.mock import MagicMock

from app import tasks
from app.background_tasks import audit_archive_tasks, event_publication_tasks
from app.constants.event import EventStatus
from app.core.config import settings
from app.models.event import Event
from app.schemas.audit_archive import AuditArchiveResult
from app.services import event_lifecycle
from app.utils.time_utils import utcnow
from tests.utils.event import OWNER_ID, create_random_event


def test_publish_scheduled_events_task(db):
    event = create_random_event(db, publish=False)
    event_lifecycle.schedule_event_publication(
        db, actor_id=OWNER_ID, event_id=event.id, publish_at=utcnow() + timedelta(minutes=1)
    )
    event.scheduled_publish_at = utcnow() - timedelta(seconds=1)
    db.commit()

    assert event_publication_tasks.publish_scheduled_events() == [event.id]

    db.expire_all()
    assert db.get(Event, event.id).status == EventStatus.PUBLISHED


def test_sweep_archives_finished_events(db, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "AWS_S3_BUCKET_NAME", None)
    monkeypatch.setattr(settings, "AUDIT_ARCHIVE_LOCAL_PATH", str(tmp_path))
    finished = create_random_event(db)
    upcoming = create_random_event(db)
    finished.start_at = utcnow() - timedelta(days=40, hours=2)
    finished.end_at = utcnow() - timedelta(days=40)
    db.commit()

    stats = audit_archive_tasks.sweep_audit_archives()

    assert stats == {"archived": 1, "skipped": 0, "failed": 0}
    db.expire_all()
    assert db.get(Event, finished.id).audit_archived_at is not None
    assert db.get(Event, upcoming.id).audit_archived_at is None


def test_sweep_continues_after_failure(db, monkeypatch):
    first = create_random_event(db)
    second = create_random_event(db)
    monkeypatch.setattr(
        audit_archive_tasks, "find_archivable_events", lambda session, limit: [first.id, second.id]
    )

    def archive(session, event_id):
        if event_id == first.id:
            raise RuntimeError("S3 exploded")
        return AuditArchiveResult(event_id=event_id, status="archived", count=2)

    monkeypatch.setattr(audit_archive_tasks, "archive_event_audit", archive)

    assert audit_archive_tasks.sweep_audit_archives() == {"archived": 1, "skipped": 0, "failed": 1}


def test_celery_task_returns_result(db, monkeypatch):
    archive = MagicMock(return_value=AuditArchiveResult(event_id="evt_1", status="skipped", reason="not_found"))
    monkeypatch.setattr(tasks, "archive_event_audit", archive)

    result = tasks.archive_event_audit_logs.run("evt_1")

    assert result["status"] == "skipped"
    assert archive.call_args.args[1] == "evt_1"
