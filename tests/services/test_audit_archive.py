import gzip
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.core.config import settings
from app.crud.crud_audit_log import audit_log as crud_audit_log
from app.models.audit_log import EventAuditLog
from app.models.event import Event
from app.services import audit_archive
from app.utils.time_utils import utcnow
from tests.utils.event import create_random_event


@pytest.fixture
def s3_bucket(monkeypatch):
    monkeypatch.setattr(settings, "AWS_S3_BUCKET_NAME", "audit-bucket")
    return MagicMock()


@pytest.fixture
def local_archive(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "AWS_S3_BUCKET_NAME", None)
    monkeypatch.setattr(settings, "AUDIT_ARCHIVE_LOCAL_PATH", str(tmp_path))
    return tmp_path


def _lines(body: bytes):
    return [json.loads(line) for line in gzip.decompress(body).decode("utf-8").splitlines()]


def test_archive_uploads_jsonl_and_deletes_rows(db, s3_bucket, monkeypatch):
    monkeypatch.setattr(settings, "AUDIT_ARCHIVE_BATCH_SIZE", 1)
    event = create_random_event(db)  # CREATE + PUBLISH rows

    result = audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    assert result.status == "archived"
    assert result.count == 2
    assert result.location == f"s3://audit-bucket/audit-archives/{event.id}.jsonl.gz"

    kwargs = s3_bucket.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "audit-bucket"
    assert kwargs["Key"] == f"audit-archives/{event.id}.jsonl.gz"
    assert kwargs["ContentEncoding"] == "gzip"
    rows = _lines(kwargs["Body"])
    assert [r["action"] for r in rows] == ["CREATE", "PUBLISH"]
    assert set(rows[0]) == {
        "id", "createdAt", "scope", "action", "entityType", "entityId",
        "actorId", "actorRole", "severity", "diff", "meta",
    }

    assert crud_audit_log.count_for_event(db, event_id=event.id) == 0
    db.refresh(event)
    assert event.audit_archived_at is not None


def test_archive_runs_once(db, s3_bucket):
    event = create_random_event(db)
    audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    again = audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    assert again.status == "skipped"
    assert again.reason == "already_archived"
    assert s3_bucket.put_object.call_count == 1


def test_upload_runs_outside_a_transaction(db, s3_bucket):
    event = create_random_event(db)
    seen = []
    s3_bucket.put_object.side_effect = lambda **kwargs: seen.append(db.in_transaction())

    result = audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    assert result.status == "archived"
    assert seen == [False]


def test_archived_during_export_is_left_alone(db, s3_bucket, session_factory):
    event = create_random_event(db)
    event_id = event.id

    def archived_elsewhere(**kwargs):
        other = session_factory()
        try:
            row = other.get(Event, event_id)
            row.audit_archived_at = utcnow()
            other.commit()
        finally:
            other.close()

    s3_bucket.put_object.side_effect = archived_elsewhere

    result = audit_archive.archive_event_audit(db, event_id, s3_client=s3_bucket)

    assert (result.status, result.reason) == ("skipped", "already_archived")
    assert crud_audit_log.count_for_event(db, event_id=event_id) == 2


def test_archive_without_bucket_writes_local_file(db, local_archive):
    event = create_random_event(db)

    result = audit_archive.archive_event_audit(db, event.id)

    path = Path(result.location)
    assert path == local_archive / "audit-archives" / f"{event.id}.jsonl.gz"
    assert len(_lines(path.read_bytes())) == 2


def test_archive_falls_back_to_local_on_s3_error(db, s3_bucket, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "AUDIT_ARCHIVE_LOCAL_PATH", str(tmp_path))
    s3_bucket.put_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
    )
    event = create_random_event(db)

    result = audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    assert result.status == "archived"
    assert Path(result.location).exists()


def test_failed_storage_leaves_rows_in_place(db, s3_bucket, monkeypatch):
    def broken_save(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(audit_archive, "save_bytes", broken_save)
    s3_bucket.put_object.side_effect = ClientError(
        {"Error": {"Code": "SlowDown", "Message": "slow down"}}, "PutObject"
    )
    event = create_random_event(db)

    with pytest.raises(OSError):
        audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)
    db.rollback()

    assert db.query(EventAuditLog).filter(EventAuditLog.event_id == event.id).count() == 2
    db.refresh(event)
    assert event.audit_archived_at is None


def test_archive_empty_trail_marks_event(db, s3_bucket):
    event = create_random_event(db)
    crud_audit_log.delete_ids(
        db, ids=[r.id for r in db.query(EventAuditLog).filter(EventAuditLog.event_id == event.id)]
    )
    db.commit()

    result = audit_archive.archive_event_audit(db, event.id, s3_client=s3_bucket)

    assert (result.status, result.reason) == ("archived", "empty")
    s3_bucket.put_object.assert_not_called()


def test_archive_unknown_event(db):
    result = audit_archive.archive_event_audit(db, "evt_missing")
    assert (result.status, result.reason) == ("skipped", "not_found")
