from datetime import timedelta

from app.constants.event import EventStatus
from app.crud.crud_event import event as crud_event
from app.utils.time_utils import utcnow
from tests.utils.event import create_random_event


def test_create_with_owner_starts_as_draft(db):
    event = create_random_event(db, publish=False)

    assert event.id.startswith("evt_")
    assert event.status == EventStatus.DRAFT
    assert event.owner_id == "usr_owner"
    assert event.joined_count == 1


def test_apply_changes_reports_diff(db):
    event = create_random_event(db)
    old_start = event.start_at
    new_start = old_start + timedelta(hours=1)

    changed, diff = crud_event.apply_changes(
        db, db_obj=event, update_data={"start_at": new_start, "title": event.title, "description": "Bring boots"}
    )

    assert changed == ["start_at", "description"]
    assert diff == {"start_at": {"old": old_start.isoformat(), "new": new_start.isoformat()}}


def test_get_due_scheduled(db):
    now = utcnow()
    due = create_random_event(db, publish=False)
    later = create_random_event(db, publish=False)
    due.status = later.status = EventStatus.SCHEDULED
    due.scheduled_publish_at = now - timedelta(minutes=1)
    later.scheduled_publish_at = now + timedelta(hours=1)
    db.commit()

    assert [e.id for e in crud_event.get_due_scheduled(db, now=now)] == [due.id]


def test_get_archivable(db):
    now = utcnow()
    finished = create_random_event(db)
    upcoming = create_random_event(db)
    canceled_recently = create_random_event(db)
    finished.start_at = now - timedelta(days=40, hours=2)
    finished.end_at = now - timedelta(days=40)
    canceled_recently.canceled_at = now - timedelta(days=1)
    db.commit()

    ids = [e.id for e in crud_event.get_archivable(db, now=now, older_than_days=30)]
    assert ids == [finished.id]
    assert upcoming.id not in ids
