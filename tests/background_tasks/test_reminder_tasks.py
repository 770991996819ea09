from app.background_tasks import event_reminder_tasks
from app.constants.event import MemberRole, MemberStatus, NotificationKind
from app.models.notification import Notification
from app.services import event_jobs, event_lifecycle
from tests.utils.event import OWNER_ID, add_members, create_random_event


def _rows(db, kind, event_id):
    return (
        db.query(Notification)
        .filter(Notification.kind == kind, Notification.event_id == event_id)
        .all()
    )


def test_reminder_goes_to_joined_members(db, redis_mock):
    event = create_random_event(db)
    add_members(db, event, ["usr_a", "usr_b"])
    add_members(db, event, ["usr_w"], status=MemberStatus.WAITLIST)

    assert event_reminder_tasks.run_reminder_job(event.id, 60) is True

    rows = _rows(db, NotificationKind.EVENT_REMINDER, event.id)
    assert sorted(r.recipient_id for r in rows) == sorted([OWNER_ID, "usr_a", "usr_b"])
    assert rows[0].title.endswith("starts in 1 hour")
    assert rows[0].data["offsetMinutes"] == 60
    published = [c.args[0] for c in redis_mock.publish.call_args_list]
    assert "notification-added:usr_a" in published


def test_reminder_delivered_once_per_offset(db):
    event = create_random_event(db)
    add_members(db, event, ["usr_a"])

    event_reminder_tasks.run_reminder_job(event.id, 15)
    event_reminder_tasks.run_reminder_job(event.id, 15)
    event_reminder_tasks.run_reminder_job(event.id, 10)

    rows = _rows(db, NotificationKind.EVENT_REMINDER, event.id)
    assert len([r for r in rows if r.recipient_id == "usr_a"]) == 2


def test_reminder_skips_canceled_event(db):
    event = create_random_event(db)
    add_members(db, event, ["usr_a"])
    event_lifecycle.cancel_event(db, actor_id=OWNER_ID, event_id=event.id)

    assert event_reminder_tasks.run_reminder_job(event.id, 60) is True
    assert _rows(db, NotificationKind.EVENT_REMINDER, event.id) == []


def test_reminder_for_missing_event_is_noop(db):
    assert event_reminder_tasks.run_reminder_job("evt_gone", 60) is True


def test_failed_reminder_schedules_retry(db, scheduler, monkeypatch):
    event = create_random_event(db)

    def broken_notify(*args, **kwargs):
        raise RuntimeError("db hiccup")

    monkeypatch.setattr(event_reminder_tasks, "notify", broken_notify)

    assert event_reminder_tasks.run_reminder_job(event.id, 30, attempt=1) is False
    retry_id = event_jobs.retry_job_id(event.id, event_jobs.REMINDER, 30, 2)
    assert scheduler.get_job(retry_id).kwargs["attempt"] == 2

    # Last attempt: nothing more is queued
    assert event_reminder_tasks.run_reminder_job(event.id, 30, attempt=3) is False
    assert scheduler.get_job(event_jobs.retry_job_id(event.id, event_jobs.REMINDER, 30, 4)) is None


def test_feedback_skips_owner(db):
    event = create_random_event(db)
    add_members(db, event, ["usr_a"])
    add_members(db, event, ["usr_mod"], role=MemberRole.MODERATOR)

    assert event_reminder_tasks.run_feedback_job(event.id, 60) is True
    event_reminder_tasks.run_feedback_job(event.id, 60)

    rows = _rows(db, NotificationKind.EVENT_FEEDBACK_REQUEST, event.id)
    assert sorted(r.recipient_id for r in rows) == ["usr_a", "usr_mod"]
