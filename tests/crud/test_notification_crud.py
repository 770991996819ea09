from app.crud.crud_notification import notification as crud_notification


def _values(key, recipient="usr_a"):
    return {
        "kind": "EVENT_CANCELED",
        "recipient_id": recipient,
        "entity_type": "EVENT",
        "entity_id": "evt_1",
        "event_id": "evt_1",
        "title": "Canceled",
        "dedupe_key": key,
    }


def test_create_if_absent_skips_duplicates(db):
    first = crud_notification.create_if_absent(db, values=_values("event_canceled:usr_a:evt_1"))
    db.commit()
    second = crud_notification.create_if_absent(db, values=_values("event_canceled:usr_a:evt_1"))
    db.commit()

    assert first is not None
    assert first.id.startswith("ntf_")
    assert second is None
    assert crud_notification.count_unread(db, recipient_id="usr_a") == 1


def test_mark_read_updates_unread_count(db):
    row = crud_notification.create_if_absent(db, values=_values("k1"))
    crud_notification.create_if_absent(db, values=_values("k2"))
    db.commit()

    crud_notification.mark_read(db, db_obj=row)

    assert row.read_at is not None
    assert crud_notification.count_unread(db, recipient_id="usr_a") == 1
    unread = crud_notification.get_for_recipient(db, recipient_id="usr_a", unread_only=True)
    assert [r.dedupe_key for r in unread] == ["k2"]
