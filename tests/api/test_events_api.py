from fastapi.testclient import TestClient

from app.constants.event import MemberStatus
from app.services import notifications
from tests.utils.auth import get_user_authentication_headers
from tests.utils.event import OWNER_ID, add_members, create_random_event


def test_health(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_db(client: TestClient) -> None:
    response = client.get("/api/v1/health/db")
    assert response.status_code == 200


def test_get_published_event_without_auth(client: TestClient, db) -> None:
    event = create_random_event(db)

    response = client.get(f"/api/v1/events/{event.id}")

    assert response.status_code == 200
    content = response.json()
    assert content["id"] == event.id
    assert content["status"] == "PUBLISHED"
    assert content["joined_count"] == 1


def test_draft_event_is_not_found_for_strangers(client: TestClient, db) -> None:
    event = create_random_event(db, publish=False)

    response = client.get(
        f"/api/v1/events/{event.id}", headers=get_user_authentication_headers("usr_stranger")
    )

    assert response.status_code == 404
    assert response.json() == {"detail": "Event not found", "code": "NOT_FOUND", "field": None}

    response = client.get(f"/api/v1/events/{event.id}", headers=get_user_authentication_headers(OWNER_ID))
    assert response.status_code == 200


def test_list_members_requires_auth(client: TestClient, db) -> None:
    event = create_random_event(db)
    response = client.get(f"/api/v1/events/{event.id}/members")
    assert response.status_code == 401


def test_list_members(client: TestClient, db) -> None:
    event = create_random_event(db)
    add_members(db, event, ["usr_a"])
    add_members(db, event, ["usr_p"], status=MemberStatus.PENDING)

    response = client.get(
        f"/api/v1/events/{event.id}/members", headers=get_user_authentication_headers(OWNER_ID)
    )

    assert response.status_code == 200
    content = response.json()
    assert content["joinedCount"] == 2
    assert {m["user_id"] for m in content["data"]} == {OWNER_ID, "usr_a", "usr_p"}


def test_notifications_list_and_mark_read(client: TestClient, db) -> None:
    (payload,) = notifications.notify(db, recipients=["usr_a"], kind="EVENT_CANCELED", entity_id="evt_1")
    headers = get_user_authentication_headers("usr_a")

    response = client.get("/api/v1/notifications", headers=headers)
    assert response.status_code == 200
    assert response.json()["unreadCount"] == 1

    response = client.post(f"/api/v1/notifications/{payload['id']}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["read_at"] is not None

    response = client.post(
        f"/api/v1/notifications/{payload['id']}/read", headers=get_user_authentication_headers("usr_b")
    )
    assert response.status_code == 404
