from datetime import timedelta

from fastapi.testclient import TestClient

from app.utils.time_utils import utcnow
from tests.utils.auth import get_user_authentication_headers
from tests.utils.event import OWNER_ID, create_random_event

CREATE_EVENT = """
mutation CreateEvent($input: EventCreateInput!) {
  createEvent(eventIn: $input) { id status mode min max joinedCount }
}
"""

JOIN_EVENT = """
mutation Join($eventId: ID!) {
  joinEvent(eventId: $eventId) { userId status role }
}
"""

CANCEL_EVENT = """
mutation Cancel($id: ID!, $reason: String) {
  cancelEvent(id: $id, reason: $reason) { id canceledAt cancelReason }
}
"""


def _gql(client, query, variables=None, user_id=None):
    headers = get_user_authentication_headers(user_id) if user_id else {}
    response = client.post("/graphql", json={"query": query, "variables": variables or {}}, headers=headers)
    assert response.status_code == 200
    return response.json()


def _event_input(**overrides):
    start_at = utcnow() + timedelta(days=3)
    values = {
        "title": "Board games night",
        "startAt": start_at.isoformat(),
        "endAt": (start_at + timedelta(hours=3)).isoformat(),
        "mode": "GROUP",
        "max": 8,
        "meetingKind": "ONLINE",
        "onlineUrl": "https://meet.example.com/games",
    }
    values.update(overrides)
    return values


def test_create_event(client: TestClient) -> None:
    body = _gql(client, CREATE_EVENT, {"input": _event_input()}, user_id=OWNER_ID)

    assert "errors" not in body
    created = body["data"]["createEvent"]
    assert created["status"] == "DRAFT"
    assert (created["min"], created["max"]) == (1, 8)
    assert created["joinedCount"] == 1


def test_create_event_requires_authentication(client: TestClient) -> None:
    body = _gql(client, CREATE_EVENT, {"input": _event_input()})

    assert body["errors"][0]["extensions"]["code"] == "UNAUTHENTICATED"


def test_validation_errors_carry_field(client: TestClient) -> None:
    body = _gql(client, CREATE_EVENT, {"input": _event_input(max=51)}, user_id=OWNER_ID)

    error = body["errors"][0]
    assert error["extensions"] == {"code": "BAD_USER_INPUT", "field": "max"}


def test_join_and_cancel(client: TestClient, db) -> None:
    event = create_random_event(db)

    joined = _gql(client, JOIN_EVENT, {"eventId": event.id}, user_id="usr_guest")
    assert joined["data"]["joinEvent"] == {"userId": "usr_guest", "status": "JOINED", "role": "PARTICIPANT"}

    forbidden = _gql(client, CANCEL_EVENT, {"id": event.id}, user_id="usr_guest")
    assert forbidden["errors"][0]["extensions"]["code"] == "FORBIDDEN"

    first = _gql(client, CANCEL_EVENT, {"id": event.id, "reason": "Venue closed"}, user_id=OWNER_ID)
    second = _gql(client, CANCEL_EVENT, {"id": event.id, "reason": "Again"}, user_id=OWNER_ID)
    assert first["data"]["cancelEvent"] == second["data"]["cancelEvent"]
    assert second["data"]["cancelEvent"]["cancelReason"] == "Venue closed"

    rejoin = _gql(client, JOIN_EVENT, {"eventId": event.id}, user_id="usr_other")
    assert rejoin["errors"][0]["extensions"]["code"] == "FAILED_PRECONDITION"


def test_schedule_publication_rejects_past_time(client: TestClient, db) -> None:
    event = create_random_event(db, publish=False)
    query = """
    mutation Schedule($id: ID!, $at: DateTime!) {
      scheduleEventPublication(id: $id, publishAt: $at) { status }
    }
    """

    body = _gql(client, query, {"id": event.id, "at": (utcnow() - timedelta(hours=1)).isoformat()}, user_id=OWNER_ID)

    assert body["errors"][0]["extensions"] == {"code": "BAD_USER_INPUT", "field": "publishAt"}


def test_event_query_hides_drafts(client: TestClient, db) -> None:
    event = create_random_event(db, publish=False)
    query = "query Get($id: ID!) { event(id: $id) { id title } }"

    assert _gql(client, query, {"id": event.id}, user_id="usr_stranger")["data"]["event"] is None
    assert _gql(client, query, {"id": event.id}, user_id=OWNER_ID)["data"]["event"]["id"] == event.id


def test_my_notifications(client: TestClient, db) -> None:
    event = create_random_event(db)
    _gql(client, JOIN_EVENT, {"eventId": event.id}, user_id="usr_guest")

    query = "{ myNotifications { unreadCount notifications { kind eventId } } }"
    body = _gql(client, query, user_id="usr_guest")

    payload = body["data"]["myNotifications"]
    assert payload["unreadCount"] == 1
    assert payload["notifications"][0] == {"kind": "EVENT_JOINED", "eventId": event.id}
