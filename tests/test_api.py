from __future__ import annotations

import urllib.error
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.routes.friend_reminders import get_friend_reminders, get_identity_provider
from api.routes.medications import get_reminder_service
from api.services.identity import IdentityProvider
from api.services.record_store import RecordStore
from core.errors import StoreError
from core.settings import Settings
from friends.records import FRIEND_REMINDERS, FRIENDSHIPS, PROFILES, Friendship, FriendshipStatus, UserProfile
from friends.service import FriendReminderService
from notifications.dispatcher import NotificationDispatcher
from scheduler.service import ReminderService
from scheduler.state import LOGS

MONDAY_0800 = datetime(2024, 1, 15, 8, 0)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def settings() -> Settings:
    settings = Settings()
    settings.auth_jwt_secret = "test-secret-for-hs256-signing-key-0001"
    settings.auth_jwt_audience = None
    settings.onesignal_app_id = None
    settings.onesignal_api_key = None
    return settings


@pytest.fixture()
def store() -> RecordStore:
    store = RecordStore()
    store.create(PROFILES, UserProfile(id="alice", username="alice01", display_name="Alice"))
    store.create(PROFILES, UserProfile(id="bob", username="bob02"))
    store.create(FRIENDSHIPS, Friendship(user_id="bob", friend_id="alice", status=FriendshipStatus.ACCEPTED))
    return store


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock(MONDAY_0800)


@pytest.fixture()
def client(settings: Settings, store: RecordStore, fake_clock: FakeClock):
    reminders = ReminderService(store=store, settings=settings, now=fake_clock)
    friends = FriendReminderService(store=store, dispatcher=NotificationDispatcher(settings))
    app.dependency_overrides[get_reminder_service] = lambda: reminders
    app.dependency_overrides[get_friend_reminders] = lambda: friends
    app.dependency_overrides[get_identity_provider] = lambda: IdentityProvider(settings)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(settings: Settings, user_id: str) -> dict:
    return {"Authorization": f"Bearer {IdentityProvider(settings).create_token(user_id)}"}


def _send_payload(**overrides) -> dict:
    payload = {
        "from_user_id": "alice",
        "to_user_id": "bob",
        "medication_id": "med-1",
        "message": "Don't forget your evening dose",
        "medication_name": "Atorvastatin",
    }
    payload.update(overrides)
    return payload


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_medication_reminder_flow(client: TestClient, fake_clock: FakeClock) -> None:
    create = client.post(
        "/api/medications",
        json={"name": "Metformin", "dosage": "500mg", "reminder_time": "08:00", "reminder_days": [1, 2, 3, 4, 5]},
    )
    assert create.status_code == 200
    medication = create.json()
    assert medication["reminder_time_display"] == "8:00 AM"

    tick = client.post("/api/reminders/tick").json()
    assert tick["medication_ids"] == [medication["id"]]
    reminder_id = tick["reminders"][0]["id"]
    assert tick["reminders"][0]["status"] == "shown"

    snooze = client.post(f"/api/reminders/{reminder_id}/snooze", json={"minutes": 10})
    assert snooze.status_code == 200
    assert snooze.json()["status"] == "snoozed"

    fake_clock.now = datetime(2024, 1, 15, 8, 0, 30)
    assert client.post("/api/reminders/tick").json()["medication_ids"] == []

    fake_clock.now = datetime(2024, 1, 15, 8, 9)
    assert client.post("/api/reminders/tick").json()["medication_ids"] == []
    fake_clock.now = datetime(2024, 1, 15, 8, 10)
    assert client.post("/api/reminders/tick").json()["medication_ids"] == [medication["id"]]

    taken = client.post(f"/api/reminders/{reminder_id}/taken", json={"notes": "after breakfast"})
    assert taken.status_code == 200
    assert taken.json()["reminder"]["status"] == "taken"
    assert taken.json()["log_id"]

    again = client.post(f"/api/reminders/{reminder_id}/skipped")
    assert again.status_code == 200
    assert again.json()["already_resolved"] is True

    history = client.get("/api/history", params={"medication_id": medication["id"]}).json()
    assert [entry["status"] for entry in history] == ["taken"]

    stats = client.get(f"/api/medications/{medication['id']}/stats").json()
    assert stats["compliance_rate"] == 100
    assert stats["current_streak"] == 1

    next_dose = client.get(f"/api/medications/{medication['id']}/next-dose").json()
    assert next_dose["next_dose"].startswith("2024-01-16T08:00")


def test_delete_medication_cancels_open_reminder(client: TestClient) -> None:
    medication = client.post(
        "/api/medications",
        json={"name": "Insulin", "dosage": "10u", "reminder_time": "08:00", "reminder_days": [1]},
    ).json()
    reminder_id = client.post("/api/reminders/tick").json()["reminders"][0]["id"]

    assert client.delete(f"/api/medications/{medication['id']}").status_code == 200
    assert client.get("/api/reminders/active").json() == []
    assert client.post(f"/api/reminders/{reminder_id}/taken").status_code == 404
    assert client.get(f"/api/medications/{medication['id']}").status_code == 404


def test_invalid_medication_and_transition_errors(client: TestClient) -> None:
    bad_time = client.post("/api/medications", json={"name": "X", "dosage": "1", "reminder_time": "25:00"})
    assert bad_time.status_code == 422

    medication = client.post(
        "/api/medications",
        json={"name": "Warfarin", "dosage": "5mg", "reminder_time": "08:00", "reminder_days": [1]},
    ).json()
    reminder_id = client.post("/api/reminders/tick").json()["reminders"][0]["id"]
    client.post(f"/api/reminders/{reminder_id}/skipped")
    conflict = client.post(f"/api/reminders/{reminder_id}/snooze", json={"minutes": 5})
    assert conflict.status_code == 409
    assert client.post("/api/reminders/unknown/snooze", json={"minutes": 5}).status_code == 404
    assert client.get(f"/api/medications/{medication['id']}/stats").json()["skipped_count"] == 1


def test_send_reminder_between_friends_without_push(
    client: TestClient, settings: Settings, store: RecordStore
) -> None:
    response = client.post("/send-reminder", json=_send_payload(), headers=_auth(settings, "alice"))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Reminder sent successfully"
    assert body["delivery"] == "disabled"
    assert store.get(FRIEND_REMINDERS, body["reminder_id"]) is not None


def test_send_reminder_identity_mismatch(client: TestClient, settings: Settings, store: RecordStore) -> None:
    response = client.post("/send-reminder", json=_send_payload(), headers=_auth(settings, "bob"))
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "identity mismatch"}
    assert store.list(FRIEND_REMINDERS) == []


def test_send_reminder_requires_friendship(client: TestClient, settings: Settings) -> None:
    response = client.post(
        "/send-reminder", json=_send_payload(to_user_id="carol"), headers=_auth(settings, "alice")
    )
    assert response.status_code == 400
    assert response.json()["error"] == "not friends"


def test_send_reminder_rejects_bad_credentials_and_body(client: TestClient, settings: Settings) -> None:
    missing = client.post("/send-reminder", json=_send_payload())
    assert missing.status_code == 400
    assert missing.json()["error"] == "No authorization token provided"

    forged = client.post("/send-reminder", json=_send_payload(), headers={"Authorization": "Bearer not-a-jwt"})
    assert forged.status_code == 400
    assert forged.json()["error"] == "Invalid authorization token"

    incomplete = client.post(
        "/send-reminder", json={"from_user_id": "alice"}, headers=_auth(settings, "alice")
    )
    assert incomplete.status_code == 400
    assert incomplete.json()["success"] is False
    assert "to_user_id" in incomplete.json()["error"]


def test_send_reminder_preflight(client: TestClient) -> None:
    response = client.options("/send-reminder")
    assert response.status_code == 200
    assert response.content == b""


class UnreachableOpener:
    def open(self, request, timeout=None):
        raise urllib.error.URLError(ConnectionRefusedError("connection refused"))


def test_send_reminder_succeeds_when_push_provider_fails(
    client: TestClient, settings: Settings, store: RecordStore
) -> None:
    settings.onesignal_app_id = "app-123"
    settings.onesignal_api_key = "rest-key"
    dispatcher = NotificationDispatcher(settings)
    dispatcher._http_opener = UnreachableOpener()
    friends = FriendReminderService(store=store, dispatcher=dispatcher)
    app.dependency_overrides[get_friend_reminders] = lambda: friends

    response = client.post("/send-reminder", json=_send_payload(), headers=_auth(settings, "alice"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["delivery"] == "provider_unavailable"
    assert store.get(FRIEND_REMINDERS, body["reminder_id"]).message == "Don't forget your evening dose"


def test_store_failure_while_resolving_returns_500(
    client: TestClient, store: RecordStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    client.post(
        "/api/medications",
        json={"name": "Levothyroxine", "dosage": "50mcg", "reminder_time": "08:00", "reminder_days": [1]},
    )
    reminder_id = client.post("/api/reminders/tick").json()["reminders"][0]["id"]
    real_create = store.create

    def create(collection, record):
        if collection == LOGS:
            raise StoreError("log table unavailable")
        return real_create(collection, record)

    monkeypatch.setattr(store, "create", create)
    response = client.post(f"/api/reminders/{reminder_id}/taken")

    assert response.status_code == 500
    assert response.json()["detail"] == "log table unavailable"
    assert [reminder["id"] for reminder in client.get("/api/reminders/active").json()] == [reminder_id]
