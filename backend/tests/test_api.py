"""
HTTP surface tests.
"""
import random

import pytest
from fastapi.testclient import TestClient

from app.api.subscriptions import get_expiry_queue
from app.core.auth import create_session
from app.core.config import SESSION_COOKIE_NAME
from app.core.database import get_db
from app.main import app
from app.services.chat import MockChatProvider, get_chat_provider
from app.services.quota import deduct_quota

from conftest import RecordingExpiryQueue


@pytest.fixture
def recording_queue():
    return RecordingExpiryQueue()


@pytest.fixture
def client(session_factory, recording_queue):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_expiry_queue] = lambda: recording_queue
    app.dependency_overrides[get_chat_provider] = lambda: MockChatProvider(
        failure_rate=0.0, rng=random.Random(5), sleep=lambda seconds: None
    )
    # Not used as a context manager: startup would start the real scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    token = create_session(user.id, user.email, user.role)
    return {"Cookie": f"{SESSION_COOKIE_NAME}={token}"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_quota_requires_session(client):
    response = client.get("/api/quota")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"


def test_tampered_session_is_rejected(client, make_user):
    user = make_user()
    token = create_session(user.id, user.email)
    payload, _ = token.rsplit(".", 1)

    response = client.get("/api/quota", headers={"Cookie": f"{SESSION_COOKIE_NAME}={payload}.{'0' * 64}"})

    assert response.status_code == 401


def test_get_quota(client, make_user):
    user = make_user()

    response = client.get("/api/quota", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["total_remaining_messages"] == 3
    assert body["is_free_tier"] is True
    assert body["has_quota"] is True


def test_list_bundle_tiers_hides_inactive(client, make_tier):
    make_tier("Pro", 100, price_monthly="29.00")
    make_tier("Basic", 10, price_monthly="0.00")
    make_tier("Legacy", 5, is_active=False)

    response = client.get("/api/bundle-tiers")

    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == ["Basic", "Pro"]


def test_subscribe_and_list(client, make_user, make_tier, recording_queue):
    user = make_user()
    tier = make_tier("Pro", 100)

    response = client.post(
        "/api/subscriptions",
        json={"bundle_tier_id": tier.id, "billing_cycle": "monthly"},
        headers=auth_headers(user),
    )

    assert response.status_code == 201
    subscription = response.json()
    assert subscription["bundle_name"] == "Pro"
    assert subscription["status"] is True
    assert len(recording_queue.pending(subscription["id"])) == 1

    listed = client.get("/api/subscriptions?active_only=true", headers=auth_headers(user)).json()
    assert [s["id"] for s in listed] == [subscription["id"]]
    quota = client.get("/api/quota", headers=auth_headers(user)).json()
    assert quota["total_remaining_messages"] == 103


def test_duplicate_subscription_returns_400(client, make_user, make_tier):
    user = make_user()
    tier = make_tier("Pro", 100)
    payload = {"bundle_tier_id": tier.id, "billing_cycle": "monthly"}
    client.post("/api/subscriptions", json=payload, headers=auth_headers(user))

    response = client.post("/api/subscriptions", json=payload, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "duplicate_subscription"


def test_cancel_someone_elses_subscription_is_forbidden(client, make_user, make_tier):
    owner = make_user()
    other = make_user()
    tier = make_tier("Pro", 100)
    created = client.post(
        "/api/subscriptions",
        json={"bundle_tier_id": tier.id, "billing_cycle": "monthly"},
        headers=auth_headers(owner),
    ).json()

    response = client.post(f"/api/subscriptions/{created['id']}/cancel", headers=auth_headers(other))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    response = client.post(f"/api/subscriptions/{created['id']}/cancel", headers=auth_headers(owner))
    assert response.status_code == 200
    assert response.json()["status"] is False


def test_toggle_auto_renewal(client, make_user, make_tier):
    user = make_user()
    tier = make_tier("Pro", 100)
    created = client.post(
        "/api/subscriptions",
        json={"bundle_tier_id": tier.id, "billing_cycle": "yearly"},
        headers=auth_headers(user),
    ).json()

    response = client.post(f"/api/subscriptions/{created['id']}/toggle-auto-renewal", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["auto_renewal"] is False


def test_missing_subscription_returns_404(client, make_user):
    user = make_user()

    response = client.post("/api/subscriptions/999/cancel", headers=auth_headers(user))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_chat_send_and_history(client, make_user):
    user = make_user()

    response = client.post("/api/chat/send", json={"query": "Hello there"}, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["quota_remaining"] == 2
    assert body["message"]["status"] == "completed"

    history = client.get("/api/chat/history?page=1&limit=10", headers=auth_headers(user)).json()
    assert history["total"] == 1
    assert history["messages"][0]["query"] == "Hello there"


def test_chat_without_quota_returns_403(client, db, make_user):
    user = make_user()
    deduct_quota(db, user.id, 3)

    response = client.post("/api/chat/send", json={"query": "Hello"}, headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "QUOTA_EXCEEDED"


def test_chat_rejects_empty_query(client, make_user):
    user = make_user()

    response = client.post("/api/chat/send", json={"query": ""}, headers=auth_headers(user))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["message"] == "Invalid request"
    assert body["error"]["details"][0]["loc"] == ["body", "query"]


def test_free_tier_reset_requires_admin(client, db, make_user):
    user = make_user()
    admin = make_user(role="admin")
    deduct_quota(db, user.id, 3)

    response = client.post("/api/admin/free-tier/reset", headers=auth_headers(user))
    assert response.status_code == 403

    response = client.post("/api/admin/free-tier/reset", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json() == {"users_reset": 2}
    quota = client.get("/api/quota", headers=auth_headers(user)).json()
    assert quota["total_remaining_messages"] == 3
