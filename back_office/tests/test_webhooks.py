"""Tests for the delivery status webhook."""

import pytest

from back_office.tests.conftest import make_task

AUTH = {"Authorization": "Bearer test-secret-123"}


@pytest.fixture(autouse=True)
def reset_rate_limit():
    from back_office.routers import webhooks
    webhooks._rate_buckets.clear()
    yield
    webhooks._rate_buckets.clear()


class TestTaskStatusWebhook:
    def test_rejects_bad_secret(self, client, fake_db):
        resp = client.post("/webhooks/task-status", json={"task_id": "t1", "status": "sent"},
                           headers={"Authorization": "Bearer wrong"})
        assert resp.status_code == 401

    def test_rejects_missing_header(self, client, fake_db):
        resp = client.post("/webhooks/task-status", json={"task_id": "t1", "status": "sent"})
        assert resp.status_code == 401

    def test_requires_fields(self, client, fake_db):
        resp = client.post("/webhooks/task-status", json={"task_id": "t1"}, headers=AUTH)
        assert resp.status_code == 400

    def test_records_status(self, client, fake_db):
        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1"))
        resp = client.post("/webhooks/task-status", json={"task_id": "t1", "status": "sent"},
                           headers=AUTH)
        assert resp.json() == {"status": "recorded", "task_status": "sent"}
        assert fake_db.store["scheduled_service_tasks"][0]["executed_at"] is not None

    def test_ignores_backwards_move(self, client, fake_db):
        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1", status="completed"))
        resp = client.post("/webhooks/task-status", json={"task_id": "t1", "status": "sent"},
                           headers=AUTH)
        assert resp.json()["status"] == "ignored"
        assert fake_db.store["scheduled_service_tasks"][0]["status"] == "completed"

    def test_unknown_task(self, client, fake_db):
        resp = client.post("/webhooks/task-status", json={"task_id": "nope", "status": "sent"},
                           headers=AUTH)
        assert resp.json() == {"status": "not_found"}
        assert fake_db.store["audit_log"][0]["action"] == "delivery_callback_unmatched"

    def test_rate_limit(self, client, fake_db):
        from back_office.routers import webhooks

        for _ in range(webhooks._RATE_LIMIT):
            client.post("/webhooks/task-status", json={}, headers=AUTH)
        resp = client.post("/webhooks/task-status", json={}, headers=AUTH)
        assert resp.status_code == 429
