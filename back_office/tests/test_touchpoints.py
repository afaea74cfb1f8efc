"""Tests for touchpoint materialization and task status changes."""

from unittest.mock import patch

import pytest

from back_office.tests.conftest import (
    make_customer_product,
    make_flow_config,
    make_task,
    make_template,
)


class TestBuildTaskRows:
    def test_rows_follow_schedule(self, fake_db):
        from back_office.services.touchpoints import build_task_rows

        cp = make_customer_product()
        rows = build_task_rows(cp)

        assert [(r["phase"], r["scheduled_date"]) for r in rows] == [
            ("onboarding", "2025-01-15"),
            ("retention", "2025-07-15"),
            ("retention", "2026-01-15"),
            ("retention", "2026-07-15"),
            ("maturity", "2027-01-15"),
        ]
        assert all(r["status"] == "pending" for r in rows)
        assert all(r["customer_product_id"] == cp["id"] for r in rows)
        assert all(r["customer_id"] == cp["customer_id"] for r in rows)

    def test_explicit_template_wins_over_default(self, fake_db):
        from back_office.services.touchpoints import build_task_rows

        fake_db.store["message_templates"].append(make_template(id="default-onb", type="onboarding"))
        config = make_flow_config(retention=False, maturity=False,
                                  onboarding={"message_template_id": "explicit-onb"})
        rows = build_task_rows(make_customer_product(service_flow_config_snapshot=config))

        assert rows[0]["message_template_id"] == "explicit-onb"

    def test_falls_back_to_phase_default(self, fake_db):
        from back_office.services.touchpoints import build_task_rows

        fake_db.store["message_templates"].extend([
            make_template(id="default-ret", type="retention"),
            make_template(id="other-ret", type="retention", is_default=False),
        ])
        config = make_flow_config(onboarding=False, maturity=False)
        rows = build_task_rows(make_customer_product(service_flow_config_snapshot=config))

        assert {r["message_template_id"] for r in rows} == {"default-ret"}

    def test_no_template_is_null(self, fake_db):
        from back_office.services.touchpoints import build_task_rows

        rows = build_task_rows(make_customer_product())
        assert all(r["message_template_id"] is None for r in rows)

    def test_no_schedule_no_rows(self, fake_db):
        from back_office.services.touchpoints import build_task_rows

        assert build_task_rows(make_customer_product(lifecycle_months_snapshot=0)) == []
        assert build_task_rows(make_customer_product(service_flow_config_snapshot=None)) == []


class TestMaterialize:
    def test_stores_every_row(self, fake_db):
        from back_office.services.touchpoints import materialize_touchpoints

        created = materialize_touchpoints(make_customer_product())
        assert len(created) == 5
        assert len(fake_db.store["scheduled_service_tasks"]) == 5

    def test_empty_schedule_stores_nothing(self, fake_db):
        from back_office.services.touchpoints import materialize_touchpoints

        cp = make_customer_product(
            service_flow_config_snapshot=make_flow_config(False, False, False))
        assert materialize_touchpoints(cp) == []
        assert fake_db.store["scheduled_service_tasks"] == []

    def test_write_failure_surfaces(self, fake_db):
        from back_office.services.touchpoints import (
            ScheduleMaterializationError,
            materialize_touchpoints,
        )

        cp = make_customer_product(transaction_id="txn-9")
        with patch("back_office.supabase_client.insert_many",
                   side_effect=RuntimeError("connection reset")):
            with pytest.raises(ScheduleMaterializationError) as exc:
                materialize_touchpoints(cp)

        assert exc.value.customer_product_id == cp["id"]
        assert exc.value.transaction_id == "txn-9"
        assert "purchase txn-9" in str(exc.value)
        assert "connection reset" in str(exc.value)
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_short_write_surfaces(self, fake_db):
        from back_office.services.touchpoints import (
            ScheduleMaterializationError,
            materialize_touchpoints,
        )

        with patch("back_office.supabase_client.insert_many", return_value=[{"id": "x"}]):
            with pytest.raises(ScheduleMaterializationError, match="expected 5 tasks, stored 1"):
                materialize_touchpoints(make_customer_product())


class TestRetry:
    def test_rebuilds_pending_keeps_sent(self, fake_db):
        from back_office.services.touchpoints import materialize_touchpoints, retry_materialization

        cp = make_customer_product()
        fake_db.store["customer_products"].append(cp)
        materialize_touchpoints(cp)
        onboarding = fake_db.store["scheduled_service_tasks"][0]
        onboarding["status"] = "sent"

        created = retry_materialization(cp["id"])

        tasks = fake_db.store["scheduled_service_tasks"]
        assert len(created) == 4
        assert len(tasks) == 5
        assert sum(1 for t in tasks if t["phase"] == "onboarding") == 1
        assert fake_db.store["audit_log"][-1]["action"] == "schedule_rematerialized"

    def test_retry_after_failure_fills_in(self, fake_db):
        from back_office.services.touchpoints import retry_materialization

        cp = make_customer_product()
        fake_db.store["customer_products"].append(cp)

        assert len(retry_materialization(cp["id"])) == 5
        assert len(retry_materialization(cp["id"])) == 5
        assert len(fake_db.store["scheduled_service_tasks"]) == 5

    def test_unknown_lifecycle(self, fake_db):
        from back_office.services.touchpoints import retry_materialization

        assert retry_materialization("nope") is None


class TestTaskStatus:
    def test_pending_to_sent_stamps_executed_at(self, fake_db):
        from back_office.services.touchpoints import update_task_status

        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1"))
        task = update_task_status("t1", "sent")

        assert task["status"] == "sent"
        assert task["executed_at"] is not None
        assert fake_db.store["audit_log"][0]["details"] == "pending -> sent"

    def test_cancel_leaves_executed_at_empty(self, fake_db):
        from back_office.services.touchpoints import update_task_status

        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1"))
        task = update_task_status("t1", "cancelled")
        assert task["executed_at"] is None

    @pytest.mark.parametrize("current,target", [
        ("completed", "pending"),
        ("completed", "sent"),
        ("cancelled", "sent"),
        ("sent", "pending"),
    ])
    def test_disallowed_transitions(self, fake_db, current, target):
        from back_office.services.touchpoints import InvalidTransitionError, update_task_status

        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1", status=current))
        with pytest.raises(InvalidTransitionError):
            update_task_status("t1", target)

    def test_same_status_is_noop(self, fake_db):
        from back_office.services.touchpoints import update_task_status

        fake_db.store["scheduled_service_tasks"].append(make_task(id="t1", status="sent"))
        assert update_task_status("t1", "sent")["status"] == "sent"
        assert fake_db.store["audit_log"] == []

    def test_unknown_status(self, fake_db):
        from back_office.services.touchpoints import update_task_status

        with pytest.raises(ValueError, match="Invalid task status"):
            update_task_status("t1", "delivered")

    def test_unknown_task(self, fake_db):
        from back_office.services.touchpoints import update_task_status

        assert update_task_status("missing", "sent") is None


class TestCancelAndDue:
    def test_cancel_only_pending(self, fake_db):
        from back_office.services.touchpoints import cancel_customer_product_tasks

        fake_db.store["scheduled_service_tasks"].extend([
            make_task(customer_product_id="cp1"),
            make_task(customer_product_id="cp1", scheduled_date="2026-01-15"),
            make_task(customer_product_id="cp1", status="completed"),
            make_task(customer_product_id="cp2"),
        ])

        assert cancel_customer_product_tasks("cp1") == 2
        statuses = [t["status"] for t in fake_db.store["scheduled_service_tasks"]]
        assert statuses == ["cancelled", "cancelled", "completed", "pending"]

    def test_due_tasks(self, fake_db):
        from datetime import date

        from back_office.services.touchpoints import due_tasks

        fake_db.store["scheduled_service_tasks"].extend([
            make_task(id="late", scheduled_date="2025-05-01"),
            make_task(id="today", scheduled_date="2025-06-01"),
            make_task(id="later", scheduled_date="2025-07-01"),
            make_task(id="sent", scheduled_date="2025-05-01", status="sent"),
        ])

        assert [t["id"] for t in due_tasks(date(2025, 6, 1))] == ["late", "today"]
