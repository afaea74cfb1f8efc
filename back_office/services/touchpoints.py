"""Touchpoint materializer: snapshot to scheduled_service_tasks rows.

Also owns the task status lifecycle used by the external delivery system:
pending -> sent -> completed, with cancellation from any non-terminal state.
"""

import logging
from datetime import date, datetime, timezone

from back_office import supabase_client as db
from back_office.services.dates import parse_date
from back_office.services.flow_config import ServiceFlowConfig
from back_office.services.schedule import generate_schedule

logger = logging.getLogger(__name__)

TASK_STATUSES = ("pending", "sent", "completed", "cancelled")

_TRANSITIONS = {
    "pending": {"sent", "completed", "cancelled"},
    "sent": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class ScheduleMaterializationError(RuntimeError):
    """Touchpoint rows for a lifecycle could not be written.

    The purchase itself is already recorded; the operator can retry with
    ``retry_materialization(customer_product_id)``.
    """

    def __init__(self, customer_product_id: str, transaction_id: str | None = None,
                 reason: str = ""):
        target = transaction_id or customer_product_id
        msg = f"Schedule materialization failed for purchase {target}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.customer_product_id = customer_product_id
        self.transaction_id = transaction_id


class InvalidTransitionError(ValueError):
    """A task status change that the lifecycle does not allow."""


def _resolve_template_ids(config: ServiceFlowConfig, phases: set[str]) -> dict[str, str | None]:
    """Explicit phase template, else the phase default, else None."""
    resolved = {}
    for phase in phases:
        explicit = config.phase(phase).message_template_id
        if explicit:
            resolved[phase] = explicit
            continue
        default = db.get_default_template(phase)
        resolved[phase] = default["id"] if default else None
    return resolved


def build_task_rows(customer_product: dict) -> list[dict]:
    """Generate the pending task rows for a lifecycle from its snapshot."""
    config = ServiceFlowConfig.from_json(customer_product.get("service_flow_config_snapshot"))
    anchor = parse_date(customer_product["installation_date"])
    nodes = generate_schedule(
        anchor,
        customer_product.get("lifecycle_months_snapshot"),
        customer_product.get("service_interval_months_snapshot"),
        config,
    )
    if not nodes:
        return []

    templates = _resolve_template_ids(config, {n.phase for n in nodes})
    return [
        {
            "customer_product_id": customer_product["id"],
            "customer_id": customer_product.get("customer_id"),
            "phase": node.phase,
            "scheduled_date": node.date.isoformat(),
            "task_name": node.action,
            "message_template_id": templates[node.phase],
            "status": "pending",
        }
        for node in nodes
    ]


def materialize_touchpoints(customer_product: dict, skip: set[tuple[str, str]] | None = None) -> list[dict]:
    """Persist the schedule for a lifecycle in one bulk insert.

    ``skip`` holds (phase, scheduled_date) pairs that already exist.
    Raises ScheduleMaterializationError on any failure; no partial writes.
    """
    cp_id = customer_product["id"]
    transaction_id = customer_product.get("transaction_id")
    try:
        rows = build_task_rows(customer_product)
        if skip:
            rows = [r for r in rows if (r["phase"], r["scheduled_date"]) not in skip]
        created = db.insert_many("scheduled_service_tasks", rows)
    except Exception as e:
        logger.exception("Materialization failed for customer product %s", cp_id)
        raise ScheduleMaterializationError(cp_id, transaction_id, str(e)) from e

    if len(created) != len(rows):
        raise ScheduleMaterializationError(
            cp_id, transaction_id, f"expected {len(rows)} tasks, stored {len(created)}",
        )

    if created:
        logger.info("Materialized %d tasks for customer product %s", len(created), cp_id)
    return created


def retry_materialization(customer_product_id: str) -> list[dict] | None:
    """Rebuild pending tasks for a lifecycle from its snapshot.

    Pending tasks are dropped and regenerated; tasks already sent, completed
    or cancelled are kept and not duplicated. Returns None if the lifecycle
    does not exist.
    """
    customer_product = db.get_customer_product(customer_product_id)
    if not customer_product:
        return None

    db.delete("scheduled_service_tasks",
              {"customer_product_id": customer_product_id, "status": "pending"})
    kept = db.get_scheduled_tasks(customer_product_id=customer_product_id)
    skip = {(t["phase"], str(t["scheduled_date"])[:10]) for t in kept}

    created = materialize_touchpoints(customer_product, skip=skip)
    db.log_action("schedule_rematerialized", "customer_product", customer_product_id,
                  f"{len(created)} pending tasks, {len(kept)} kept")
    return created


def update_task_status(task_id: str, status: str) -> dict | None:
    """Move a task to a new status. Returns None if the task does not exist."""
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid task status: {status}")

    task = db.select_one("scheduled_service_tasks", match={"id": task_id})
    if not task:
        return None

    current = task.get("status", "pending")
    if status == current:
        return task
    if status not in _TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot move task from {current} to {status}")

    updates = {"status": status}
    if status in ("sent", "completed"):
        updates["executed_at"] = datetime.now(timezone.utc).isoformat()

    updated = db.update("scheduled_service_tasks", updates, {"id": task_id})
    db.log_action("task_status_change", "scheduled_service_task", task_id,
                  f"{current} -> {status}")
    return updated


def cancel_customer_product_tasks(customer_product_id: str) -> int:
    """Cancel every pending task of a lifecycle. Returns count cancelled."""
    pending = db.get_scheduled_tasks(customer_product_id=customer_product_id, status="pending")
    for task in pending:
        db.update("scheduled_service_tasks", {"status": "cancelled"}, {"id": task["id"]})

    if pending:
        db.log_action("tasks_cancelled", "customer_product", customer_product_id,
                      f"Cancelled {len(pending)} pending tasks")
    return len(pending)


def due_tasks(on_or_before: date | None = None) -> list[dict]:
    """Pending tasks ready for delivery."""
    return db.get_due_tasks(on_or_before)
