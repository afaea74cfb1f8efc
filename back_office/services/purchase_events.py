"""Purchase event handlers: the follow-up work after a sale is written.

Each event maps to a list of handlers run synchronously, in order, by
``dispatch``. Handlers return a value that is collected for the caller.
"""

import logging
from datetime import date

from back_office import supabase_client as db
from back_office.services.customer_products import capture_snapshot
from back_office.services.touchpoints import materialize_touchpoints

logger = logging.getLogger(__name__)


def record_order_activity(payload: dict) -> dict:
    """Add a purchase entry to the customer's activity timeline."""
    txn = payload["transaction"]
    number = txn.get("transaction_no") or str(txn.get("id", ""))[:8]
    return db.log_activity(
        customer_id=txn["customer_id"],
        activity_type="order",
        title=f"Purchase #{number}",
        description="New purchase recorded",
        amount=txn.get("net_amount"),
        metadata={
            "transaction_id": txn.get("id"),
            "transaction_no": txn.get("transaction_no"),
            "payment_method": txn.get("payment_method"),
            "payment_status": txn.get("payment_status"),
        },
    )


def start_item_lifecycle(payload: dict) -> dict:
    """Snapshot the product onto a lifecycle instance and schedule its tasks."""
    item = payload["item"]
    customer_product = capture_snapshot(item, payload["customer_id"], today=payload.get("today"))
    if not customer_product:
        return {"customer_product": None, "tasks": []}

    tasks = materialize_touchpoints(customer_product)
    return {"customer_product": customer_product, "tasks": tasks}


HANDLERS: dict[str, list] = {
    "transaction_created": [record_order_activity],
    "transaction_item_created": [start_item_lifecycle],
}


def dispatch(event: str, payload: dict) -> list:
    """Run every handler registered for event. Exceptions propagate."""
    handlers = HANDLERS.get(event, [])
    if not handlers:
        logger.debug("No handlers for event %s", event)
    return [handler(payload) for handler in handlers]


def item_payload(item: dict, customer_id: str, today: date | None = None) -> dict:
    return {"item": item, "customer_id": customer_id, "today": today}
