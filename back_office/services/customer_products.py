"""Snapshot capture: create the lifecycle instance for a purchased item.

The product's flow config, lifecycle and interval are copied onto the new
customer_products row. Schedules are always generated from that snapshot,
never from the live product, so later product edits leave issued schedules
untouched.
"""

import logging
from datetime import date, timedelta

from back_office import supabase_client as db
from back_office.config import DEFAULT_SERVICE_INTERVAL_MONTHS, DEFAULT_USAGE_DURATION_DAYS
from back_office.services.dates import add_fixed_months, parse_date

logger = logging.getLogger(__name__)


class ProductNotFoundError(LookupError):
    """The purchased item references a product that no longer exists."""

    def __init__(self, product_id: str):
        super().__init__(f"Referenced product not found: {product_id}")
        self.product_id = product_id


def tracks_lifecycle(product: dict) -> bool:
    """Only tangible goods get a lifecycle instance; unset type counts as tangible."""
    return product.get("product_type") in (None, "", "tangible")


def summary_dates(product: dict, installation_date: date) -> dict:
    """Warranty end and next service date, using fixed 30-day months.

    Defaults apply only to NULL fields; an explicit 0 is kept.
    """
    lifecycle = product.get("lifecycle_months") or 0
    interval = product.get("service_interval_months")
    if interval is None:
        interval = DEFAULT_SERVICE_INTERVAL_MONTHS

    if lifecycle > 0:
        warranty_end = add_fixed_months(installation_date, lifecycle)
    else:
        days = product.get("usage_duration_days")
        if days is None:
            days = DEFAULT_USAGE_DURATION_DAYS
        warranty_end = installation_date + timedelta(days=days)

    return {
        "warranty_end_date": warranty_end,
        "next_service_date": add_fixed_months(installation_date, interval),
    }


def capture_snapshot(item: dict, customer_id: str, today: date | None = None) -> dict | None:
    """Create a customer_products row for one transaction item.

    Returns the new row, or None for products that don't track a lifecycle.
    Raises ProductNotFoundError if the product is gone.
    """
    product = db.get_product(item["product_id"])
    if not product:
        raise ProductNotFoundError(item["product_id"])

    if not tracks_lifecycle(product):
        return None

    installation = parse_date(item.get("service_start_date")) or today or date.today()
    dates = summary_dates(product, installation)

    customer_product = db.insert("customer_products", {
        "customer_id": customer_id,
        "product_id": product["id"],
        "transaction_id": item.get("transaction_id"),
        "transaction_item_id": item.get("id"),
        "quantity": item.get("quantity", 1),
        "installation_date": installation.isoformat(),
        "warranty_end_date": dates["warranty_end_date"].isoformat(),
        "next_service_date": dates["next_service_date"].isoformat(),
        "status": "active",
        "service_flow_config_snapshot": product.get("service_flow_config"),
        "lifecycle_months_snapshot": product.get("lifecycle_months"),
        "service_interval_months_snapshot": product.get("service_interval_months"),
    })

    logger.info(
        "Captured lifecycle snapshot for product %s (customer %s, %s months)",
        product["id"], customer_id, product.get("lifecycle_months"),
    )
    return customer_product


def expire_lapsed(today: date | None = None) -> int:
    """Mark active lifecycles whose warranty has ended as expired."""
    cutoff = (today or date.today()).isoformat()
    q = db._table("customer_products").select("id")
    q = q.eq("status", "active").lt("warranty_end_date", cutoff)
    result = q.execute()
    lapsed = result.data or []

    for row in lapsed:
        db.update("customer_products", {"status": "expired"}, {"id": row["id"]})

    if lapsed:
        db.log_action("lifecycles_expired", "customer_product", "",
                      f"{len(lapsed)} lifecycles past warranty end")
    return len(lapsed)
