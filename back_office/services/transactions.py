"""Transactions service: totals, numbering, sale recording.

Recording a sale writes the transaction and its items first, then
dispatches the purchase events (activity log, lifecycle snapshot, task
schedule). A scheduling failure does not undo the sale; it surfaces as
ScheduleMaterializationError so the schedule can be retried on its own.
"""

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from back_office import supabase_client as db
from back_office.services.customer_products import ProductNotFoundError
from back_office.services.dates import parse_date
from back_office.services.purchase_events import dispatch, item_payload
from back_office.services.settings import VatSettings, get_vat_settings
from back_office.services.touchpoints import ScheduleMaterializationError

logger = logging.getLogger(__name__)

PAYMENT_STATUSES = ("Pending", "Paid", "Cancelled")
PAYMENT_METHODS = ("cash", "transfer", "credit_card")


def _round_unit(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def item_total(item: dict) -> float:
    """Line total: explicit total_price, else quantity x unit_price."""
    if item.get("total_price") is not None:
        return float(item["total_price"])
    return float(item.get("quantity", 1)) * float(item.get("unit_price", 0))


def calculate_totals(items: list[dict], discount: float, vat: VatSettings) -> dict:
    """Subtotal, discount, VAT and net amount for a sale.

    net = (subtotal - discount) + tax, with tax rounded to the nearest
    currency unit and charged only when VAT is enabled.
    """
    subtotal = sum(Decimal(str(item_total(i))) for i in items)
    discount_d = Decimal(str(discount or 0))
    after_discount = subtotal - discount_d
    tax = Decimal("0")
    if vat.enable_vat:
        tax = _round_unit(after_discount * Decimal(str(vat.vat_rate)) / Decimal("100"))
    return {
        "subtotal": float(subtotal),
        "discount": float(discount_d),
        "tax": float(tax),
        "net": float(after_discount + tax),
    }


def transaction_number_prefix(customer_id: str, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"INV-{now.strftime('%Y%m')}-{str(customer_id)[:6].upper()}-"


def generate_transaction_number(customer_id: str, now: datetime | None = None) -> str:
    """Next INV-YYYYMM-CUSTID-NNN number for this customer and month.

    Counts existing numbers with the same prefix, so two sales racing for
    the same customer in the same month can collide. Accepted for a single
    point-of-sale terminal.
    """
    prefix = transaction_number_prefix(customer_id, now)
    existing = db.count_transactions_with_prefix(prefix)
    return f"{prefix}{existing + 1:03d}"


def _prepare_items(items: list[dict], transaction_date: date) -> list[dict]:
    prepared = []
    for raw in items:
        if not raw.get("product_id"):
            continue
        quantity = int(raw.get("quantity") or 1)
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        item = {
            "product_id": raw["product_id"],
            "quantity": quantity,
            "unit_price": float(raw.get("unit_price") or 0),
            "enable_service_flow": bool(raw.get("enable_service_flow")),
            "service_start_date": None,
        }
        item["total_price"] = item_total({**item, "total_price": raw.get("total_price")})
        start = parse_date(raw.get("service_start_date"))
        if start is None and item["enable_service_flow"]:
            start = transaction_date
        if start is not None:
            item["service_start_date"] = start.isoformat()
        prepared.append(item)
    return prepared


def create_transaction(
    customer_id: str,
    items: list[dict],
    discount_amount: float = 0,
    transaction_date: date | None = None,
    payment_method: str = "cash",
    payment_status: str = "Paid",
    transaction_no: str | None = None,
    note: str = "",
    payment_slip_url: str | None = None,
    send_line_notification: bool = False,
    vat_settings: VatSettings | None = None,
    today: date | None = None,
) -> dict:
    """Record a sale and run its follow-up events.

    Returns {transaction, items, customer_products, tasks}. Raises
    ValueError for bad input, ProductNotFoundError for unknown products,
    and ScheduleMaterializationError (with ``purchase`` set to the partial
    result) when a schedule could not be stored.
    """
    if not db.get_customer(customer_id):
        raise ValueError(f"Customer not found: {customer_id}")
    if payment_status not in PAYMENT_STATUSES:
        raise ValueError(f"Invalid payment_status: {payment_status}")
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Invalid payment_method: {payment_method}")

    today = today or date.today()
    txn_date = transaction_date or today
    prepared = _prepare_items(items, txn_date)
    if not prepared:
        raise ValueError("At least one item with a product is required")

    for item in prepared:
        if not db.get_product(item["product_id"]):
            raise ProductNotFoundError(item["product_id"])

    vat = vat_settings or get_vat_settings()
    totals = calculate_totals(prepared, discount_amount, vat)

    transaction = db.insert("transactions", {
        "customer_id": customer_id,
        "transaction_no": transaction_no or generate_transaction_number(customer_id),
        "transaction_date": txn_date.isoformat(),
        "total_amount": totals["subtotal"],
        "discount_amount": totals["discount"],
        "tax_amount": totals["tax"],
        "net_amount": totals["net"],
        "status": "completed",
        "payment_method": payment_method,
        "payment_status": payment_status,
        "payment_slip_url": payment_slip_url,
        "note": note,
        "send_line_notification": send_line_notification,
    })
    transaction_id = transaction["id"]

    stored_items = db.insert_many(
        "transaction_items",
        [{**item, "transaction_id": transaction_id} for item in prepared],
    )

    db.log_action("transaction_created", "transaction", str(transaction_id),
                  f"{transaction['transaction_no']}: {len(stored_items)} items, net {totals['net']}")

    dispatch("transaction_created", {"transaction": transaction})

    result = {"transaction": transaction, "items": stored_items,
              "customer_products": [], "tasks": []}
    failures: list[ScheduleMaterializationError] = []

    for item in stored_items:
        try:
            outcomes = dispatch("transaction_item_created", item_payload(item, customer_id, today))
        except ScheduleMaterializationError as e:
            logger.error("%s (transaction %s)", e, transaction_id)
            failures.append(e)
            continue
        for outcome in outcomes:
            if outcome.get("customer_product"):
                result["customer_products"].append(outcome["customer_product"])
            result["tasks"].extend(outcome.get("tasks", []))

    if failures:
        error = failures[0]
        error.purchase = result
        error.failed_customer_products = [f.customer_product_id for f in failures]
        db.log_action("schedule_materialization_failed", "transaction", str(transaction_id),
                      ", ".join(error.failed_customer_products))
        raise error

    return result


def update_payment_status(transaction_id: str, status: str) -> dict | None:
    """Change payment status. None for an invalid status or unknown sale."""
    if status not in PAYMENT_STATUSES:
        return None
    if not db.get_transaction(transaction_id):
        return None

    txn = db.update("transactions", {
        "payment_status": status,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }, {"id": transaction_id})
    db.log_action("payment_status_change", "transaction", transaction_id, f"Moved to {status}")
    return txn


def get_transaction(transaction_id: str) -> dict | None:
    """Transaction with its items, or None."""
    txn = db.get_transaction(transaction_id)
    if not txn:
        return None
    return {**txn, "items": db.get_transaction_items(transaction_id)}


def get_transactions(customer_id: str | None = None, limit: int = 100) -> list[dict]:
    match = {"customer_id": customer_id} if customer_id else None
    return db.select("transactions", match=match, order="transaction_date",
                     order_desc=True, limit=limit)
