"""Supabase connection and query helpers for the back-office tables."""

import re
import threading
from datetime import date

from supabase import Client, create_client

from back_office.config import SUPABASE_SERVICE_KEY, SUPABASE_URL

_client: Client | None = None
_client_lock = threading.Lock()


def get_client() -> Client:
    """Return the Supabase client singleton (thread-safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
                    raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
                _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _client


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def _table(name: str):
    """Return a table query builder."""
    return get_client().table(name)


def insert(table: str, data: dict) -> dict:
    """Insert a row and return it."""
    result = _table(table).insert(data).execute()
    return result.data[0] if result.data else {}


def insert_many(table: str, rows: list[dict]) -> list[dict]:
    """Insert several rows in one request and return them.

    PostgREST runs a list insert as a single statement, so either every
    row lands or none do.
    """
    if not rows:
        return []
    result = _table(table).insert(rows).execute()
    return result.data or []


def update(table: str, data: dict, match: dict) -> dict:
    """Update rows matching conditions."""
    q = _table(table).update(data)
    for k, v in match.items():
        q = q.eq(k, v)
    result = q.execute()
    return result.data[0] if result.data else {}


def delete(table: str, match: dict) -> list:
    """Delete rows matching conditions."""
    q = _table(table).delete()
    for k, v in match.items():
        q = q.eq(k, v)
    result = q.execute()
    return result.data


def select(table: str, columns: str = "*", match: dict | None = None,
           order: str | None = None, order_desc: bool = False,
           limit: int | None = None, offset: int | None = None) -> list[dict]:
    """Select rows with optional filtering, ordering, and pagination."""
    q = _table(table).select(columns)
    if match:
        for k, v in match.items():
            q = q.eq(k, v)
    if order:
        q = q.order(order, desc=order_desc)
    if limit:
        q = q.limit(limit)
    if offset:
        q = q.range(offset, offset + (limit or 100) - 1)
    result = q.execute()
    return result.data or []


def select_one(table: str, columns: str = "*", match: dict | None = None) -> dict | None:
    """Select a single row."""
    rows = select(table, columns, match, limit=1)
    return rows[0] if rows else None


def count(table: str, match: dict | None = None) -> int:
    """Count rows matching conditions."""
    q = _table(table).select("*", count="exact")
    if match:
        for k, v in match.items():
            q = q.eq(k, v)
    result = q.execute()
    return result.count or 0


def _sanitize_search(q: str) -> str:
    """Strip PostgREST filter metacharacters from search input."""
    return re.sub(r"[%,.()\[\]]", "", q)[:100]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def get_product(product_id: str) -> dict | None:
    """Get a single product by UUID."""
    return select_one("products", match={"id": product_id})


def get_products(active_only: bool = True, limit: int = 200) -> list[dict]:
    """Get products ordered by name."""
    match = {"is_active": True} if active_only else None
    return select("products", match=match, order="name", limit=limit)


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def get_customer(customer_id: str) -> dict | None:
    """Get a single customer by UUID."""
    return select_one("customers", match={"id": customer_id})


def search_customers(search: str = "", limit: int = 20) -> list[dict]:
    """Search customers by name, phone or email."""
    q = _table("customers").select("*")
    if search:
        safe = _sanitize_search(search)
        q = q.or_(f"name.ilike.%{safe}%,phone.ilike.%{safe}%,email.ilike.%{safe}%")
    q = q.order("name").limit(limit)
    result = q.execute()
    return result.data or []


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def get_transaction(transaction_id: str) -> dict | None:
    """Get a transaction by UUID."""
    return select_one("transactions", match={"id": transaction_id})


def count_transactions_with_prefix(prefix: str) -> int:
    """Count transactions whose number starts with prefix."""
    q = _table("transactions").select("id", count="exact").like("transaction_no", f"{prefix}%")
    result = q.execute()
    return result.count or 0


def get_transaction_items(transaction_id: str) -> list[dict]:
    """Get line items for a transaction."""
    return select("transaction_items", match={"transaction_id": transaction_id})


# ---------------------------------------------------------------------------
# Customer products & scheduled tasks
# ---------------------------------------------------------------------------

def get_customer_product(customer_product_id: str) -> dict | None:
    """Get a customer product (lifecycle instance) by UUID."""
    return select_one("customer_products", match={"id": customer_product_id})


def get_customer_products(customer_id: str) -> list[dict]:
    """Get all lifecycle instances owned by a customer."""
    return select("customer_products", match={"customer_id": customer_id},
                  order="installation_date", order_desc=True)


def get_scheduled_tasks(customer_product_id: str | None = None,
                        status: str | None = None, limit: int = 200) -> list[dict]:
    """Get scheduled service tasks ordered by date."""
    match = {}
    if customer_product_id:
        match["customer_product_id"] = customer_product_id
    if status:
        match["status"] = status
    return select("scheduled_service_tasks", match=match or None,
                  order="scheduled_date", limit=limit)


def get_due_tasks(on_or_before: date | None = None, limit: int = 200) -> list[dict]:
    """Get pending tasks scheduled on or before the given date."""
    cutoff = (on_or_before or date.today()).isoformat()
    q = _table("scheduled_service_tasks").select("*")
    q = q.eq("status", "pending").lte("scheduled_date", cutoff)
    q = q.order("scheduled_date").limit(limit)
    result = q.execute()
    return result.data or []


def count_due_tasks(on_or_before: date | None = None) -> int:
    """Count pending tasks scheduled on or before the given date."""
    cutoff = (on_or_before or date.today()).isoformat()
    q = _table("scheduled_service_tasks").select("*", count="exact")
    q = q.eq("status", "pending").lte("scheduled_date", cutoff)
    result = q.execute()
    return result.count or 0


# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------

def get_default_template(template_type: str) -> dict | None:
    """First default template for a phase type, or None."""
    return select_one("message_templates", match={"type": template_type, "is_default": True})


# ---------------------------------------------------------------------------
# Activity log (customer timeline)
# ---------------------------------------------------------------------------

def log_activity(customer_id: str, activity_type: str, title: str,
                 description: str = "", amount: float | None = None,
                 metadata: dict | None = None) -> dict:
    """Append an entry to a customer's activity timeline."""
    return insert("activity_logs", {
        "customer_id": customer_id,
        "type": activity_type,
        "title": title,
        "description": description,
        "amount": amount,
        "metadata": metadata or {},
    })


def get_activity(customer_id: str, limit: int = 50) -> list[dict]:
    """Get a customer's activity timeline, newest first."""
    return select("activity_logs", match={"customer_id": customer_id},
                  order="created_at", order_desc=True, limit=limit)


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------

def log_action(action: str, entity_type: str = "", entity_id: str = "", details: str = "") -> dict:
    """Log an operator action."""
    return insert("audit_log", {
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": details,
    })


def get_audit_log(limit: int = 50) -> list[dict]:
    """Get recent audit log entries."""
    return select("audit_log", order="created_at", order_desc=True, limit=limit)


# ---------------------------------------------------------------------------
# Tenant settings
# ---------------------------------------------------------------------------

def get_tenant() -> dict | None:
    """Return the single tenant row, if any."""
    return select_one("tenants")
