"""Dashboard aggregation queries: Supabase."""

from datetime import date, datetime, timezone

from back_office import supabase_client as db


def dashboard_stats() -> dict:
    """Return stats for the main dashboard."""
    tasks_by_status = {
        status: db.count("scheduled_service_tasks", {"status": status})
        for status in ("pending", "sent", "completed", "cancelled")
    }
    return {
        "customers": db.count("customers"),
        "active_products": db.count("products", {"is_active": True}),
        "active_lifecycles": db.count("customer_products", {"status": "active"}),
        "expired_lifecycles": db.count("customer_products", {"status": "expired"}),
        "due_tasks": db.count_due_tasks(),
        "tasks": tasks_by_status,
        "sales_this_month": sales_this_month(),
    }


def sales_this_month() -> float:
    """Net amount of paid sales dated this month."""
    now = datetime.now(timezone.utc)
    start = f"{now.year}-{now.month:02d}-01"
    q = db._table("transactions").select("net_amount")
    q = q.eq("payment_status", "Paid").gte("transaction_date", start)
    result = q.execute()
    return sum(float(t.get("net_amount") or 0) for t in (result.data or []))


def upcoming_tasks(limit: int = 10) -> list[dict]:
    """Next pending tasks from today on."""
    today = date.today().isoformat()
    q = db._table("scheduled_service_tasks").select("*")
    q = q.eq("status", "pending").gte("scheduled_date", today)
    q = q.order("scheduled_date").limit(limit)
    result = q.execute()
    return result.data or []
