"""Customers service: lookup, search, quick add."""

from back_office import supabase_client as db


def get_customer(customer_id: str) -> dict | None:
    return db.get_customer(customer_id)


def search_customers(query: str = "", limit: int = 20) -> list[dict]:
    return db.search_customers(query, limit=limit)


def create_customer(name: str, phone: str = "", email: str = "",
                    line_id: str = "", address: str = "") -> dict:
    """Quick-add a customer from the point-of-sale screen."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Customer name is required")

    customer = db.insert("customers", {
        "name": name,
        "phone": phone.strip(),
        "email": email.strip().lower(),
        "line_id": line_id.strip(),
        "address": address.strip(),
    })
    db.log_action("customer_created", "customer", str(customer.get("id", "")), name)
    return customer


def customer_overview(customer_id: str) -> dict | None:
    """Customer with owned lifecycles and recent activity."""
    customer = db.get_customer(customer_id)
    if not customer:
        return None
    return {
        "customer": customer,
        "products": db.get_customer_products(customer_id),
        "activity": db.get_activity(customer_id),
    }
