"""Products service: catalog CRUD, lifecycle validation, schedule preview."""

from datetime import date, datetime, timezone

from pydantic import ValidationError

from back_office import supabase_client as db
from back_office.services.flow_config import ServiceFlowConfig, default_flow_config
from back_office.services.schedule import preview_schedule

PRODUCT_TYPES = ("tangible", "service")


def _normalize(data: dict, partial: bool = False) -> dict:
    """Validate product fields and coerce the flow config to its stored shape."""
    out = dict(data)

    if not partial or "name" in out:
        if not (out.get("name") or "").strip():
            raise ValueError("Product name is required")
        out["name"] = out["name"].strip()

    if "product_type" in out and out["product_type"] not in PRODUCT_TYPES:
        raise ValueError(f"Invalid product_type: {out['product_type']}")

    for field in ("lifecycle_months", "service_interval_months"):
        if field in out:
            value = out[field] or 0
            if int(value) < 0:
                raise ValueError(f"{field} must be >= 0")
            out[field] = int(value)

    if "service_flow_config" in out:
        try:
            out["service_flow_config"] = ServiceFlowConfig.from_json(out["service_flow_config"]).to_json()
        except ValidationError as e:
            raise ValueError(f"Invalid service_flow_config: {e}") from e

    # Without a service flow the lifecycle is off and the config resets.
    if out.get("has_service_flow") is False:
        out["lifecycle_months"] = 0
        out["service_interval_months"] = 0
        out["service_flow_config"] = default_flow_config().to_json()

    return out


def create_product(data: dict) -> dict:
    """Create a product. Missing lifecycle fields get catalog defaults."""
    row = {
        "product_type": "tangible",
        "has_service_flow": False,
        "lifecycle_months": 0,
        "service_interval_months": 0,
        "service_flow_config": default_flow_config().to_json(),
        "is_active": True,
        "stock_quantity": 0,
    }
    row.update(data)
    row = _normalize(row)

    product = db.insert("products", row)
    db.log_action("product_created", "product", str(product.get("id", "")),
                  f"{product.get('name', '')} ({product.get('lifecycle_months', 0)} months)")
    return product


def update_product(product_id: str, updates: dict) -> dict:
    """Update a product. Existing lifecycle snapshots are not affected."""
    updates = _normalize(updates, partial=True)
    updates["updated_at"] = datetime.now(timezone.utc).isoformat()
    product = db.update("products", updates, {"id": product_id})
    if product:
        db.log_action("product_updated", "product", product_id,
                      ", ".join(sorted(k for k in updates if k != "updated_at")))
    return product


def deactivate_product(product_id: str) -> dict:
    """Hide a product from the picker without deleting history."""
    return update_product(product_id, {"is_active": False})


def get_product(product_id: str) -> dict | None:
    return db.get_product(product_id)


def get_products(active_only: bool = True) -> list[dict]:
    return db.get_products(active_only=active_only)


def preview_product_schedule(product: dict, start_date: date | None = None) -> list[dict]:
    """Timeline a purchase of this product would get, starting on start_date."""
    return preview_schedule(
        start_date or date.today(),
        product.get("lifecycle_months"),
        product.get("service_interval_months"),
        product.get("service_flow_config"),
    )
