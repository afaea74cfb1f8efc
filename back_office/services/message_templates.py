"""Message templates: CRUD, per-phase defaults, {{variable}} rendering."""

import re
from datetime import datetime, timezone

from back_office import supabase_client as db
from back_office.services.flow_config import PHASES

CHANNELS = ("line", "sms", "email")
DEFAULT_VARIABLES = ["customer_name", "product_name", "service_date"]

SAMPLE_DATA = {
    "customer_name": "Somchai",
    "product_name": "Daikin Inverter Air Conditioner",
    "service_date": "15 January 2025",
    "lifecycle_months": "24",
}

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _validate(data: dict) -> None:
    if "type" in data and data["type"] not in PHASES:
        raise ValueError(f"Invalid template type: {data['type']}")
    if "channel" in data and data["channel"] not in CHANNELS:
        raise ValueError(f"Invalid channel: {data['channel']}")


def get_templates() -> list[dict]:
    """All templates, grouped by type."""
    q = db._table("message_templates").select("*")
    q = q.order("type").order("created_at", desc=True)
    result = q.execute()
    return result.data or []


def get_templates_by_type(template_type: str) -> list[dict]:
    """Templates for one phase, defaults first."""
    templates = db.select("message_templates", match={"type": template_type},
                          order="created_at", order_desc=True)
    return sorted(templates, key=lambda t: not t.get("is_default"))


def get_default_templates() -> list[dict]:
    return db.select("message_templates", match={"is_default": True})


def get_default_template(template_type: str) -> dict | None:
    """The fallback template for a phase. None when no default exists."""
    return db.get_default_template(template_type)


def get_template(template_id: str) -> dict | None:
    return db.select_one("message_templates", match={"id": template_id})


def create_template(
    name: str,
    template_type: str,
    content: str,
    channel: str = "line",
    subject: str | None = None,
    variables: list[str] | None = None,
    is_default: bool = False,
) -> dict:
    """Create a message template."""
    if not name or not content:
        raise ValueError("name and content are required")
    data = {
        "name": name,
        "type": template_type,
        "channel": channel,
        "subject": subject,
        "content": content,
        "variables": variables or list(DEFAULT_VARIABLES),
        "is_default": is_default,
    }
    _validate(data)
    template = db.insert("message_templates", data)
    db.log_action("template_created", "message_template", str(template.get("id", "")),
                  f"{template_type}/{channel}: {name}")
    return template


def update_template(template_id: str, updates: dict) -> dict:
    """Update template fields. Returns {} if the template does not exist."""
    _validate(updates)
    updates["updated_at"] = datetime.now(timezone.utc).isoformat()
    template = db.update("message_templates", updates, {"id": template_id})
    if template:
        db.log_action("template_updated", "message_template", template_id)
    return template


def delete_template(template_id: str) -> bool:
    removed = db.delete("message_templates", {"id": template_id})
    if removed:
        db.log_action("template_deleted", "message_template", template_id)
    return bool(removed)


def render_template(content: str, data: dict) -> str:
    """Replace {{key}} placeholders. Unknown placeholders are left as-is."""
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        return str(data[key]) if key in data else match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, content)


def preview_template(content: str, sample_data: dict | None = None) -> str:
    """Render a template against sample data for the editor preview."""
    data = {**SAMPLE_DATA, **(sample_data or {})}
    return render_template(content, data)
