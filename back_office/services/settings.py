"""Tenant settings: VAT configuration."""

import logging
from dataclasses import dataclass

from back_office import supabase_client as db
from back_office.config import DEFAULT_ENABLE_VAT, DEFAULT_VAT_RATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VatSettings:
    enable_vat: bool = DEFAULT_ENABLE_VAT
    vat_rate: float = DEFAULT_VAT_RATE


def get_vat_settings() -> VatSettings:
    """Read VAT settings from the tenant row, falling back to defaults."""
    tenant = db.get_tenant()
    if not tenant:
        logger.warning("No tenant row found, using default VAT settings")
        return VatSettings()

    enable = tenant.get("enable_vat")
    rate = tenant.get("vat_rate")
    return VatSettings(
        enable_vat=DEFAULT_ENABLE_VAT if enable is None else bool(enable),
        vat_rate=DEFAULT_VAT_RATE if rate is None else float(rate),
    )


def update_vat_settings(tenant_id: str, enable_vat: bool | None = None,
                        vat_rate: float | None = None) -> dict:
    """Update the tenant's VAT flags. Returns {} if the tenant does not exist."""
    updates = {}
    if enable_vat is not None:
        updates["enable_vat"] = enable_vat
    if vat_rate is not None:
        if vat_rate < 0:
            raise ValueError("vat_rate must be >= 0")
        updates["vat_rate"] = vat_rate
    if not updates:
        return db.select_one("tenants", match={"id": tenant_id}) or {}

    tenant = db.update("tenants", updates, {"id": tenant_id})
    if tenant:
        db.log_action("vat_settings_updated", "tenant", tenant_id,
                      ", ".join(f"{k}={v}" for k, v in updates.items()))
    return tenant
