"""Settings routes: tenant VAT configuration."""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from back_office.services.settings import get_vat_settings, update_vat_settings

router = APIRouter(prefix="/settings", tags=["Settings"])


class VatIn(BaseModel):
    tenant_id: str
    enable_vat: bool | None = None
    vat_rate: float | None = None


@router.get("/vat")
async def vat_get():
    return asdict(get_vat_settings())


@router.put("/vat")
async def vat_put(body: VatIn):
    try:
        tenant = update_vat_settings(body.tenant_id, body.enable_vat, body.vat_rate)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return {"enable_vat": tenant.get("enable_vat"), "vat_rate": tenant.get("vat_rate")}
