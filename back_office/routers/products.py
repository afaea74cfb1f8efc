"""Products routes: catalog CRUD and lifecycle timeline preview."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from back_office.services.flow_config import ServiceFlowConfig
from back_office.services.products import (
    create_product,
    deactivate_product,
    get_product,
    get_products,
    preview_product_schedule,
    update_product,
)
from back_office.services.schedule import preview_schedule

router = APIRouter(prefix="/products", tags=["Products"])


class ProductIn(BaseModel):
    name: str
    sku: str | None = None
    description: str | None = None
    image_url: str | None = None
    selling_price: float = 0
    cost_price: float | None = None
    unit: str | None = None
    product_type: str = "tangible"
    stock_quantity: int = 0
    has_service_flow: bool = False
    lifecycle_months: int = 0
    service_interval_months: int = 0
    usage_duration_days: int | None = None
    service_flow_config: ServiceFlowConfig | None = None


class PreviewIn(BaseModel):
    lifecycle_months: int = 0
    service_interval_months: int = 0
    service_flow_config: ServiceFlowConfig | None = None
    start_date: date | None = None


def _dump(model: BaseModel, partial: bool = False) -> dict:
    data = model.model_dump(exclude_unset=partial)
    if data.get("service_flow_config") is None:
        data.pop("service_flow_config", None)
    return data


@router.get("/")
async def product_list(include_inactive: bool = Query(False)):
    return {"results": get_products(active_only=not include_inactive)}


@router.post("/", status_code=201)
async def product_create(body: ProductIn):
    try:
        return create_product(_dump(body))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/schedule-preview")
async def schedule_preview_unsaved(body: PreviewIn):
    """Timeline for a config that hasn't been saved yet (product editor)."""
    nodes = preview_schedule(
        body.start_date or date.today(),
        body.lifecycle_months,
        body.service_interval_months,
        body.service_flow_config,
    )
    return {"nodes": nodes}


@router.get("/{product_id}")
async def product_detail(product_id: str):
    product = get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/{product_id}")
async def product_update(product_id: str, body: dict):
    if not get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        return update_product(product_id, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{product_id}")
async def product_deactivate(product_id: str):
    if not get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return deactivate_product(product_id)


@router.get("/{product_id}/schedule-preview")
async def schedule_preview(product_id: str, start_date: date | None = Query(None)):
    """Timeline a purchase of this product would get."""
    product = get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"product_id": product_id, "nodes": preview_product_schedule(product, start_date)}
