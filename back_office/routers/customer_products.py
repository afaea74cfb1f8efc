"""Customer product routes: lifecycle detail, tasks, re-materialization."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from back_office import supabase_client as db
from back_office.services.touchpoints import (
    ScheduleMaterializationError,
    cancel_customer_product_tasks,
    retry_materialization,
)

router = APIRouter(prefix="/customer-products", tags=["Lifecycles"])


def _get_or_404(customer_product_id: str) -> dict:
    cp = db.get_customer_product(customer_product_id)
    if not cp:
        raise HTTPException(status_code=404, detail="Customer product not found")
    return cp


@router.get("/{customer_product_id}")
async def customer_product_detail(customer_product_id: str):
    cp = _get_or_404(customer_product_id)
    return {**cp, "tasks": db.get_scheduled_tasks(customer_product_id=customer_product_id)}


@router.get("/{customer_product_id}/tasks")
async def customer_product_tasks(customer_product_id: str):
    _get_or_404(customer_product_id)
    return {"results": db.get_scheduled_tasks(customer_product_id=customer_product_id)}


@router.post("/{customer_product_id}/rematerialize")
async def customer_product_rematerialize(customer_product_id: str):
    """Rebuild pending tasks from the stored snapshot."""
    _get_or_404(customer_product_id)
    try:
        created = retry_materialization(customer_product_id)
    except ScheduleMaterializationError as e:
        return JSONResponse(status_code=502, content={"detail": str(e)})
    return {"status": "ok", "created": len(created or []), "tasks": created or []}


@router.post("/{customer_product_id}/cancel-tasks")
async def customer_product_cancel(customer_product_id: str):
    _get_or_404(customer_product_id)
    return {"status": "ok", "cancelled": cancel_customer_product_tasks(customer_product_id)}
