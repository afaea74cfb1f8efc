"""Transactions routes: record sales, totals, payment status."""

import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from back_office.services.customer_products import ProductNotFoundError
from back_office.services.settings import VatSettings, get_vat_settings
from back_office.services.touchpoints import ScheduleMaterializationError
from back_office.services.transactions import (
    calculate_totals,
    create_transaction,
    get_transaction,
    get_transactions,
    update_payment_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])


class ItemIn(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    unit_price: float = 0
    total_price: float | None = None
    enable_service_flow: bool = False
    service_start_date: date | None = None


class TransactionIn(BaseModel):
    customer_id: str
    items: list[ItemIn]
    transaction_date: date | None = None
    discount_amount: float = 0
    payment_method: str = "cash"
    payment_status: str = "Paid"
    transaction_no: str | None = None
    note: str = ""
    payment_slip_url: str | None = None
    send_line_notification: bool = False


class TotalsIn(BaseModel):
    items: list[ItemIn]
    discount_amount: float = 0
    enable_vat: bool | None = None
    vat_rate: float | None = None


class PaymentStatusIn(BaseModel):
    status: str


@router.get("/")
async def transaction_list(customer_id: str | None = Query(None),
                           limit: int = Query(100, ge=1, le=500)):
    return {"results": get_transactions(customer_id, limit=limit)}


@router.post("/totals")
async def transaction_totals(body: TotalsIn):
    """Live totals for the sale form. Missing VAT fields use tenant settings."""
    tenant = get_vat_settings()
    vat = VatSettings(
        enable_vat=tenant.enable_vat if body.enable_vat is None else body.enable_vat,
        vat_rate=tenant.vat_rate if body.vat_rate is None else body.vat_rate,
    )
    items = [i.model_dump() for i in body.items]
    return calculate_totals(items, body.discount_amount, vat)


@router.post("/", status_code=201)
async def transaction_create(body: TransactionIn):
    data = body.model_dump()
    items = data.pop("items")
    try:
        return create_transaction(items=items, **data)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScheduleMaterializationError as e:
        purchase = getattr(e, "purchase", {})
        return JSONResponse(status_code=502, content={
            "detail": str(e),
            "transaction_id": e.transaction_id,
            "failed_customer_products": getattr(e, "failed_customer_products",
                                                [e.customer_product_id]),
            "transaction": purchase.get("transaction"),
        })
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{transaction_id}")
async def transaction_detail(transaction_id: str):
    txn = get_transaction(transaction_id)
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@router.post("/{transaction_id}/payment-status")
async def transaction_payment_status(transaction_id: str, body: PaymentStatusIn):
    txn = update_payment_status(transaction_id, body.status)
    if txn is None:
        raise HTTPException(status_code=400, detail="Invalid status or unknown transaction")
    return txn
