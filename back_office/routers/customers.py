"""Customers routes: search, quick add, overview."""

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from back_office.services.customers import (
    create_customer,
    customer_overview,
    search_customers,
)

router = APIRouter(prefix="/customers", tags=["Customers"])


class CustomerIn(BaseModel):
    name: str
    phone: str = ""
    email: str = ""
    line_id: str = ""
    address: str = ""


@router.get("/")
async def customer_search(q: str = Query("", description="Search name/phone/email"),
                          limit: int = Query(20, ge=1, le=100)):
    return {"results": search_customers(q, limit=limit)}


@router.post("/", status_code=201)
async def customer_create(body: CustomerIn):
    try:
        return create_customer(**body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{customer_id}")
async def customer_detail(customer_id: str):
    overview = customer_overview(customer_id)
    if not overview:
        raise HTTPException(status_code=404, detail="Customer not found")
    return overview


@router.get("/{customer_id}/products")
async def customer_products(customer_id: str):
    overview = customer_overview(customer_id)
    if not overview:
        raise HTTPException(status_code=404, detail="Customer not found")
    return {"results": overview["products"]}
