"""Scheduled task routes: listing, due queue, status changes."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from back_office import supabase_client as db
from back_office.services.touchpoints import (
    TASK_STATUSES,
    InvalidTransitionError,
    due_tasks,
    update_task_status,
)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


class StatusIn(BaseModel):
    status: str


@router.get("/")
async def task_list(
    status: str = Query("", description="Filter by status"),
    customer_product_id: str = Query("", description="Filter by lifecycle"),
    limit: int = Query(200, ge=1, le=1000),
):
    if status and status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    tasks = db.get_scheduled_tasks(
        customer_product_id=customer_product_id or None,
        status=status or None,
        limit=limit,
    )
    return {"results": tasks}


@router.get("/due")
async def task_due(on: date | None = Query(None, description="Due on or before (default today)")):
    tasks = due_tasks(on)
    return {"count": len(tasks), "results": tasks}


@router.post("/{task_id}/status")
async def task_status(task_id: str, body: StatusIn):
    try:
        task = update_task_status(task_id, body.status)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task
