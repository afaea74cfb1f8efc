"""Webhooks: delivery status callbacks from the messaging system."""

import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Header, HTTPException, Request

from back_office.config import WEBHOOK_SECRET
from back_office import supabase_client as db
from back_office.services.touchpoints import InvalidTransitionError, update_task_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

# In-memory rate limiter: {ip: [timestamp, ...]}
_rate_buckets: dict[str, list[float]] = defaultdict(list)
_RATE_LIMIT = 60       # max requests per window
_RATE_WINDOW = 60      # window in seconds


def _check_rate_limit(request: Request) -> None:
    """Raise 429 if IP exceeds rate limit. Simple sliding window."""
    ip = request.client.host if request.client else "unknown"
    now = time.monotonic()
    bucket = _rate_buckets[ip]
    cutoff = now - _RATE_WINDOW
    _rate_buckets[ip] = bucket = [t for t in bucket if t > cutoff]
    if len(bucket) >= _RATE_LIMIT:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    bucket.append(now)


def _check_auth(authorization: str) -> None:
    if WEBHOOK_SECRET:
        expected = f"Bearer {WEBHOOK_SECRET}"
        if authorization != expected:
            raise HTTPException(status_code=401, detail="Invalid webhook secret")


@router.post("/task-status")
async def task_status_webhook(
    request: Request,
    authorization: str = Header(""),
):
    """Delivery system reports a task as sent, completed or cancelled.

    Payload: { task_id, status }
    """
    _check_rate_limit(request)
    _check_auth(authorization)

    body = await request.json()
    task_id = body.get("task_id", "")
    status = body.get("status", "")
    if not task_id or not status:
        raise HTTPException(status_code=400, detail="task_id and status required")

    try:
        task = update_task_status(task_id, status)
    except InvalidTransitionError as e:
        logger.warning("Rejected delivery callback for task %s: %s", task_id, e)
        return {"status": "ignored", "reason": str(e)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if task is None:
        db.log_action("delivery_callback_unmatched", "scheduled_service_task", task_id, status)
        return {"status": "not_found"}

    return {"status": "recorded", "task_status": task.get("status")}
