"""APScheduler: expires lapsed lifecycles periodically."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from back_office.config import EXPIRY_CHECK_HOURS
from back_office.services.customer_products import expire_lapsed

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("interval", hours=EXPIRY_CHECK_HOURS, id="expire_lifecycles")
async def expire_lifecycles():
    """Mark lifecycles past their warranty end date as expired."""
    try:
        expired = expire_lapsed()
        if expired > 0:
            logger.info("Lifecycle expiry: %d marked expired", expired)
    except Exception as e:
        logger.error("Lifecycle expiry failed: %s", e)
