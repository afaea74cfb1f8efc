"""Dashboard route: headline numbers and upcoming tasks."""

from fastapi import APIRouter

from back_office import supabase_client as db
from back_office.services.stats import dashboard_stats, upcoming_tasks

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard")
async def dashboard():
    return {
        "stats": dashboard_stats(),
        "upcoming_tasks": upcoming_tasks(),
        "audit_log": db.get_audit_log(limit=20),
    }
