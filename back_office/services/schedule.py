"""Schedule generator: lifecycle config to an ordered list of touchpoints.

Pure and deterministic. The touchpoint materializer and the preview
endpoints both call ``generate_schedule`` so stored schedules and previews
cannot drift apart.
"""

from dataclasses import dataclass
from datetime import date

from back_office.services.dates import add_months
from back_office.services.flow_config import (
    DEFAULT_MATURITY_TASK,
    DEFAULT_ONBOARDING_TASK,
    ServiceFlowConfig,
)


@dataclass(frozen=True)
class ScheduleNode:
    """One scheduled touchpoint, offset ``month`` months from the anchor."""
    month: int
    date: date
    phase: str
    action: str

    def as_preview(self) -> dict:
        return {
            "month": self.month,
            "label": "Day 0" if self.month == 0 else f"M{self.month}",
            "date": self.date.isoformat(),
            "phase": self.phase,
            "action": self.action,
        }


def retention_label(month: int) -> str:
    return f"Service Reminder - Month {month}"


def generate_schedule(
    anchor_date: date,
    lifecycle_months: int | None,
    interval_months: int | None,
    config: ServiceFlowConfig | dict | None,
) -> list[ScheduleNode]:
    """Build the touchpoint sequence for one lifecycle.

    Onboarding lands on the anchor date, retention every
    ``interval_months`` strictly inside the lifecycle, maturity at the end.
    Returns [] when the lifecycle is zero or negative. A non-positive
    interval yields no retention nodes.
    """
    lifecycle = lifecycle_months or 0
    interval = interval_months or 0
    if lifecycle <= 0:
        return []

    config = ServiceFlowConfig.from_json(config)
    nodes: list[ScheduleNode] = []

    if config.onboarding.enabled:
        nodes.append(ScheduleNode(
            month=0,
            date=anchor_date,
            phase="onboarding",
            action=config.onboarding.task_name or DEFAULT_ONBOARDING_TASK,
        ))

    if config.retention.enabled and interval > 0:
        month = interval
        while month < lifecycle:
            nodes.append(ScheduleNode(
                month=month,
                date=add_months(anchor_date, month),
                phase="retention",
                action=retention_label(month),
            ))
            month += interval

    if config.maturity.enabled:
        nodes.append(ScheduleNode(
            month=lifecycle,
            date=add_months(anchor_date, lifecycle),
            phase="maturity",
            action=config.maturity.task_name or DEFAULT_MATURITY_TASK,
        ))

    return nodes


def preview_schedule(anchor_date: date, lifecycle_months: int | None,
                     interval_months: int | None, config) -> list[dict]:
    """Schedule rendered as plain dicts for UI timelines."""
    return [
        node.as_preview()
        for node in generate_schedule(anchor_date, lifecycle_months, interval_months, config)
    ]
