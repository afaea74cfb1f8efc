"""Service flow config: typed model of the per-product three-phase JSON blob.

Stored in ``products.service_flow_config`` and copied verbatim into
``customer_products.service_flow_config_snapshot``. Shape::

    {
      "onboarding": {"enabled", "task_name", "message_template_id"},
      "retention":  {"enabled", "reminder_days_before", "message_template_id"},
      "maturity":   {"enabled", "task_name", "message_template_id"}
    }

A missing blob, phase or ``enabled`` flag reads as disabled.
"""

import json

from pydantic import BaseModel, Field, field_validator

PHASES = ("onboarding", "retention", "maturity")

DEFAULT_ONBOARDING_TASK = "Install Product"
DEFAULT_MATURITY_TASK = "Call for MA Renewal"
DEFAULT_REMINDER_DAYS_BEFORE = 7


class _Phase(BaseModel):
    enabled: bool = False
    message_template_id: str | None = None

    @field_validator("enabled", mode="before")
    @classmethod
    def _null_is_disabled(cls, v):
        return False if v is None else v

    @field_validator("message_template_id", mode="before")
    @classmethod
    def _blank_is_null(cls, v):
        return v or None


class OnboardingPhase(_Phase):
    task_name: str | None = None


class RetentionPhase(_Phase):
    reminder_days_before: int = DEFAULT_REMINDER_DAYS_BEFORE

    @field_validator("reminder_days_before", mode="before")
    @classmethod
    def _default_lead_time(cls, v):
        return DEFAULT_REMINDER_DAYS_BEFORE if v is None else v


class MaturityPhase(_Phase):
    task_name: str | None = None


class ServiceFlowConfig(BaseModel):
    onboarding: OnboardingPhase = Field(default_factory=OnboardingPhase)
    retention: RetentionPhase = Field(default_factory=RetentionPhase)
    maturity: MaturityPhase = Field(default_factory=MaturityPhase)

    @field_validator("onboarding", "retention", "maturity", mode="before")
    @classmethod
    def _null_phase(cls, v):
        return {} if v is None else v

    @classmethod
    def from_json(cls, data) -> "ServiceFlowConfig":
        """Parse a stored config (dict, JSON string or None)."""
        if isinstance(data, ServiceFlowConfig):
            return data
        if not data:
            return cls()
        if isinstance(data, str):
            data = json.loads(data)
        return cls.model_validate(data)

    def to_json(self) -> dict:
        return self.model_dump()

    def phase(self, name: str) -> _Phase:
        if name not in PHASES:
            raise ValueError(f"Unknown phase: {name}")
        return getattr(self, name)


def default_flow_config() -> ServiceFlowConfig:
    """Config applied to new products: every phase on, stock task names."""
    return ServiceFlowConfig(
        onboarding=OnboardingPhase(enabled=True, task_name=DEFAULT_ONBOARDING_TASK),
        retention=RetentionPhase(enabled=True, reminder_days_before=DEFAULT_REMINDER_DAYS_BEFORE),
        maturity=MaturityPhase(enabled=True, task_name=DEFAULT_MATURITY_TASK),
    )
