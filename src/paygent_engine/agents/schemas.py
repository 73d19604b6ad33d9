"""Pydantic schemas for agent and signal endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

SLUG_PATTERN = r"^[a-z0-9]([a-z0-9_-]*[a-z0-9])?$"

BillingCycle = Literal["monthly", "yearly"]
SignalType = Literal["usage", "outcome", "credit"]


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_PATTERN)
    setup_fee_enabled: bool = False
    setup_fee_cents: int = Field(default=0, ge=0)
    platform_fee_enabled: bool = False
    platform_fee_cents: int = Field(default=0, ge=0)
    platform_fee_billing_cycle: BillingCycle = "monthly"
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    setup_fee_enabled: Optional[bool] = None
    setup_fee_cents: Optional[int] = Field(default=None, ge=0)
    platform_fee_enabled: Optional[bool] = None
    platform_fee_cents: Optional[int] = Field(default=None, ge=0)
    platform_fee_billing_cycle: Optional[BillingCycle] = None
    metadata: Optional[dict[str, Any]] = None


class AgentResponse(BaseModel):
    id: str
    name: str
    slug: str
    setup_fee_enabled: bool
    setup_fee_cents: int
    platform_fee_enabled: bool
    platform_fee_cents: int
    platform_fee_billing_cycle: str
    is_restricted: bool
    metadata: dict[str, Any]
    created_at: datetime


class SignalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_PATTERN)
    signal_type: SignalType = "usage"
    price_per_call_cents: int = Field(default=0, ge=0)
    outcome_price_cents: int = Field(default=0, ge=0)
    credits_per_call_cents: int = Field(default=0, ge=0)


class SignalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    signal_type: Optional[SignalType] = None
    price_per_call_cents: Optional[int] = Field(default=None, ge=0)
    outcome_price_cents: Optional[int] = Field(default=None, ge=0)
    credits_per_call_cents: Optional[int] = Field(default=None, ge=0)


class SignalResponse(BaseModel):
    id: str
    agent_id: str
    name: str
    slug: str
    signal_type: str
    price_per_call_cents: int
    outcome_price_cents: int
    credits_per_call_cents: int
    created_at: datetime

    model_config = {"from_attributes": True}
