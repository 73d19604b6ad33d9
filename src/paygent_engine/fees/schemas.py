"""Pydantic schemas for fee endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class FeeTransactionResponse(BaseModel):
    id: str
    customer_id: str
    agent_id: str
    fee_type: str
    amount_cents: int
    billing_cycle: Optional[str] = None
    transaction_date: datetime
    billing_anchor_day: Optional[int] = None
    billing_timezone: str
    next_billing_date: Optional[datetime] = None
    previous_transaction_id: Optional[str] = None
    is_active: bool
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChargeFeeRequest(BaseModel):
    customer_id: str
    agent_id: str
    fee_type: str = Field(..., pattern=r"^(setup|platform)$")
    billing_anchor_day: Optional[int] = Field(default=None, ge=1, le=31)
    billing_timezone: Optional[str] = None


class FeeDueResponse(BaseModel):
    customer_id: str
    agent_id: str
    billing_cycle: str
    should_charge: bool


class RenewalResponse(BaseModel):
    renewed_count: int
    skipped_count: int


class FeeTotalResponse(BaseModel):
    customer_id: str
    agent_id: Optional[str] = None
    total_cents: int
