"""Pydantic schemas for credit ledger endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AllocateRequest(BaseModel):
    customer_id: str
    agent_id: str
    signal_id: str
    credits_cents: int = Field(..., ge=0)
    price_total_cents: Optional[int] = Field(default=None, ge=0)


class DeductRequest(BaseModel):
    required_cents: int = Field(..., ge=0)


class SetBalanceRequest(BaseModel):
    credits_cents: int = Field(..., ge=0)


class AllocationResponse(BaseModel):
    id: str
    customer_id: str
    agent_id: str
    signal_id: str
    credits_cents: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    customer_id: str
    agent_id: str
    signal_id: str
    credits_cents: Optional[int] = None


class PurchaseResponse(BaseModel):
    id: str
    customer_id: str
    agent_id: str
    signal_id: str
    credit_amount_cents: int
    price_paid_cents: int
    created_at: datetime

    model_config = {"from_attributes": True}
