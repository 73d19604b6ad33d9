"""Pydantic schemas for customer and link endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from paygent_engine.fees.schemas import FeeTransactionResponse


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]([a-z0-9_-]*[a-z0-9])?$")
    metadata: dict[str, Any] = Field(default_factory=dict)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    metadata: Optional[dict[str, Any]] = None


class CustomerResponse(BaseModel):
    id: str
    name: str
    slug: str
    metadata: dict[str, Any]
    created_at: datetime


class LinkCreate(BaseModel):
    agent_id: str
    billing_anchor_day: Optional[int] = Field(default=None, ge=1, le=31)
    billing_timezone: Optional[str] = None


class LinkResponse(BaseModel):
    id: str
    customer_id: str
    agent_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class LinkCreateResponse(LinkResponse):
    """Includes the fee transactions charged at link time."""
    fee_transactions: list[FeeTransactionResponse] = []
