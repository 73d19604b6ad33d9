"""Pydantic schemas for usage metering endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class TokenUsageRequest(BaseModel):
    customer_id: str
    agent_id: str
    model: str = Field(..., min_length=1, description="Model slug or id")
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TokenUsageBatchRequest(BaseModel):
    entries: list[TokenUsageRequest] = Field(..., min_length=1)


class TokenUsageResponse(BaseModel):
    id: str
    customer_id: str
    agent_id: str
    model_id: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_cost: int
    output_cost: int
    total_cost: int
    metadata: dict[str, Any]
    created_at: datetime

    model_config = {"protected_namespaces": ()}


class TokenUsageBatchResponse(BaseModel):
    records: list[TokenUsageResponse]
    recorded_count: int
    skipped_count: int


class SignalCallRequest(BaseModel):
    customer_id: str
    agent_id: str
    signal: str = Field(..., min_length=1, description="Signal slug or id")
    metadata: dict[str, Any] = Field(default_factory=dict)


class SignalLogResponse(BaseModel):
    id: str
    signal_id: str
    agent_id: str
    customer_id: str
    cost_cents: int
    cost_type: str
    metadata: dict[str, Any]
    created_at: datetime


class UsageTotalsResponse(BaseModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int
    total_cost: int
    request_count: int


class ModelUsageResponse(UsageTotalsResponse):
    model_id: str
    model_slug: str

    model_config = {"protected_namespaces": ()}


class SignalBreakdownResponse(BaseModel):
    signal_id: str
    signal_name: str
    signal_type: str
    call_count: int
    total_cents: int


class PaymentSummaryResponse(BaseModel):
    customer_id: str
    total_calls: int
    total_amount_cents: int
    total_credits_cents: int
    unique_signals: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AgentActivityResponse(BaseModel):
    agent_id: str
    agent_name: str
    signal_count: int


class AgentSummaryResponse(BaseModel):
    customer_id: str
    agent_count: int
    agents: list[AgentActivityResponse]
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
