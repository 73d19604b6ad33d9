"""Pydantic schemas for pricing catalog endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ModelCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255)
    input_cost_per_1m_tokens_cents: int = Field(..., ge=0)
    output_cost_per_1m_tokens_cents: int = Field(..., ge=0)
    is_active: bool = True


class ModelUpdate(BaseModel):
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    input_cost_per_1m_tokens_cents: Optional[int] = Field(default=None, ge=0)
    output_cost_per_1m_tokens_cents: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ModelResponse(BaseModel):
    id: str
    slug: str
    input_cost_per_1m_tokens_cents: int
    output_cost_per_1m_tokens_cents: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
