"""Pydantic schemas for profitability endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RevenueBreakdownResponse(BaseModel):
    signal_revenue: int
    setup_fee_revenue: int
    platform_fee_revenue: int
    credit_purchase_revenue: int


class ActivityCountsResponse(BaseModel):
    signal_calls: int
    token_usage_records: int
    setup_fees: int
    platform_fees: int
    credit_purchases: int


class ProfitabilityResponse(BaseModel):
    agent_id: Optional[str] = None
    customer_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    revenue: int
    revenue_breakdown: RevenueBreakdownResponse
    costs: int
    profit: int
    profit_margin: float
    counts: ActivityCountsResponse
    period_days: int
    daily_revenue: float
    daily_costs: float
    daily_profit: float
