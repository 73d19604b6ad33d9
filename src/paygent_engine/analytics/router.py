"""Profitability API router."""

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from paygent_engine.analytics.schemas import (
    ActivityCountsResponse,
    ProfitabilityResponse,
    RevenueBreakdownResponse,
)
from paygent_engine.common.security import require_api_key

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _get_service():
    from paygent_engine.deps import get_profitability_service
    return get_profitability_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


@router.get("/profitability", response_model=ProfitabilityResponse)
async def get_profitability(
    agent_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        report = await svc.compute_profitability(
            session,
            agent_id=agent_id,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
        )
        return ProfitabilityResponse(
            agent_id=agent_id,
            customer_id=customer_id,
            start_date=report.start_date,
            end_date=report.end_date,
            revenue=report.revenue,
            revenue_breakdown=RevenueBreakdownResponse(**asdict(report.revenue_breakdown)),
            costs=report.costs,
            profit=report.profit,
            profit_margin=report.profit_margin,
            counts=ActivityCountsResponse(**asdict(report.counts)),
            period_days=report.period_days,
            daily_revenue=report.daily_revenue,
            daily_costs=report.daily_costs,
            daily_profit=report.daily_profit,
        )
