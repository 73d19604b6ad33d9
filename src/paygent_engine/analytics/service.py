"""Profitability aggregator.

Revenue is the sum of four ledgers (monetary signal calls, setup fees,
platform fees, credit purchases); costs are the token usage ledger. All
filters are optional and AND together; window bounds are inclusive.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.common.clock import ensure_utc
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import ValidationError
from paygent_engine.common.models import in_window
from paygent_engine.credits.models import CreditPurchaseModel
from paygent_engine.fees.models import AgentFeeTransactionModel
from paygent_engine.metering.models import SignalLogModel, TokenUsageModel

SECONDS_PER_DAY = 86400


@dataclass
class RevenueBreakdown:
    signal_revenue: int = 0
    setup_fee_revenue: int = 0
    platform_fee_revenue: int = 0
    credit_purchase_revenue: int = 0

    @property
    def total(self) -> int:
        return (
            self.signal_revenue
            + self.setup_fee_revenue
            + self.platform_fee_revenue
            + self.credit_purchase_revenue
        )


@dataclass
class ActivityCounts:
    signal_calls: int = 0
    token_usage_records: int = 0
    setup_fees: int = 0
    platform_fees: int = 0
    credit_purchases: int = 0


@dataclass
class ProfitabilityReport:
    revenue_breakdown: RevenueBreakdown = field(default_factory=RevenueBreakdown)
    costs: int = 0
    counts: ActivityCounts = field(default_factory=ActivityCounts)
    period_days: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def revenue(self) -> int:
        return self.revenue_breakdown.total

    @property
    def profit(self) -> int:
        return self.revenue - self.costs

    @property
    def profit_margin(self) -> float:
        if self.revenue <= 0:
            return 0.0
        return self.profit / self.revenue * 100

    @property
    def daily_revenue(self) -> float:
        return self.revenue / self.period_days

    @property
    def daily_costs(self) -> float:
        return self.costs / self.period_days

    @property
    def daily_profit(self) -> float:
        return self.profit / self.period_days


def period_days(
    start: datetime | None,
    end: datetime | None,
    default: int = 7,
) -> int:
    """
    Days covered by a window, counting both boundary days.

    Jan 1 00:00 .. Jan 7 00:00 -> 7; an open window falls back to ``default``.
    """
    if start is None or end is None:
        return default
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY) + 1


class ProfitabilityService:
    """Cross-ledger revenue, cost and margin reports."""

    def __init__(self, settings: PaygentSettings):
        self.settings = settings

    async def compute_profitability(
        self,
        session: AsyncSession,
        agent_id: str | None = None,
        customer_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> ProfitabilityReport:
        start_date = ensure_utc(start_date)
        end_date = ensure_utc(end_date)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        report = ProfitabilityReport(
            start_date=start_date,
            end_date=end_date,
            period_days=period_days(
                start_date, end_date, self.settings.default_period_days,
            ),
        )
        revenue = report.revenue_breakdown
        counts = report.counts

        revenue.signal_revenue, counts.signal_calls = await self._signal_revenue(
            session, agent_id, customer_id, start_date, end_date,
        )
        revenue.setup_fee_revenue, counts.setup_fees = await self._fee_revenue(
            session, "setup", agent_id, customer_id, start_date, end_date,
        )
        revenue.platform_fee_revenue, counts.platform_fees = await self._fee_revenue(
            session, "platform", agent_id, customer_id, start_date, end_date,
        )
        revenue.credit_purchase_revenue, counts.credit_purchases = await self._sum_and_count(
            session,
            CreditPurchaseModel.price_paid_cents,
            CreditPurchaseModel.id,
            _scope(CreditPurchaseModel, agent_id, customer_id)
            + in_window(CreditPurchaseModel.created_at, start_date, end_date),
        )
        report.costs, counts.token_usage_records = await self._sum_and_count(
            session,
            TokenUsageModel.total_cost,
            TokenUsageModel.id,
            _scope(TokenUsageModel, agent_id, customer_id)
            + in_window(TokenUsageModel.created_at, start_date, end_date),
        )
        return report

    async def _signal_revenue(
        self,
        session: AsyncSession,
        agent_id: str | None,
        customer_id: str | None,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> tuple[int, int]:
        """Monetary charges only; credit-typed calls were paid for at purchase time."""
        clauses = _scope(SignalLogModel, agent_id, customer_id) + in_window(
            SignalLogModel.created_at, start_date, end_date,
        )
        monetary = SignalLogModel.cost_type == "monetary"
        row = (await session.execute(
            select(
                func.coalesce(
                    func.sum(case((monetary, SignalLogModel.cost_cents), else_=0)), 0
                ),
                func.count(SignalLogModel.id),
            ).where(*clauses)
        )).one()
        return int(row[0]), int(row[1])

    async def _fee_revenue(
        self,
        session: AsyncSession,
        fee_type: str,
        agent_id: str | None,
        customer_id: str | None,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> tuple[int, int]:
        clauses = (
            [AgentFeeTransactionModel.fee_type == fee_type]
            + _scope(AgentFeeTransactionModel, agent_id, customer_id)
            + in_window(AgentFeeTransactionModel.transaction_date, start_date, end_date)
        )
        return await self._sum_and_count(
            session,
            AgentFeeTransactionModel.amount_cents,
            AgentFeeTransactionModel.id,
            clauses,
        )

    async def _sum_and_count(
        self, session: AsyncSession, amount_column, id_column, clauses: list,
    ) -> tuple[int, int]:
        row = (await session.execute(
            select(
                func.coalesce(func.sum(amount_column), 0),
                func.count(id_column),
            ).where(*clauses)
        )).one()
        return int(row[0]), int(row[1])


def _scope(model, agent_id: str | None, customer_id: str | None) -> list:
    clauses = []
    if agent_id is not None:
        clauses.append(model.agent_id == agent_id)
    if customer_id is not None:
        clauses.append(model.customer_id == customer_id)
    return clauses
