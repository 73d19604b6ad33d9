"""Usage recorder — prices token usage and signal calls into ledger rows.

Every row snapshots the rate in force when it was written. Credit-typed
signals consume the customer's prepaid allocation instead of creating a
monetary charge.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import AgentModel, SignalModel
from paygent_engine.agents.service import AgentService
from paygent_engine.catalog.models import ValidModelModel
from paygent_engine.catalog.service import CatalogService
from paygent_engine.common.clock import Clock, SystemClock
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import (
    InsufficientCreditsError,
    ModelNotFoundError,
    ValidationError,
)
from paygent_engine.common.models import in_window
from paygent_engine.credits.service import CreditLedger
from paygent_engine.customers.service import CustomerService
from paygent_engine.metering.models import SignalLogModel, TokenUsageModel
from paygent_engine.metering.pricing import price_tokens

logger = logging.getLogger(__name__)


@dataclass
class TokenUsageEntry:
    customer_id: str
    agent_id: str
    model: str
    input_tokens: int
    output_tokens: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchResult:
    records: list[TokenUsageModel] = field(default_factory=list)
    skipped_count: int = 0


@dataclass
class UsageTotals:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    total_cost: int = 0
    request_count: int = 0


@dataclass
class ModelUsage(UsageTotals):
    model_id: str = ""
    model_slug: str = ""


@dataclass
class SignalBreakdown:
    signal_id: str
    signal_name: str
    signal_type: str
    call_count: int
    total_cents: int


@dataclass
class AgentActivity:
    agent_id: str
    agent_name: str
    signal_count: int


@dataclass
class AgentSummary:
    agents: list[AgentActivity] = field(default_factory=list)

    @property
    def agent_count(self) -> int:
        return len(self.agents)


@dataclass
class PaymentSummary:
    total_calls: int = 0
    total_amount_cents: int = 0
    total_credits_cents: int = 0
    unique_signals: int = 0


def _check_tokens(input_tokens: int, output_tokens: int) -> None:
    if input_tokens < 0 or output_tokens < 0:
        raise ValidationError("Token counts must be non-negative")


class MeteringService:
    """Records priced usage and reports over the usage ledgers."""

    def __init__(
        self,
        settings: PaygentSettings,
        catalog: CatalogService,
        customers: CustomerService,
        credits: CreditLedger,
        agents: AgentService | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.catalog = catalog
        self.customers = customers
        self.credits = credits
        self.agents = agents or customers.agents
        self.clock = clock or SystemClock()

    # ── Token usage ──

    async def record_token_usage(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        model_identifier: str,
        input_tokens: int,
        output_tokens: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TokenUsageModel:
        _check_tokens(input_tokens, output_tokens)
        customer = await self.customers.resolve_customer(session, customer_id)
        agent = await self.agents.resolve_agent(session, agent_id)
        await self.customers.require_access(session, customer.id, agent)
        rate = await self.catalog.lookup_model_rate(session, model_identifier)

        cost = price_tokens(
            input_tokens, output_tokens,
            rate.input_cents_per_1m, rate.output_cents_per_1m,
        )
        usage = TokenUsageModel(
            customer_id=customer.id,
            agent_id=agent.id,
            model_id=rate.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            input_cost=cost.input_cost,
            output_cost=cost.output_cost,
            total_cost=cost.total_cost,
            metadata_=metadata or {},
            created_at=self.clock.now(),
        )
        session.add(usage)
        await session.flush()

        logger.info(
            "Token usage recorded",
            extra={"customer_id": customer.id, "agent_id": agent.id,
                   "model": rate.slug, "total_tokens": usage.total_tokens,
                   "total_cost": usage.total_cost},
        )
        return usage

    async def record_token_usage_batch(
        self,
        session: AsyncSession,
        entries: list[TokenUsageEntry],
    ) -> BatchResult:
        """
        Record many usage rows in one transaction.

        Every entry is validated before anything is written. Entries whose
        model cannot be resolved are skipped and counted; any other failure
        aborts the whole batch.
        """
        for entry in entries:
            _check_tokens(entry.input_tokens, entry.output_tokens)

        result = BatchResult()
        for entry in entries:
            try:
                usage = await self.record_token_usage(
                    session,
                    entry.customer_id,
                    entry.agent_id,
                    entry.model,
                    entry.input_tokens,
                    entry.output_tokens,
                    metadata=entry.metadata,
                )
            except ModelNotFoundError:
                logger.warning(
                    "Skipping usage entry with unresolvable model",
                    extra={"model": entry.model, "customer_id": entry.customer_id},
                )
                result.skipped_count += 1
                continue
            result.records.append(usage)
        return result

    # ── Signal calls ──

    async def record_signal_call(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        signal_identifier: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SignalLogModel:
        customer = await self.customers.resolve_customer(session, customer_id)
        agent = await self.agents.resolve_agent(session, agent_id)
        await self.customers.require_access(session, customer.id, agent)
        signal = await self.agents.resolve_signal(session, signal_identifier, agent_id=agent.id)
        rate = await self.catalog.lookup_signal_rate(session, signal.id)

        log_metadata = dict(metadata or {})
        if rate.cost_type == "credit":
            allocation = await self.credits.find_allocation(
                session, customer.id, agent.id, signal.id,
            )
            if allocation is None:
                raise InsufficientCreditsError(
                    f"No credit allocation for signal '{signal.slug}'"
                )
            allocation = await self.credits.deduct(session, allocation.id, rate.rate_cents)
            log_metadata["remaining_credits_cents"] = allocation.credits_cents

        log = SignalLogModel(
            signal_id=signal.id,
            agent_id=agent.id,
            customer_id=customer.id,
            cost_cents=rate.rate_cents,
            cost_type=rate.cost_type,
            metadata_=log_metadata,
            created_at=self.clock.now(),
        )
        session.add(log)
        await session.flush()
        return log

    # ── Reporting ──

    def _usage_filters(
        self,
        customer_id: str | None,
        agent_id: str | None,
        model_id: str | None,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> list:
        clauses = in_window(TokenUsageModel.created_at, start_date, end_date)
        if customer_id is not None:
            clauses.append(TokenUsageModel.customer_id == customer_id)
        if agent_id is not None:
            clauses.append(TokenUsageModel.agent_id == agent_id)
        if model_id is not None:
            clauses.append(TokenUsageModel.model_id == model_id)
        return clauses

    async def usage_totals(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        agent_id: str | None = None,
        model_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> UsageTotals:
        result = await session.execute(
            select(
                func.coalesce(func.sum(TokenUsageModel.input_tokens), 0),
                func.coalesce(func.sum(TokenUsageModel.output_tokens), 0),
                func.coalesce(func.sum(TokenUsageModel.total_tokens), 0),
                func.coalesce(func.sum(TokenUsageModel.total_cost), 0),
                func.count(TokenUsageModel.id),
            ).where(*self._usage_filters(customer_id, agent_id, model_id, start_date, end_date))
        )
        row = result.one()
        return UsageTotals(*(int(v) for v in row))

    async def usage_by_model(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        agent_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[ModelUsage]:
        result = await session.execute(
            select(
                TokenUsageModel.model_id,
                ValidModelModel.slug,
                func.sum(TokenUsageModel.input_tokens),
                func.sum(TokenUsageModel.output_tokens),
                func.sum(TokenUsageModel.total_tokens),
                func.sum(TokenUsageModel.total_cost),
                func.count(TokenUsageModel.id),
            )
            .join(ValidModelModel, ValidModelModel.id == TokenUsageModel.model_id)
            .where(*self._usage_filters(customer_id, agent_id, None, start_date, end_date))
            .group_by(TokenUsageModel.model_id, ValidModelModel.slug)
            .order_by(func.sum(TokenUsageModel.total_cost).desc())
        )
        return [
            ModelUsage(
                model_id=model_id,
                model_slug=slug,
                input_tokens=int(inp),
                output_tokens=int(out),
                total_tokens=int(total),
                total_cost=int(cost),
                request_count=int(count),
            )
            for model_id, slug, inp, out, total, cost, count in result.all()
        ]

    async def list_token_usage(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        agent_id: str | None = None,
        model_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[TokenUsageModel], int]:
        clauses = self._usage_filters(customer_id, agent_id, model_id, start_date, end_date)
        total = (await session.execute(
            select(func.count(TokenUsageModel.id)).where(*clauses)
        )).scalar() or 0
        result = await session.execute(
            select(TokenUsageModel)
            .where(*clauses)
            .order_by(TokenUsageModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_signal_logs(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        agent_id: str | None = None,
        signal_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[SignalLogModel], int]:
        clauses = in_window(SignalLogModel.created_at, start_date, end_date)
        if customer_id is not None:
            clauses.append(SignalLogModel.customer_id == customer_id)
        if agent_id is not None:
            clauses.append(SignalLogModel.agent_id == agent_id)
        if signal_id is not None:
            clauses.append(SignalLogModel.signal_id == signal_id)
        total = (await session.execute(
            select(func.count(SignalLogModel.id)).where(*clauses)
        )).scalar() or 0
        result = await session.execute(
            select(SignalLogModel)
            .where(*clauses)
            .order_by(SignalLogModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def customer_signal_breakdown(
        self,
        session: AsyncSession,
        customer_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[SignalBreakdown]:
        """Call counts and charges per signal for one customer."""
        result = await session.execute(
            select(
                SignalModel.id,
                SignalModel.name,
                SignalModel.signal_type,
                func.count(SignalLogModel.id),
                func.coalesce(func.sum(SignalLogModel.cost_cents), 0),
            )
            .join(SignalModel, SignalModel.id == SignalLogModel.signal_id)
            .where(
                SignalLogModel.customer_id == customer_id,
                *in_window(SignalLogModel.created_at, start_date, end_date),
            )
            .group_by(SignalModel.id, SignalModel.name, SignalModel.signal_type)
            .order_by(func.count(SignalLogModel.id).desc())
        )
        return [
            SignalBreakdown(
                signal_id=signal_id,
                signal_name=name,
                signal_type=signal_type,
                call_count=int(count),
                total_cents=int(total),
            )
            for signal_id, name, signal_type, count, total in result.all()
        ]

    async def customer_payment_summary(
        self,
        session: AsyncSession,
        customer_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> PaymentSummary:
        clauses = [
            SignalLogModel.customer_id == customer_id,
            *in_window(SignalLogModel.created_at, start_date, end_date),
        ]
        row = (await session.execute(
            select(
                func.count(SignalLogModel.id),
                func.count(distinct(SignalLogModel.signal_id)),
            ).where(*clauses)
        )).one()
        by_type = dict((await session.execute(
            select(SignalLogModel.cost_type, func.sum(SignalLogModel.cost_cents))
            .where(*clauses)
            .group_by(SignalLogModel.cost_type)
        )).all())
        return PaymentSummary(
            total_calls=int(row[0]),
            total_amount_cents=int(by_type.get("monetary") or 0),
            total_credits_cents=int(by_type.get("credit") or 0),
            unique_signals=int(row[1]),
        )

    async def customer_agent_summary(
        self,
        session: AsyncSession,
        customer_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> AgentSummary:
        """Agents a customer called in the window, with distinct signals used per agent."""
        signal_count = func.count(distinct(SignalLogModel.signal_id))
        result = await session.execute(
            select(AgentModel.id, AgentModel.name, signal_count)
            .join(AgentModel, AgentModel.id == SignalLogModel.agent_id)
            .where(
                SignalLogModel.customer_id == customer_id,
                *in_window(SignalLogModel.created_at, start_date, end_date),
            )
            .group_by(AgentModel.id, AgentModel.name)
            .order_by(signal_count.desc(), AgentModel.name)
        )
        return AgentSummary(agents=[
            AgentActivity(agent_id=agent_id, agent_name=name, signal_count=int(count))
            for agent_id, name, count in result.all()
        ])
