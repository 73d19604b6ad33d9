"""Fee scheduler — setup fees, recurring platform fees, and the renewal sweep.

Each (customer, agent, fee type, billing cycle) chain has at most one active
platform-fee row. Renewal deactivates the live row with a conditional update
that re-checks ``is_active`` and only then inserts the successor, so two
overlapping sweeps (or a sweep racing an on-demand charge) can never both
renew the same row.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import AgentModel
from paygent_engine.common.clock import Clock, SystemClock, ensure_utc
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import (
    AlreadyRenewedError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from paygent_engine.fees.models import FEE_TYPES, AgentFeeTransactionModel
from paygent_engine.fees import schedule

logger = logging.getLogger(__name__)


@dataclass
class RenewalResult:
    renewed_count: int = 0
    skipped_count: int = 0


class FeeScheduler:
    """Fee charging and renewal operations."""

    def __init__(self, settings: PaygentSettings, clock: Clock | None = None):
        self.settings = settings
        self.clock = clock or SystemClock()

    # ── Due checks ──

    async def get_active_platform_fee(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        billing_cycle: str,
    ) -> Optional[AgentFeeTransactionModel]:
        result = await session.execute(
            select(AgentFeeTransactionModel)
            .where(
                AgentFeeTransactionModel.customer_id == customer_id,
                AgentFeeTransactionModel.agent_id == agent_id,
                AgentFeeTransactionModel.fee_type == "platform",
                AgentFeeTransactionModel.billing_cycle == billing_cycle,
                AgentFeeTransactionModel.is_active.is_(True),
            )
            .order_by(AgentFeeTransactionModel.transaction_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def should_charge_platform_fee(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        billing_cycle: str,
    ) -> bool:
        """True when no active platform fee exists or the active one is due."""
        _require_cycle(billing_cycle)
        active = await self.get_active_platform_fee(
            session, customer_id, agent_id, billing_cycle,
        )
        if active is None:
            return True
        if active.next_billing_date is None:
            return True
        return self.clock.now() >= ensure_utc(active.next_billing_date)

    # ── Charging ──

    async def charge_fee(
        self,
        session: AsyncSession,
        agent: AgentModel,
        customer_id: str,
        fee_type: str,
        billing_anchor_day: int | None = None,
        billing_timezone: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AgentFeeTransactionModel:
        """Insert a setup fee, or start/replace the active platform fee."""
        if fee_type not in FEE_TYPES:
            raise ValidationError(f"Unknown fee type: {fee_type!r}")
        if fee_type == "setup":
            return await self._charge_setup_fee(session, agent, customer_id, metadata)
        return await self._charge_platform_fee(
            session, agent, customer_id,
            billing_anchor_day, billing_timezone, metadata,
        )

    async def _charge_setup_fee(
        self,
        session: AsyncSession,
        agent: AgentModel,
        customer_id: str,
        metadata: dict[str, Any] | None,
    ) -> AgentFeeTransactionModel:
        if not agent.setup_fee_enabled:
            raise ValidationError(f"Agent '{agent.slug}' has no setup fee")
        transaction = AgentFeeTransactionModel(
            customer_id=customer_id,
            agent_id=agent.id,
            fee_type="setup",
            amount_cents=agent.setup_fee_cents,
            billing_cycle=None,
            transaction_date=self.clock.now(),
            billing_timezone=self.settings.default_billing_timezone,
            metadata_=metadata or {},
        )
        session.add(transaction)
        await session.flush()
        logger.info(
            "Setup fee charged",
            extra={"customer_id": customer_id, "agent_id": agent.id,
                   "amount_cents": transaction.amount_cents},
        )
        return transaction

    async def _charge_platform_fee(
        self,
        session: AsyncSession,
        agent: AgentModel,
        customer_id: str,
        billing_anchor_day: int | None,
        billing_timezone: str | None,
        metadata: dict[str, Any] | None,
    ) -> AgentFeeTransactionModel:
        if not agent.platform_fee_enabled:
            raise ValidationError(f"Agent '{agent.slug}' has no platform fee")
        cycle = _require_cycle(agent.platform_fee_billing_cycle)
        tz_name = billing_timezone or self.settings.default_billing_timezone
        now = self.clock.now()
        try:
            anchor_day = (
                schedule.validate_anchor_day(billing_anchor_day)
                if billing_anchor_day is not None
                else schedule.anchor_day_for(now, tz_name)
            )
            due = schedule.next_billing_date(
                now, cycle, anchor_day, tz_name, self.settings.billing_hour,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        previous = await self.get_active_platform_fee(session, customer_id, agent.id, cycle)
        if previous is not None:
            if previous.next_billing_date and now < ensure_utc(previous.next_billing_date):
                raise AlreadyRenewedError(
                    f"Platform fee is paid through {ensure_utc(previous.next_billing_date).isoformat()}"
                )
            await self._deactivate(session, previous)

        transaction = AgentFeeTransactionModel(
            customer_id=customer_id,
            agent_id=agent.id,
            fee_type="platform",
            amount_cents=agent.platform_fee_cents,
            billing_cycle=cycle,
            transaction_date=now,
            billing_anchor_day=anchor_day,
            billing_timezone=tz_name,
            next_billing_date=due,
            previous_transaction_id=previous.id if previous else None,
            is_active=True,
            metadata_=metadata or {},
        )
        await self._insert_active(session, transaction)
        logger.info(
            "Platform fee charged",
            extra={"customer_id": customer_id, "agent_id": agent.id,
                   "amount_cents": transaction.amount_cents,
                   "next_billing_date": due.isoformat()},
        )
        return transaction

    # ── Renewal ──

    async def renew_due_fees(self, session: AsyncSession) -> RenewalResult:
        """
        Renew every active platform fee whose due date has passed.

        Rows whose agent has since disabled platform fees are counted as
        skipped and left untouched: billing freezes, history stays as is.
        Safe to run repeatedly or from overlapping triggers.
        """
        now = self.clock.now()
        result = await session.execute(
            select(AgentFeeTransactionModel, AgentModel)
            .join(AgentModel, AgentModel.id == AgentFeeTransactionModel.agent_id)
            .where(
                AgentFeeTransactionModel.fee_type == "platform",
                AgentFeeTransactionModel.is_active.is_(True),
                AgentFeeTransactionModel.next_billing_date.is_not(None),
                AgentFeeTransactionModel.next_billing_date <= now,
            )
            .order_by(AgentFeeTransactionModel.next_billing_date)
        )

        outcome = RenewalResult()
        for transaction, agent in result.all():
            if not agent.platform_fee_enabled:
                outcome.skipped_count += 1
                continue
            try:
                await self.renew_transaction(session, transaction, agent, now=now)
            except AlreadyRenewedError:
                logger.warning(
                    "Renewal lost race, transaction already superseded",
                    extra={"transaction_id": transaction.id},
                )
                continue
            outcome.renewed_count += 1

        logger.info(
            "Platform fee renewal sweep finished",
            extra={"renewed_count": outcome.renewed_count,
                   "skipped_count": outcome.skipped_count},
        )
        return outcome

    async def renew_transaction(
        self,
        session: AsyncSession,
        transaction: AgentFeeTransactionModel,
        agent: AgentModel,
        now=None,
    ) -> AgentFeeTransactionModel:
        """Supersede one active platform-fee row with its successor."""
        now = ensure_utc(now) if now is not None else self.clock.now()
        cycle = _require_cycle(transaction.billing_cycle)
        previous_due = ensure_utc(transaction.next_billing_date) or now
        anchor_day = transaction.billing_anchor_day or schedule.anchor_day_for(
            previous_due, transaction.billing_timezone,
        )
        due = schedule.next_billing_date_after(
            previous_due, now, cycle, anchor_day,
            transaction.billing_timezone, self.settings.billing_hour,
        )

        await self._deactivate(session, transaction)

        successor = AgentFeeTransactionModel(
            customer_id=transaction.customer_id,
            agent_id=transaction.agent_id,
            fee_type="platform",
            amount_cents=agent.platform_fee_cents,
            billing_cycle=cycle,
            transaction_date=now,
            billing_anchor_day=anchor_day,
            billing_timezone=transaction.billing_timezone,
            next_billing_date=due,
            previous_transaction_id=transaction.id,
            is_active=True,
            metadata_={
                "triggered_by": "renewal_sweep",
                "previous_transaction_id": transaction.id,
                "renewed_at": now.isoformat(),
            },
        )
        await self._insert_active(session, successor)
        return successor

    async def _deactivate(
        self, session: AsyncSession, transaction: AgentFeeTransactionModel,
    ) -> None:
        """Compare-and-swap ``is_active`` true -> false on one row."""
        result = await session.execute(
            update(AgentFeeTransactionModel)
            .where(
                AgentFeeTransactionModel.id == transaction.id,
                AgentFeeTransactionModel.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await session.refresh(transaction)
        if result.rowcount == 0:
            raise AlreadyRenewedError(
                f"Fee transaction {transaction.id} is no longer active"
            )

    async def _insert_active(
        self, session: AsyncSession, transaction: AgentFeeTransactionModel,
    ) -> None:
        session.add(transaction)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConcurrencyConflictError(
                "Another active platform fee was created concurrently"
            ) from exc

    # ── History ──

    async def list_transactions(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str | None = None,
        fee_type: str | None = None,
    ) -> list[AgentFeeTransactionModel]:
        query = select(AgentFeeTransactionModel).where(
            AgentFeeTransactionModel.customer_id == customer_id
        )
        if agent_id is not None:
            query = query.where(AgentFeeTransactionModel.agent_id == agent_id)
        if fee_type is not None:
            query = query.where(AgentFeeTransactionModel.fee_type == fee_type)
        query = query.order_by(AgentFeeTransactionModel.transaction_date.desc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def has_setup_fee(
        self, session: AsyncSession, customer_id: str, agent_id: str,
    ) -> bool:
        result = await session.execute(
            select(func.count(AgentFeeTransactionModel.id)).where(
                AgentFeeTransactionModel.customer_id == customer_id,
                AgentFeeTransactionModel.agent_id == agent_id,
                AgentFeeTransactionModel.fee_type == "setup",
            )
        )
        return (result.scalar() or 0) > 0

    async def total_fees(
        self, session: AsyncSession, customer_id: str, agent_id: str | None = None,
    ) -> int:
        query = select(
            func.coalesce(func.sum(AgentFeeTransactionModel.amount_cents), 0)
        ).where(AgentFeeTransactionModel.customer_id == customer_id)
        if agent_id is not None:
            query = query.where(AgentFeeTransactionModel.agent_id == agent_id)
        result = await session.execute(query)
        return int(result.scalar() or 0)

    async def transactions_due_for_renewal(
        self, session: AsyncSession,
    ) -> list[AgentFeeTransactionModel]:
        result = await session.execute(
            select(AgentFeeTransactionModel)
            .where(
                AgentFeeTransactionModel.fee_type == "platform",
                AgentFeeTransactionModel.is_active.is_(True),
                AgentFeeTransactionModel.next_billing_date <= self.clock.now(),
            )
            .order_by(AgentFeeTransactionModel.next_billing_date)
        )
        return list(result.scalars().all())

    async def renewal_chain(
        self, session: AsyncSession, transaction_id: str,
    ) -> list[AgentFeeTransactionModel]:
        """Walk ``previous_transaction_id`` links, newest first."""
        chain = []
        current = await session.get(AgentFeeTransactionModel, transaction_id)
        if current is None:
            raise NotFoundError(f"Fee transaction '{transaction_id}' not found")
        while current is not None:
            chain.append(current)
            if current.previous_transaction_id is None:
                break
            current = await session.get(
                AgentFeeTransactionModel, current.previous_transaction_id,
            )
        return chain


def _require_cycle(cycle: str | None) -> str:
    try:
        return schedule.validate_cycle(cycle)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
