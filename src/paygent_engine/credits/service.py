"""Credit ledger — prepaid balances per (customer, agent, signal).

Balances only move through single-statement writes: ``allocate`` is an
insert-or-increment upsert keyed on the allocation's unique tuple, and
``deduct`` is an UPDATE whose WHERE clause re-checks the balance. There is
no read-then-write window in either path.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import SignalModel
from paygent_engine.common.clock import Clock, SystemClock
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import (
    AllocationNotFoundError,
    CustomerNotFoundError,
    InsufficientCreditsError,
    SignalNotFoundError,
    ValidationError,
)
from paygent_engine.common.models import generate_uuid
from paygent_engine.credits.models import CreditAllocationModel, CreditPurchaseModel
from paygent_engine.customers.models import CustomerModel

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class CreditLedger:
    """Allocation, atomic deduction, and purchase recording."""

    def __init__(self, settings: PaygentSettings, clock: Clock | None = None):
        self.settings = settings
        self.clock = clock or SystemClock()

    async def allocate(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        signal_id: str,
        credits_cents: int,
        price_total_cents: int | None = None,
    ) -> CreditAllocationModel:
        """
        Add ``credits_cents`` to the allocation, creating it if needed.

        When ``price_total_cents`` is positive a CreditPurchase row is written
        in the same transaction, whether the allocation was new or topped up.
        """
        if credits_cents < 0:
            raise ValidationError("credits_cents must be non-negative")
        if price_total_cents is not None and price_total_cents < 0:
            raise ValidationError("price_total_cents must be non-negative")
        await self._check_target(session, customer_id, agent_id, signal_id)

        now = self.clock.now()
        insert = _upsert_insert(session)
        stmt = insert(CreditAllocationModel).values(
            id=generate_uuid(),
            customer_id=customer_id,
            agent_id=agent_id,
            signal_id=signal_id,
            credits_cents=credits_cents,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["customer_id", "agent_id", "signal_id"],
            set_={
                "credits_cents": CreditAllocationModel.credits_cents
                + stmt.excluded.credits_cents,
                "updated_at": now,
            },
        )
        await session.execute(stmt)

        if price_total_cents:
            session.add(CreditPurchaseModel(
                customer_id=customer_id,
                agent_id=agent_id,
                signal_id=signal_id,
                credit_amount_cents=credits_cents,
                price_paid_cents=price_total_cents,
                created_at=now,
            ))
            await session.flush()

        allocation = await self.find_allocation(
            session, customer_id, agent_id, signal_id, refresh=True,
        )
        logger.info(
            "Credits allocated",
            extra={"allocation_id": allocation.id, "credits_cents": credits_cents,
                   "balance_cents": allocation.credits_cents},
        )
        return allocation

    async def deduct(
        self,
        session: AsyncSession,
        allocation_id: str,
        required_cents: int,
    ) -> CreditAllocationModel:
        """Decrement the balance only if it covers ``required_cents``."""
        if required_cents < 0:
            raise ValidationError("required_cents must be non-negative")

        result = await session.execute(
            update(CreditAllocationModel)
            .where(
                CreditAllocationModel.id == allocation_id,
                CreditAllocationModel.credits_cents >= required_cents,
            )
            .values(
                credits_cents=CreditAllocationModel.credits_cents - required_cents,
                updated_at=self.clock.now(),
            )
            .execution_options(synchronize_session=False)
        )
        allocation = await session.get(
            CreditAllocationModel, allocation_id, populate_existing=True,
        )
        if allocation is None:
            raise AllocationNotFoundError()
        if result.rowcount == 0:
            logger.info(
                "Credit deduction rejected",
                extra={"allocation_id": allocation_id,
                       "required_cents": required_cents,
                       "balance_cents": allocation.credits_cents},
            )
            raise InsufficientCreditsError(
                f"Balance {allocation.credits_cents} does not cover {required_cents}"
            )
        return allocation

    async def find_allocation(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        signal_id: str,
        refresh: bool = False,
    ) -> Optional[CreditAllocationModel]:
        query = select(CreditAllocationModel).where(
            CreditAllocationModel.customer_id == customer_id,
            CreditAllocationModel.agent_id == agent_id,
            CreditAllocationModel.signal_id == signal_id,
        )
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def find_balance(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        signal_id: str,
    ) -> Optional[int]:
        allocation = await self.find_allocation(session, customer_id, agent_id, signal_id)
        return allocation.credits_cents if allocation else None

    async def get_allocation(
        self, session: AsyncSession, allocation_id: str,
    ) -> CreditAllocationModel:
        allocation = await session.get(CreditAllocationModel, allocation_id)
        if allocation is None:
            raise AllocationNotFoundError()
        return allocation

    async def list_allocations(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str | None = None,
    ) -> list[CreditAllocationModel]:
        query = select(CreditAllocationModel).where(
            CreditAllocationModel.customer_id == customer_id
        )
        if agent_id is not None:
            query = query.where(CreditAllocationModel.agent_id == agent_id)
        result = await session.execute(query.order_by(CreditAllocationModel.created_at))
        return list(result.scalars().all())

    async def set_balance(
        self, session: AsyncSession, allocation_id: str, credits_cents: int,
    ) -> CreditAllocationModel:
        """Administrative override of a balance."""
        if credits_cents < 0:
            raise ValidationError("credits_cents must be non-negative")
        allocation = await self.get_allocation(session, allocation_id)
        allocation.credits_cents = credits_cents
        allocation.updated_at = self.clock.now()
        await session.flush()
        logger.warning(
            "Credit balance overridden",
            extra={"allocation_id": allocation_id, "balance_cents": credits_cents},
        )
        return allocation

    async def delete_allocation(self, session: AsyncSession, allocation_id: str) -> bool:
        allocation = await session.get(CreditAllocationModel, allocation_id)
        if allocation is None:
            return False
        await session.delete(allocation)
        await session.flush()
        return True

    async def list_purchases(
        self,
        session: AsyncSession,
        customer_id: str | None = None,
        agent_id: str | None = None,
    ) -> list[CreditPurchaseModel]:
        query = select(CreditPurchaseModel)
        if customer_id is not None:
            query = query.where(CreditPurchaseModel.customer_id == customer_id)
        if agent_id is not None:
            query = query.where(CreditPurchaseModel.agent_id == agent_id)
        result = await session.execute(query.order_by(CreditPurchaseModel.created_at.desc()))
        return list(result.scalars().all())

    async def _check_target(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_id: str,
        signal_id: str,
    ) -> None:
        if await session.get(CustomerModel, customer_id) is None:
            raise CustomerNotFoundError()
        signal = await session.get(SignalModel, signal_id)
        if signal is None or signal.agent_id != agent_id:
            raise SignalNotFoundError(
                f"Signal '{signal_id}' not found or does not belong to agent"
            )


def _upsert_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    try:
        return _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise RuntimeError(f"Credit allocation upsert is not supported on {dialect}") from None
