"""Tests for the fee scheduler — charging, due checks, and renewal sweeps."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from paygent_engine.agents.service import AgentService
from paygent_engine.common.clock import FixedClock, ensure_utc
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.database import DatabaseManager
from paygent_engine.common.exceptions import (
    AlreadyRenewedError,
    NotFoundError,
    ValidationError,
)
from paygent_engine.customers.service import CustomerService
from paygent_engine.fees.models import AgentFeeTransactionModel
from paygent_engine.fees.service import FeeScheduler


def make_settings(**overrides) -> PaygentSettings:
    defaults = {"db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return PaygentSettings(**defaults)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def file_db(tmp_path):
    """A file-backed database, so separate sessions get separate connections."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'fees.db'}"
    manager = DatabaseManager(make_settings(db_url=url))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def clock():
    return FixedClock(utc(2026, 1, 31, 9))


@pytest.fixture
def agents():
    return AgentService()


@pytest.fixture
def svc(clock):
    return FeeScheduler(make_settings(), clock=clock)


@pytest.fixture
def customers(svc, agents):
    return CustomerService(make_settings(), svc, agents=agents)


async def _setup(db, agents, customers, **fees):
    config = {
        "platform_fee_enabled": True,
        "platform_fee_cents": 1000,
        "platform_fee_billing_cycle": "monthly",
    }
    config.update(fees)
    async with db.get_session() as session:
        agent = await agents.create_agent(session, "Premium", "premium", **config)
        customer = await customers.create_customer(session, "Acme", "acme")
    return agent, customer


async def _active_rows(db, customer_id):
    async with db.get_session() as session:
        result = await session.execute(
            select(AgentFeeTransactionModel).where(
                AgentFeeTransactionModel.customer_id == customer_id,
                AgentFeeTransactionModel.is_active.is_(True),
                AgentFeeTransactionModel.fee_type == "platform",
            )
        )
        return list(result.scalars().all())


class TestChargeFee:
    async def test_setup_fee_is_one_shot(self, db, svc, agents, customers):
        agent, customer = await _setup(
            db, agents, customers, setup_fee_enabled=True, setup_fee_cents=5000,
        )
        async with db.get_session() as session:
            tx = await svc.charge_fee(session, agent, customer.id, "setup")
            assert tx.amount_cents == 5000
            assert tx.billing_cycle is None
            assert tx.next_billing_date is None
            assert await svc.has_setup_fee(session, customer.id, agent.id)

    async def test_setup_fee_requires_enabled(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            with pytest.raises(ValidationError):
                await svc.charge_fee(session, agent, customer.id, "setup")

    async def test_unknown_fee_type(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            with pytest.raises(ValidationError):
                await svc.charge_fee(session, agent, customer.id, "overage")

    async def test_platform_fee_anchor_31_lands_on_february_end(
        self, db, svc, agents, customers,
    ):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            tx = await svc.charge_fee(session, agent, customer.id, "platform")
            assert tx.billing_anchor_day == 31
            assert ensure_utc(tx.next_billing_date) == utc(2026, 2, 28, 12)
            assert ensure_utc(tx.next_billing_date) > ensure_utc(tx.transaction_date)

    async def test_yearly_cycle(self, db, svc, agents, customers):
        agent, customer = await _setup(
            db, agents, customers, platform_fee_billing_cycle="yearly",
        )
        async with db.get_session() as session:
            tx = await svc.charge_fee(session, agent, customer.id, "platform")
            assert ensure_utc(tx.next_billing_date) == utc(2027, 1, 31, 12)

    async def test_platform_fee_not_due_rejected(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            await svc.charge_fee(session, agent, customer.id, "platform")
        async with db.get_session() as session:
            with pytest.raises(AlreadyRenewedError):
                await svc.charge_fee(session, agent, customer.id, "platform")
        assert len(await _active_rows(db, customer.id)) == 1

    async def test_platform_fee_when_due_supersedes(
        self, db, svc, agents, customers, clock,
    ):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            first = await svc.charge_fee(session, agent, customer.id, "platform")
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            second = await svc.charge_fee(session, agent, customer.id, "platform")
            assert second.previous_transaction_id == first.id
        active = await _active_rows(db, customer.id)
        assert [tx.id for tx in active] == [second.id]

    async def test_bad_timezone(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            with pytest.raises(ValidationError):
                await svc.charge_fee(
                    session, agent, customer.id, "platform",
                    billing_timezone="Nowhere/Special",
                )


class TestShouldCharge:
    async def test_true_without_active_fee(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            assert await svc.should_charge_platform_fee(
                session, customer.id, agent.id, "monthly",
            ) is True

    async def test_false_until_due(self, db, svc, agents, customers, clock):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            await svc.charge_fee(session, agent, customer.id, "platform")
        async with db.get_session() as session:
            assert await svc.should_charge_platform_fee(
                session, customer.id, agent.id, "monthly",
            ) is False
        clock.set(utc(2026, 2, 28, 12))
        async with db.get_session() as session:
            assert await svc.should_charge_platform_fee(
                session, customer.id, agent.id, "monthly",
            ) is True

    async def test_cycles_tracked_separately(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            await svc.charge_fee(session, agent, customer.id, "platform")
            assert await svc.should_charge_platform_fee(
                session, customer.id, agent.id, "yearly",
            ) is True

    async def test_unknown_cycle(self, db, svc, agents, customers):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            with pytest.raises(ValidationError):
                await svc.should_charge_platform_fee(
                    session, customer.id, agent.id, "weekly",
                )


class TestRenewDueFees:
    async def _charged(self, db, svc, agents, customers, **fees):
        agent, customer = await _setup(db, agents, customers, **fees)
        async with db.get_session() as session:
            tx = await svc.charge_fee(session, agent, customer.id, "platform")
        return agent, customer, tx

    async def test_nothing_due(self, db, svc, agents, customers):
        await self._charged(db, svc, agents, customers)
        async with db.get_session() as session:
            result = await svc.renew_due_fees(session)
        assert (result.renewed_count, result.skipped_count) == (0, 0)

    async def test_renews_due_fee(self, db, svc, agents, customers, clock):
        agent, customer, first = await self._charged(db, svc, agents, customers)
        clock.set(utc(2026, 2, 28, 12))
        async with db.get_session() as session:
            result = await svc.renew_due_fees(session)
        assert result.renewed_count == 1

        (successor,) = await _active_rows(db, customer.id)
        assert successor.previous_transaction_id == first.id
        assert successor.amount_cents == 1000
        assert ensure_utc(successor.transaction_date) == utc(2026, 2, 28, 12)
        # Anchor 31 comes back once the month allows it
        assert ensure_utc(successor.next_billing_date) == utc(2026, 3, 31, 12)
        assert successor.metadata_["triggered_by"] == "renewal_sweep"

    async def test_second_sweep_renews_nothing(self, db, svc, agents, customers, clock):
        await self._charged(db, svc, agents, customers)
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            first = await svc.renew_due_fees(session)
        async with db.get_session() as session:
            second = await svc.renew_due_fees(session)
        assert first.renewed_count == 1
        assert second.renewed_count == 0

    async def test_one_active_row_after_many_sweeps(
        self, db, svc, agents, customers, clock,
    ):
        agent, customer, _ = await self._charged(db, svc, agents, customers)
        for month in (3, 4, 5, 6):
            clock.set(utc(2026, month, 28))
            async with db.get_session() as session:
                await svc.renew_due_fees(session)
                await svc.renew_due_fees(session)
        assert len(await _active_rows(db, customer.id)) == 1
        async with db.get_session() as session:
            history = await svc.list_transactions(
                session, customer.id, fee_type="platform",
            )
        assert len(history) == 5

    async def test_late_sweep_bills_once_and_moves_forward(
        self, db, svc, agents, customers, clock,
    ):
        await self._charged(db, svc, agents, customers)
        clock.set(utc(2026, 5, 10))
        async with db.get_session() as session:
            result = await svc.renew_due_fees(session)
        assert result.renewed_count == 1
        async with db.get_session() as session:
            again = await svc.renew_due_fees(session)
        assert again.renewed_count == 0

    async def test_successor_uses_current_price(
        self, db, svc, agents, customers, clock,
    ):
        agent, customer, _ = await self._charged(db, svc, agents, customers)
        async with db.get_session() as session:
            await agents.update_agent(session, agent.id, platform_fee_cents=1500)
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            await svc.renew_due_fees(session)
        (successor,) = await _active_rows(db, customer.id)
        assert successor.amount_cents == 1500

    async def test_disabled_fee_is_skipped_and_frozen(
        self, db, svc, agents, customers, clock,
    ):
        agent, customer, first = await self._charged(db, svc, agents, customers)
        async with db.get_session() as session:
            await agents.update_agent(session, agent.id, platform_fee_enabled=False)
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            result = await svc.renew_due_fees(session)
        assert (result.renewed_count, result.skipped_count) == (0, 1)
        (still_active,) = await _active_rows(db, customer.id)
        assert still_active.id == first.id

    async def test_renew_already_superseded_row(
        self, db, svc, agents, customers, clock,
    ):
        agent, customer, first = await self._charged(db, svc, agents, customers)
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            stale = await session.get(AgentFeeTransactionModel, first.id)
            agent_row = await agents.get_agent(session, agent.id)
            await svc.renew_transaction(session, stale, agent_row)
            with pytest.raises(AlreadyRenewedError):
                await svc.renew_transaction(session, stale, agent_row)

    async def test_due_list(self, db, svc, agents, customers, clock):
        await self._charged(db, svc, agents, customers)
        async with db.get_session() as session:
            assert await svc.transactions_due_for_renewal(session) == []
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            assert len(await svc.transactions_due_for_renewal(session)) == 1


class TestOverlappingSweeps:
    async def _due(self, file_db, svc, agents, customers, clock):
        agent, customer = await _setup(file_db, agents, customers)
        async with file_db.get_session() as session:
            await svc.charge_fee(session, agent, customer.id, "platform")
        clock.set(utc(2026, 3, 1))
        return agent, customer

    async def test_only_one_session_renews_a_row(
        self, file_db, svc, agents, customers, clock,
    ):
        agent, customer = await self._due(file_db, svc, agents, customers, clock)
        other = FeeScheduler(make_settings(), clock=clock)

        async with file_db.get_session() as first, file_db.get_session() as second:
            (due_first,) = await svc.transactions_due_for_renewal(first)
            (due_second,) = await other.transactions_due_for_renewal(second)
            assert due_first.id == due_second.id
            agent_first = await agents.get_agent(first, agent.id)
            agent_second = await agents.get_agent(second, agent.id)

            successor = await svc.renew_transaction(first, due_first, agent_first)
            await first.commit()

            with pytest.raises(AlreadyRenewedError):
                await other.renew_transaction(second, due_second, agent_second)

        (active,) = await _active_rows(file_db, customer.id)
        assert active.id == successor.id
        async with file_db.get_session() as session:
            history = await svc.list_transactions(session, customer.id, fee_type="platform")
        assert len(history) == 2

    async def test_second_sweep_after_commit_renews_nothing(
        self, file_db, svc, agents, customers, clock,
    ):
        _, customer = await self._due(file_db, svc, agents, customers, clock)
        other = FeeScheduler(make_settings(), clock=clock)

        async with file_db.get_session() as first, file_db.get_session() as second:
            first_run = await svc.renew_due_fees(first)
            await first.commit()
            second_run = await other.renew_due_fees(second)

        assert first_run.renewed_count == 1
        assert second_run.renewed_count == 0
        assert len(await _active_rows(file_db, customer.id)) == 1


class TestHistory:
    async def test_renewal_chain_newest_first(self, db, svc, agents, customers, clock):
        agent, customer = await _setup(db, agents, customers)
        async with db.get_session() as session:
            first = await svc.charge_fee(session, agent, customer.id, "platform")
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            await svc.renew_due_fees(session)
        (latest,) = await _active_rows(db, customer.id)
        async with db.get_session() as session:
            chain = await svc.renewal_chain(session, latest.id)
        assert [tx.id for tx in chain] == [latest.id, first.id]

    async def test_chain_missing(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(NotFoundError):
                await svc.renewal_chain(session, "missing")

    async def test_total_fees(self, db, svc, agents, customers, clock):
        agent, customer = await _setup(
            db, agents, customers, setup_fee_enabled=True, setup_fee_cents=5000,
        )
        async with db.get_session() as session:
            await customers.link_agent(session, customer.id, agent.id)
        clock.set(utc(2026, 3, 1))
        async with db.get_session() as session:
            await svc.renew_due_fees(session)
        async with db.get_session() as session:
            assert await svc.total_fees(session, customer.id) == 7000
            assert await svc.total_fees(session, customer.id, agent_id=agent.id) == 7000
            assert await svc.total_fees(session, "someone-else") == 0
