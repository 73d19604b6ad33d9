"""Customer CRUD, customer-agent links, and restricted-agent access checks."""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import AgentModel
from paygent_engine.agents.service import AgentService
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import (
    AccessDeniedError,
    CustomerNotFoundError,
    ValidationError,
)
from paygent_engine.customers.models import CustomerAgentLinkModel, CustomerModel
from paygent_engine.fees.models import AgentFeeTransactionModel
from paygent_engine.fees.service import FeeScheduler

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    link: CustomerAgentLinkModel
    fee_transactions: list[AgentFeeTransactionModel] = field(default_factory=list)


class CustomerService:
    """Customers and their access to agents."""

    def __init__(
        self,
        settings: PaygentSettings,
        fees: FeeScheduler,
        agents: AgentService | None = None,
    ):
        self.settings = settings
        self.fees = fees
        self.agents = agents or AgentService()

    # ── Customers ──

    async def create_customer(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
        metadata: dict | None = None,
    ) -> CustomerModel:
        if await self.get_customer_by_slug(session, slug) is not None:
            raise ValidationError(f"Customer slug '{slug}' already exists")
        customer = CustomerModel(name=name, slug=slug, metadata_=metadata or {})
        session.add(customer)
        await session.flush()
        return customer

    async def get_customer(
        self, session: AsyncSession, customer_id: str,
    ) -> CustomerModel | None:
        return await session.get(CustomerModel, customer_id)

    async def get_customer_by_slug(
        self, session: AsyncSession, slug: str,
    ) -> CustomerModel | None:
        result = await session.execute(
            select(CustomerModel).where(CustomerModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def resolve_customer(
        self, session: AsyncSession, identifier: str,
    ) -> CustomerModel:
        """Find a customer by id or slug, raising if absent."""
        result = await session.execute(
            select(CustomerModel).where(
                or_(CustomerModel.id == identifier, CustomerModel.slug == identifier)
            )
        )
        customer = result.scalars().first()
        if customer is None:
            raise CustomerNotFoundError(f"Customer '{identifier}' not found")
        return customer

    async def list_customers(
        self,
        session: AsyncSession,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[CustomerModel], int]:
        total = (await session.execute(
            select(func.count(CustomerModel.id))
        )).scalar() or 0
        result = await session.execute(
            select(CustomerModel).order_by(CustomerModel.name).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_customer(
        self, session: AsyncSession, customer_id: str, **updates: Any
    ) -> CustomerModel:
        customer = await self.get_customer(session, customer_id)
        if customer is None:
            raise CustomerNotFoundError()
        slug = updates.get("slug")
        if slug is not None and slug != customer.slug:
            if await self.get_customer_by_slug(session, slug) is not None:
                raise ValidationError(f"Customer slug '{slug}' already exists")
        for attr in ("name", "slug"):
            if updates.get(attr) is not None:
                setattr(customer, attr, updates[attr])
        if updates.get("metadata") is not None:
            customer.metadata_ = updates["metadata"]
        await session.flush()
        return customer

    async def delete_customer(self, session: AsyncSession, customer_id: str) -> bool:
        customer = await self.get_customer(session, customer_id)
        if customer is None:
            return False
        await session.delete(customer)
        await session.flush()
        return True

    # ── Links ──

    async def link_agent(
        self,
        session: AsyncSession,
        customer_id: str,
        agent_identifier: str,
        billing_anchor_day: int | None = None,
        billing_timezone: str | None = None,
    ) -> LinkResult:
        """
        Grant a customer access to an agent and charge its link-time fees.

        The setup fee is charged once per (customer, agent) ever; the first
        platform fee is charged when none is active or the active one is due.
        """
        customer = await self.get_customer(session, customer_id)
        if customer is None:
            raise CustomerNotFoundError()
        agent = await self.agents.resolve_agent(session, agent_identifier)
        if await self.get_link(session, customer.id, agent.id) is not None:
            raise ValidationError("Customer is already linked to this agent")

        link = CustomerAgentLinkModel(customer_id=customer.id, agent_id=agent.id)
        session.add(link)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ValidationError("Customer is already linked to this agent") from exc

        result = LinkResult(link=link)
        if agent.setup_fee_enabled and not await self.fees.has_setup_fee(
            session, customer.id, agent.id,
        ):
            result.fee_transactions.append(
                await self.fees.charge_fee(session, agent, customer.id, "setup")
            )
        if agent.platform_fee_enabled and await self.fees.should_charge_platform_fee(
            session, customer.id, agent.id, agent.platform_fee_billing_cycle,
        ):
            result.fee_transactions.append(
                await self.fees.charge_fee(
                    session, agent, customer.id, "platform",
                    billing_anchor_day=billing_anchor_day,
                    billing_timezone=billing_timezone,
                )
            )

        logger.info(
            "Customer linked to agent",
            extra={"customer_id": customer.id, "agent_id": agent.id,
                   "fees_charged": len(result.fee_transactions)},
        )
        return result

    async def unlink_agent(
        self, session: AsyncSession, customer_id: str, agent_id: str,
    ) -> bool:
        link = await self.get_link(session, customer_id, agent_id)
        if link is None:
            return False
        await session.delete(link)
        await session.flush()
        return True

    async def get_link(
        self, session: AsyncSession, customer_id: str, agent_id: str,
    ) -> CustomerAgentLinkModel | None:
        result = await session.execute(
            select(CustomerAgentLinkModel).where(
                CustomerAgentLinkModel.customer_id == customer_id,
                CustomerAgentLinkModel.agent_id == agent_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_links_for_customer(
        self, session: AsyncSession, customer_id: str,
    ) -> list[CustomerAgentLinkModel]:
        result = await session.execute(
            select(CustomerAgentLinkModel)
            .where(CustomerAgentLinkModel.customer_id == customer_id)
            .order_by(CustomerAgentLinkModel.created_at)
        )
        return list(result.scalars().all())

    async def has_access(
        self, session: AsyncSession, customer_id: str, agent: AgentModel,
    ) -> bool:
        """Unrestricted agents are open to everyone; restricted ones need a link."""
        if not agent.is_restricted:
            return True
        return await self.get_link(session, customer_id, agent.id) is not None

    async def require_access(
        self, session: AsyncSession, customer_id: str, agent: AgentModel,
    ) -> None:
        if not await self.has_access(session, customer_id, agent):
            raise AccessDeniedError(
                f"Customer '{customer_id}' is not linked to agent '{agent.slug}'"
            )
