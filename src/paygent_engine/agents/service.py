"""Agent and signal CRUD service."""

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import BILLING_CYCLES, SIGNAL_TYPES, AgentModel, SignalModel
from paygent_engine.common.exceptions import (
    AgentNotFoundError,
    SignalNotFoundError,
    ValidationError,
)

_RATE_FIELDS = {
    "usage": "price_per_call_cents",
    "outcome": "outcome_price_cents",
    "credit": "credits_per_call_cents",
}

_AGENT_FIELDS = (
    "name",
    "slug",
    "setup_fee_enabled",
    "setup_fee_cents",
    "platform_fee_enabled",
    "platform_fee_cents",
    "platform_fee_billing_cycle",
)


def normalize_signal_rates(signal_type: str, rates: dict[str, int]) -> dict[str, int]:
    """
    Keep only the rate field that is active for ``signal_type``.

    ("credit", {"price_per_call_cents": 5, "credits_per_call_cents": 200})
        -> {"price_per_call_cents": 0, "outcome_price_cents": 0,
            "credits_per_call_cents": 200}
    """
    if signal_type not in SIGNAL_TYPES:
        raise ValidationError(f"Unknown signal type: {signal_type!r}")
    active = _RATE_FIELDS[signal_type]
    normalized = {field: 0 for field in _RATE_FIELDS.values()}
    value = rates.get(active) or 0
    if value < 0:
        raise ValidationError(f"{active} must be non-negative")
    normalized[active] = value
    return normalized


def _check_fee_config(values: dict[str, Any]) -> None:
    for field in ("setup_fee_cents", "platform_fee_cents"):
        if (values.get(field) or 0) < 0:
            raise ValidationError(f"{field} must be non-negative")
    cycle = values.get("platform_fee_billing_cycle")
    if cycle is not None and cycle not in BILLING_CYCLES:
        raise ValidationError(f"Unknown billing cycle: {cycle!r}")


class AgentService:
    """Agents, their fee configuration, and their signals."""

    # ── Agents ──

    async def create_agent(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
        metadata: dict | None = None,
        **fees: Any,
    ) -> AgentModel:
        _check_fee_config(fees)
        if await self.get_agent_by_slug(session, slug) is not None:
            raise ValidationError(f"Agent slug '{slug}' already exists")
        agent = AgentModel(
            name=name,
            slug=slug,
            setup_fee_enabled=fees.get("setup_fee_enabled", False),
            setup_fee_cents=fees.get("setup_fee_cents", 0),
            platform_fee_enabled=fees.get("platform_fee_enabled", False),
            platform_fee_cents=fees.get("platform_fee_cents", 0),
            platform_fee_billing_cycle=fees.get("platform_fee_billing_cycle") or "monthly",
            metadata_=metadata or {},
        )
        session.add(agent)
        await session.flush()
        return agent

    async def get_agent(
        self, session: AsyncSession, agent_id: str,
    ) -> AgentModel | None:
        return await session.get(AgentModel, agent_id)

    async def get_agent_by_slug(
        self, session: AsyncSession, slug: str,
    ) -> AgentModel | None:
        result = await session.execute(
            select(AgentModel).where(AgentModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def resolve_agent(
        self, session: AsyncSession, identifier: str,
    ) -> AgentModel:
        """Find an agent by id or slug, raising if absent."""
        result = await session.execute(
            select(AgentModel).where(
                or_(AgentModel.id == identifier, AgentModel.slug == identifier)
            )
        )
        agent = result.scalars().first()
        if agent is None:
            raise AgentNotFoundError(f"Agent '{identifier}' not found")
        return agent

    async def list_agents(self, session: AsyncSession) -> list[AgentModel]:
        result = await session.execute(select(AgentModel).order_by(AgentModel.name))
        return list(result.scalars().all())

    async def update_agent(
        self, session: AsyncSession, agent_id: str, **updates: Any
    ) -> AgentModel:
        agent = await self.get_agent(session, agent_id)
        if agent is None:
            raise AgentNotFoundError()
        _check_fee_config(updates)
        slug = updates.get("slug")
        if slug is not None and slug != agent.slug:
            if await self.get_agent_by_slug(session, slug) is not None:
                raise ValidationError(f"Agent slug '{slug}' already exists")
        for field in _AGENT_FIELDS:
            if field in updates and updates[field] is not None:
                setattr(agent, field, updates[field])
        if updates.get("metadata") is not None:
            agent.metadata_ = updates["metadata"]
        await session.flush()
        return agent

    async def delete_agent(self, session: AsyncSession, agent_id: str) -> bool:
        agent = await self.get_agent(session, agent_id)
        if agent is None:
            return False
        await session.delete(agent)
        await session.flush()
        return True

    # ── Signals ──

    async def create_signal(
        self,
        session: AsyncSession,
        agent_id: str,
        name: str,
        slug: str,
        signal_type: str = "usage",
        **rates: int,
    ) -> SignalModel:
        if await self.get_agent(session, agent_id) is None:
            raise AgentNotFoundError()
        if await self._get_signal_by_slug(session, slug) is not None:
            raise ValidationError(f"Signal slug '{slug}' already exists")
        signal = SignalModel(
            agent_id=agent_id,
            name=name,
            slug=slug,
            signal_type=signal_type,
            **normalize_signal_rates(signal_type, rates),
        )
        session.add(signal)
        await session.flush()
        return signal

    async def get_signal(
        self, session: AsyncSession, signal_id: str,
    ) -> SignalModel | None:
        return await session.get(SignalModel, signal_id)

    async def resolve_signal(
        self, session: AsyncSession, identifier: str, agent_id: str | None = None,
    ) -> SignalModel:
        """Find a signal by id or slug; with ``agent_id``, it must belong to that agent."""
        result = await session.execute(
            select(SignalModel).where(
                or_(SignalModel.id == identifier, SignalModel.slug == identifier)
            )
        )
        signal = result.scalars().first()
        if signal is None or (agent_id is not None and signal.agent_id != agent_id):
            raise SignalNotFoundError(
                f"Signal '{identifier}' not found or does not belong to agent"
            )
        return signal

    async def list_signals(
        self, session: AsyncSession, agent_id: str,
    ) -> list[SignalModel]:
        result = await session.execute(
            select(SignalModel)
            .where(SignalModel.agent_id == agent_id)
            .order_by(SignalModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_signal(
        self, session: AsyncSession, signal_id: str, **updates: Any
    ) -> SignalModel:
        signal = await self.get_signal(session, signal_id)
        if signal is None:
            raise SignalNotFoundError()
        slug = updates.get("slug")
        if slug is not None and slug != signal.slug:
            if await self._get_signal_by_slug(session, slug) is not None:
                raise ValidationError(f"Signal slug '{slug}' already exists")
        for field in ("name", "slug"):
            if updates.get(field) is not None:
                setattr(signal, field, updates[field])

        signal_type = updates.get("signal_type") or signal.signal_type
        rates = {
            field: getattr(signal, field) for field in _RATE_FIELDS.values()
        }
        rates.update({k: v for k, v in updates.items() if k in rates and v is not None})
        for field, value in normalize_signal_rates(signal_type, rates).items():
            setattr(signal, field, value)
        signal.signal_type = signal_type

        await session.flush()
        return signal

    async def delete_signal(self, session: AsyncSession, signal_id: str) -> bool:
        signal = await self.get_signal(session, signal_id)
        if signal is None:
            return False
        await session.delete(signal)
        await session.flush()
        return True

    async def _get_signal_by_slug(
        self, session: AsyncSession, slug: str,
    ) -> SignalModel | None:
        result = await session.execute(
            select(SignalModel).where(SignalModel.slug == slug)
        )
        return result.scalar_one_or_none()
