"""Pricing catalog — model token rates and signal call rates.

Lookups always read the current row; nothing is cached across requests, so
a price change applies to the next priced event and never to ledger rows
already written.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from paygent_engine.agents.models import SignalModel
from paygent_engine.catalog.models import ValidModelModel
from paygent_engine.common.config import PaygentSettings
from paygent_engine.common.exceptions import (
    ModelNotFoundError,
    SignalNotFoundError,
    ValidationError,
)


@dataclass(frozen=True)
class ModelRate:
    model_id: str
    slug: str
    input_cents_per_1m: int
    output_cents_per_1m: int


@dataclass(frozen=True)
class SignalRate:
    signal_id: str
    agent_id: str
    signal_type: str
    rate_cents: int

    @property
    def cost_type(self) -> str:
        return "credit" if self.signal_type == "credit" else "monetary"


class CatalogService:
    """Pricing catalog reads and model CRUD."""

    def __init__(self, settings: PaygentSettings):
        self.settings = settings

    # ── Lookups ──

    async def lookup_model_rate(
        self, session: AsyncSession, identifier: str,
    ) -> ModelRate:
        """Resolve an active model by slug (or id) to its current rates."""
        model = await self._find_model(session, identifier)
        if model is None or not model.is_active:
            raise ModelNotFoundError(f"Model '{identifier}' not found or inactive")
        return ModelRate(
            model_id=model.id,
            slug=model.slug,
            input_cents_per_1m=model.input_cost_per_1m_tokens_cents,
            output_cents_per_1m=model.output_cost_per_1m_tokens_cents,
        )

    async def lookup_signal_rate(
        self, session: AsyncSession, signal_id: str,
    ) -> SignalRate:
        """Resolve a signal by id (or slug) to the rate its type bills at."""
        result = await session.execute(
            select(SignalModel).where(
                or_(SignalModel.id == signal_id, SignalModel.slug == signal_id)
            )
        )
        signal = result.scalars().first()
        if signal is None:
            raise SignalNotFoundError(f"Signal '{signal_id}' not found")
        return SignalRate(
            signal_id=signal.id,
            agent_id=signal.agent_id,
            signal_type=signal.signal_type,
            rate_cents=signal.active_rate_cents,
        )

    # ── Models ──

    async def create_model(
        self,
        session: AsyncSession,
        slug: str,
        input_cost_per_1m_tokens_cents: int,
        output_cost_per_1m_tokens_cents: int,
        is_active: bool = True,
    ) -> ValidModelModel:
        _check_rates(input_cost_per_1m_tokens_cents, output_cost_per_1m_tokens_cents)
        if await self.get_model_by_slug(session, slug) is not None:
            raise ValidationError(f"Model '{slug}' already exists")
        model = ValidModelModel(
            slug=slug,
            input_cost_per_1m_tokens_cents=input_cost_per_1m_tokens_cents,
            output_cost_per_1m_tokens_cents=output_cost_per_1m_tokens_cents,
            is_active=is_active,
        )
        session.add(model)
        await session.flush()
        return model

    async def get_model(
        self, session: AsyncSession, model_id: str,
    ) -> ValidModelModel | None:
        return await session.get(ValidModelModel, model_id)

    async def get_model_by_slug(
        self, session: AsyncSession, slug: str,
    ) -> ValidModelModel | None:
        result = await session.execute(
            select(ValidModelModel).where(ValidModelModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def list_models(
        self, session: AsyncSession, active_only: bool = False,
    ) -> list[ValidModelModel]:
        query = select(ValidModelModel).order_by(ValidModelModel.slug)
        if active_only:
            query = query.where(ValidModelModel.is_active.is_(True))
        result = await session.execute(query)
        return list(result.scalars().all())

    async def update_model(
        self, session: AsyncSession, model_id: str, **updates: Any
    ) -> ValidModelModel:
        model = await self.get_model(session, model_id)
        if model is None:
            raise ModelNotFoundError()
        _check_rates(
            updates.get("input_cost_per_1m_tokens_cents", 0) or 0,
            updates.get("output_cost_per_1m_tokens_cents", 0) or 0,
        )
        slug = updates.get("slug")
        if slug is not None and slug != model.slug:
            if await self.get_model_by_slug(session, slug) is not None:
                raise ValidationError(f"Model '{slug}' already exists")
        for field in (
            "slug",
            "input_cost_per_1m_tokens_cents",
            "output_cost_per_1m_tokens_cents",
            "is_active",
        ):
            if field in updates and updates[field] is not None:
                setattr(model, field, updates[field])
        await session.flush()
        return model

    async def deactivate_model(
        self, session: AsyncSession, model_id: str,
    ) -> ValidModelModel:
        return await self.update_model(session, model_id, is_active=False)

    async def _find_model(
        self, session: AsyncSession, identifier: str,
    ) -> ValidModelModel | None:
        result = await session.execute(
            select(ValidModelModel).where(
                or_(ValidModelModel.slug == identifier, ValidModelModel.id == identifier)
            )
        )
        return result.scalars().first()


def _check_rates(*rates: int) -> None:
    if any(r < 0 for r in rates):
        raise ValidationError("Token rates must be non-negative")
