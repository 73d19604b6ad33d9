"""SQLAlchemy models for agents and their billable signals."""

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, CreatedAtMixin, TimestampMixin, generate_uuid

SIGNAL_TYPES = ("usage", "outcome", "credit")
BILLING_CYCLES = ("monthly", "yearly")


class AgentModel(Base, TimestampMixin):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    setup_fee_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    setup_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    platform_fee_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    platform_fee_billing_cycle: Mapped[str] = mapped_column(
        String(10), default="monthly", nullable=False
    )

    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    @property
    def is_restricted(self) -> bool:
        """Fee-bearing agents need an explicit customer link before use."""
        return bool(self.setup_fee_enabled or self.platform_fee_enabled)


class SignalModel(Base, CreatedAtMixin):
    __tablename__ = "agent_signals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    signal_type: Mapped[str] = mapped_column(String(20), default="usage", nullable=False)
    price_per_call_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    outcome_price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credits_per_call_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def active_rate_cents(self) -> int:
        if self.signal_type == "outcome":
            return self.outcome_price_cents or 0
        if self.signal_type == "credit":
            return self.credits_per_call_cents or 0
        return self.price_per_call_cents or 0
