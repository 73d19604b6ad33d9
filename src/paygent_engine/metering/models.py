"""SQLAlchemy models for metered usage ledgers.

Both tables are append-only: costs are snapshotted at write time and never
re-derived from the live catalog.
"""

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, CreatedAtMixin, append_only, generate_uuid

COST_TYPES = ("monetary", "credit")


@append_only
class TokenUsageModel(Base, CreatedAtMixin):
    __tablename__ = "token_usage"
    __table_args__ = (
        Index("ix_token_usage_customer_created", "customer_id", "created_at"),
        Index("ix_token_usage_agent_created", "agent_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    model_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("valid_models.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    input_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    output_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)


@append_only
class SignalLogModel(Base, CreatedAtMixin):
    __tablename__ = "agent_signal_logs"
    __table_args__ = (
        Index("ix_signal_logs_agent_created", "agent_id", "created_at"),
        Index("ix_signal_logs_customer_created", "customer_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    signal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agent_signals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Denormalized from the signal so agent-scoped reports need no join
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    cost_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_type: Mapped[str] = mapped_column(String(20), default="monetary", nullable=False, index=True)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
