"""SQLAlchemy models for prepaid credit balances and credit sales."""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, CreatedAtMixin, TimestampMixin, append_only, generate_uuid


class CreditAllocationModel(Base, TimestampMixin):
    __tablename__ = "customer_credit_allocations"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "agent_id", "signal_id", name="uq_credit_allocation_target"
        ),
        CheckConstraint("credits_cents >= 0", name="ck_credit_allocation_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agent_signals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    credits_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


@append_only
class CreditPurchaseModel(Base, CreatedAtMixin):
    __tablename__ = "credit_purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agent_signals.id", ondelete="CASCADE"), nullable=False
    )
    credit_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    price_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False)
