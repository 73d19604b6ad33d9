"""SQLAlchemy model for setup and platform fee transactions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, generate_uuid, utc_now

FEE_TYPES = ("setup", "platform")


class AgentFeeTransactionModel(Base):
    __tablename__ = "agent_fee_transactions"
    __table_args__ = (
        # One live row per renewal chain; superseded rows stay for history.
        Index(
            "uq_fee_transaction_active",
            "customer_id",
            "agent_id",
            "fee_type",
            "billing_cycle",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_fee_transactions_due", "fee_type", "is_active", "next_billing_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fee_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_cycle: Mapped[str | None] = mapped_column(String(10), nullable=True)
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    billing_anchor_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    billing_timezone: Mapped[str] = mapped_column(String(50), default="UTC", nullable=False)
    next_billing_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    previous_transaction_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
