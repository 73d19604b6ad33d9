"""SQLAlchemy models for customers and customer-agent links."""

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, CreatedAtMixin, TimestampMixin, generate_uuid


class CustomerModel(Base, TimestampMixin):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)


class CustomerAgentLinkModel(Base, CreatedAtMixin):
    """Grants a customer access to a restricted (fee-bearing) agent."""

    __tablename__ = "customer_agent_links"
    __table_args__ = (
        UniqueConstraint("customer_id", "agent_id", name="uq_customer_agent_link"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
