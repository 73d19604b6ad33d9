"""SQLAlchemy model for the LLM pricing catalog."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from paygent_engine.common.models import Base, TimestampMixin, generate_uuid


class ValidModelModel(Base, TimestampMixin):
    """A priced model. Rates are integer cents per one million tokens."""

    __tablename__ = "valid_models"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    input_cost_per_1m_tokens_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    output_cost_per_1m_tokens_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
