"""Declarative base and shared column mixins."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from paygent_engine.common.clock import ensure_utc


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )


class TimestampMixin(CreatedAtMixin):
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


def append_only(model_cls):
    """Class decorator: reject ORM updates to ledger rows once flushed.

    Corrections go in as new compensating rows.
    """

    @event.listens_for(model_cls, "before_update")
    def _reject_update(mapper, connection, target):
        from paygent_engine.common.exceptions import LedgerImmutableError

        raise LedgerImmutableError(
            f"{model_cls.__tablename__} rows are append-only (id={target.id})"
        )

    return model_cls


def in_window(column, start: datetime | None = None, end: datetime | None = None) -> list:
    """WHERE clauses for an inclusive window; a missing side leaves it open."""
    clauses = []
    if start is not None:
        clauses.append(column >= ensure_utc(start))
    if end is not None:
        clauses.append(column <= ensure_utc(end))
    return clauses
