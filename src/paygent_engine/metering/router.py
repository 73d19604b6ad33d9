"""Metering API router — token usage, signal calls, and usage reports."""

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from paygent_engine.common.schemas import PaginatedResponse
from paygent_engine.common.security import require_api_key
from paygent_engine.metering.models import SignalLogModel, TokenUsageModel
from paygent_engine.metering.schemas import (
    AgentActivityResponse,
    AgentSummaryResponse,
    ModelUsageResponse,
    PaymentSummaryResponse,
    SignalBreakdownResponse,
    SignalCallRequest,
    SignalLogResponse,
    TokenUsageBatchRequest,
    TokenUsageBatchResponse,
    TokenUsageRequest,
    TokenUsageResponse,
    UsageTotalsResponse,
)
from paygent_engine.metering.service import TokenUsageEntry

router = APIRouter(tags=["metering"])


def _get_service():
    from paygent_engine.deps import get_metering_service
    return get_metering_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


def _usage_response(usage: TokenUsageModel) -> TokenUsageResponse:
    return TokenUsageResponse(
        id=usage.id,
        customer_id=usage.customer_id,
        agent_id=usage.agent_id,
        model_id=usage.model_id,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        total_tokens=usage.total_tokens,
        input_cost=usage.input_cost,
        output_cost=usage.output_cost,
        total_cost=usage.total_cost,
        metadata=usage.metadata_ or {},
        created_at=usage.created_at,
    )


def _signal_log_response(log: SignalLogModel) -> SignalLogResponse:
    return SignalLogResponse(
        id=log.id,
        signal_id=log.signal_id,
        agent_id=log.agent_id,
        customer_id=log.customer_id,
        cost_cents=log.cost_cents,
        cost_type=log.cost_type,
        metadata=log.metadata_ or {},
        created_at=log.created_at,
    )


# ── Recording ──

@router.post("/usage/tokens", response_model=TokenUsageResponse, status_code=201)
async def record_token_usage(body: TokenUsageRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        usage = await svc.record_token_usage(
            session,
            customer_id=body.customer_id,
            agent_id=body.agent_id,
            model_identifier=body.model,
            input_tokens=body.input_tokens,
            output_tokens=body.output_tokens,
            metadata=body.metadata,
        )
        return _usage_response(usage)


@router.post("/usage/tokens/batch", response_model=TokenUsageBatchResponse, status_code=201)
async def record_token_usage_batch(
    body: TokenUsageBatchRequest, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.record_token_usage_batch(
            session,
            [
                TokenUsageEntry(
                    customer_id=e.customer_id,
                    agent_id=e.agent_id,
                    model=e.model,
                    input_tokens=e.input_tokens,
                    output_tokens=e.output_tokens,
                    metadata=e.metadata,
                )
                for e in body.entries
            ],
        )
        return TokenUsageBatchResponse(
            records=[_usage_response(u) for u in result.records],
            recorded_count=len(result.records),
            skipped_count=result.skipped_count,
        )


@router.post("/usage/signals", response_model=SignalLogResponse, status_code=201)
async def record_signal_call(body: SignalCallRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        log = await svc.record_signal_call(
            session,
            customer_id=body.customer_id,
            agent_id=body.agent_id,
            signal_identifier=body.signal,
            metadata=body.metadata,
        )
        return _signal_log_response(log)


# ── Reports ──

@router.get("/usage/tokens", response_model=PaginatedResponse[TokenUsageResponse])
async def list_token_usage(
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    model_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        items, total = await svc.list_token_usage(
            session,
            customer_id=customer_id, agent_id=agent_id, model_id=model_id,
            start_date=start_date, end_date=end_date,
            offset=(page - 1) * page_size, limit=page_size,
        )
        return PaginatedResponse[TokenUsageResponse](
            items=[_usage_response(u) for u in items],
            total=total, page=page, page_size=page_size,
        )


@router.get("/usage/tokens/totals", response_model=UsageTotalsResponse)
async def usage_totals(
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    model_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        totals = await svc.usage_totals(
            session,
            customer_id=customer_id, agent_id=agent_id, model_id=model_id,
            start_date=start_date, end_date=end_date,
        )
        return UsageTotalsResponse(**asdict(totals))


@router.get("/usage/tokens/by-model", response_model=list[ModelUsageResponse])
async def usage_by_model(
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        rows = await svc.usage_by_model(
            session,
            customer_id=customer_id, agent_id=agent_id,
            start_date=start_date, end_date=end_date,
        )
        return [ModelUsageResponse(**asdict(row)) for row in rows]


@router.get("/usage/signals", response_model=PaginatedResponse[SignalLogResponse])
async def list_signal_logs(
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    signal_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        items, total = await svc.list_signal_logs(
            session,
            customer_id=customer_id, agent_id=agent_id, signal_id=signal_id,
            start_date=start_date, end_date=end_date,
            offset=(page - 1) * page_size, limit=page_size,
        )
        return PaginatedResponse[SignalLogResponse](
            items=[_signal_log_response(log) for log in items],
            total=total, page=page, page_size=page_size,
        )


@router.get(
    "/customers/{customer_id}/signals",
    response_model=list[SignalBreakdownResponse],
)
async def customer_signal_breakdown(
    customer_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        rows = await svc.customer_signal_breakdown(
            session, customer_id, start_date=start_date, end_date=end_date,
        )
        return [SignalBreakdownResponse(**asdict(row)) for row in rows]


@router.get(
    "/customers/{customer_id}/payments",
    response_model=PaymentSummaryResponse,
)
async def customer_payment_summary(
    customer_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        summary = await svc.customer_payment_summary(
            session, customer_id, start_date=start_date, end_date=end_date,
        )
        return PaymentSummaryResponse(
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            **asdict(summary),
        )


@router.get(
    "/customers/{customer_id}/agent-summary",
    response_model=AgentSummaryResponse,
)
async def customer_agent_summary(
    customer_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        summary = await svc.customer_agent_summary(
            session, customer_id, start_date=start_date, end_date=end_date,
        )
        return AgentSummaryResponse(
            customer_id=customer_id,
            agent_count=summary.agent_count,
            agents=[AgentActivityResponse(**asdict(row)) for row in summary.agents],
            start_date=start_date,
            end_date=end_date,
        )
