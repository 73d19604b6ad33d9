"""Fee API router — charges, renewal sweep, and fee history."""

from typing import Optional

from fastapi import APIRouter, Depends

from paygent_engine.common.clock import ensure_utc
from paygent_engine.common.security import require_api_key
from paygent_engine.fees.models import AgentFeeTransactionModel
from paygent_engine.fees.schemas import (
    ChargeFeeRequest,
    FeeDueResponse,
    FeeTotalResponse,
    FeeTransactionResponse,
    RenewalResponse,
)

router = APIRouter(prefix="/fees", tags=["fees"])


def _get_service():
    from paygent_engine.deps import get_fee_scheduler
    return get_fee_scheduler()


def _get_agents():
    from paygent_engine.deps import get_agent_service
    return get_agent_service()


def _get_customers():
    from paygent_engine.deps import get_customer_service
    return get_customer_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


def transaction_response(tx: AgentFeeTransactionModel) -> FeeTransactionResponse:
    return FeeTransactionResponse(
        id=tx.id,
        customer_id=tx.customer_id,
        agent_id=tx.agent_id,
        fee_type=tx.fee_type,
        amount_cents=tx.amount_cents,
        billing_cycle=tx.billing_cycle,
        transaction_date=ensure_utc(tx.transaction_date),
        billing_anchor_day=tx.billing_anchor_day,
        billing_timezone=tx.billing_timezone,
        next_billing_date=ensure_utc(tx.next_billing_date),
        previous_transaction_id=tx.previous_transaction_id,
        is_active=tx.is_active,
        metadata=tx.metadata_ or {},
    )


@router.post("/charge", response_model=FeeTransactionResponse, status_code=201)
async def charge_fee(body: ChargeFeeRequest, _=Depends(require_api_key)):
    """Charge a fee on demand; the customer must already be linked."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customer = await _get_customers().resolve_customer(session, body.customer_id)
        agent = await _get_agents().resolve_agent(session, body.agent_id)
        await _get_customers().require_access(session, customer.id, agent)
        tx = await svc.charge_fee(
            session, agent, customer.id, body.fee_type,
            billing_anchor_day=body.billing_anchor_day,
            billing_timezone=body.billing_timezone,
            metadata={"triggered_by": "api"},
        )
        return transaction_response(tx)


@router.post("/renew", response_model=RenewalResponse)
async def renew_due_fees(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.renew_due_fees(session)
        return RenewalResponse(
            renewed_count=result.renewed_count,
            skipped_count=result.skipped_count,
        )


@router.get("/due", response_model=list[FeeTransactionResponse])
async def list_due(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        due = await svc.transactions_due_for_renewal(session)
        return [transaction_response(tx) for tx in due]


@router.get("/should-charge", response_model=FeeDueResponse)
async def should_charge(
    customer_id: str,
    agent_id: str,
    billing_cycle: str = "monthly",
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customer = await _get_customers().resolve_customer(session, customer_id)
        agent = await _get_agents().resolve_agent(session, agent_id)
        due = await svc.should_charge_platform_fee(
            session, customer.id, agent.id, billing_cycle,
        )
        return FeeDueResponse(
            customer_id=customer.id, agent_id=agent.id,
            billing_cycle=billing_cycle, should_charge=due,
        )


@router.get("/customers/{customer_id}", response_model=list[FeeTransactionResponse])
async def list_transactions(
    customer_id: str,
    agent_id: Optional[str] = None,
    fee_type: Optional[str] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        txs = await svc.list_transactions(
            session, customer_id, agent_id=agent_id, fee_type=fee_type,
        )
        return [transaction_response(tx) for tx in txs]


@router.get("/customers/{customer_id}/total", response_model=FeeTotalResponse)
async def total_fees(
    customer_id: str,
    agent_id: Optional[str] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        total = await svc.total_fees(session, customer_id, agent_id=agent_id)
        return FeeTotalResponse(
            customer_id=customer_id, agent_id=agent_id, total_cents=total,
        )


@router.get("/transactions/{transaction_id}/chain", response_model=list[FeeTransactionResponse])
async def renewal_chain(transaction_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        chain = await svc.renewal_chain(session, transaction_id)
        return [transaction_response(tx) for tx in chain]
