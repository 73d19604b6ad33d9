"""Credit ledger API router."""

from typing import Optional

from fastapi import APIRouter, Depends

from paygent_engine.common.exceptions import AllocationNotFoundError
from paygent_engine.common.security import require_api_key
from paygent_engine.credits.schemas import (
    AllocateRequest,
    AllocationResponse,
    BalanceResponse,
    DeductRequest,
    PurchaseResponse,
    SetBalanceRequest,
)

router = APIRouter(prefix="/credits", tags=["credits"])


def _get_service():
    from paygent_engine.deps import get_credit_ledger
    return get_credit_ledger()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


@router.post("/allocations", response_model=AllocationResponse)
async def allocate(body: AllocateRequest, _=Depends(require_api_key)):
    """Create or top up an allocation; a positive price records a purchase."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        allocation = await svc.allocate(
            session,
            customer_id=body.customer_id,
            agent_id=body.agent_id,
            signal_id=body.signal_id,
            credits_cents=body.credits_cents,
            price_total_cents=body.price_total_cents,
        )
        return AllocationResponse.model_validate(allocation)


@router.get("/balance", response_model=BalanceResponse)
async def find_balance(
    customer_id: str, agent_id: str, signal_id: str, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        balance = await svc.find_balance(session, customer_id, agent_id, signal_id)
        return BalanceResponse(
            customer_id=customer_id, agent_id=agent_id,
            signal_id=signal_id, credits_cents=balance,
        )


@router.get("/allocations", response_model=list[AllocationResponse])
async def list_allocations(
    customer_id: str, agent_id: Optional[str] = None, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        allocations = await svc.list_allocations(session, customer_id, agent_id=agent_id)
        return [AllocationResponse.model_validate(a) for a in allocations]


@router.get("/allocations/{allocation_id}", response_model=AllocationResponse)
async def get_allocation(allocation_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        allocation = await svc.get_allocation(session, allocation_id)
        return AllocationResponse.model_validate(allocation)


@router.post("/allocations/{allocation_id}/deduct", response_model=AllocationResponse)
async def deduct(allocation_id: str, body: DeductRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        allocation = await svc.deduct(session, allocation_id, body.required_cents)
        return AllocationResponse.model_validate(allocation)


@router.put("/allocations/{allocation_id}", response_model=AllocationResponse)
async def set_balance(
    allocation_id: str, body: SetBalanceRequest, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        allocation = await svc.set_balance(session, allocation_id, body.credits_cents)
        return AllocationResponse.model_validate(allocation)


@router.delete("/allocations/{allocation_id}", status_code=204)
async def delete_allocation(allocation_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_allocation(session, allocation_id)
        if not deleted:
            raise AllocationNotFoundError()


@router.get("/purchases", response_model=list[PurchaseResponse])
async def list_purchases(
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        purchases = await svc.list_purchases(
            session, customer_id=customer_id, agent_id=agent_id,
        )
        return [PurchaseResponse.model_validate(p) for p in purchases]
