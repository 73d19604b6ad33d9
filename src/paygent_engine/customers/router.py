"""Customer API router — CRUD plus agent links."""

from fastapi import APIRouter, Depends, Query

from paygent_engine.common.exceptions import CustomerNotFoundError, NotFoundError
from paygent_engine.common.schemas import PaginatedResponse
from paygent_engine.common.security import require_api_key
from paygent_engine.customers.models import CustomerModel
from paygent_engine.customers.schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    LinkCreate,
    LinkCreateResponse,
    LinkResponse,
)
from paygent_engine.fees.router import transaction_response

router = APIRouter(prefix="/customers", tags=["customers"])


def _get_service():
    from paygent_engine.deps import get_customer_service
    return get_customer_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


def _customer_response(customer: CustomerModel) -> CustomerResponse:
    return CustomerResponse(
        id=customer.id,
        name=customer.name,
        slug=customer.slug,
        metadata=customer.metadata_ or {},
        created_at=customer.created_at,
    )


@router.post("", response_model=CustomerResponse, status_code=201)
async def create_customer(body: CustomerCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customer = await svc.create_customer(
            session, name=body.name, slug=body.slug, metadata=body.metadata,
        )
        return _customer_response(customer)


@router.get("", response_model=PaginatedResponse[CustomerResponse])
async def list_customers(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customers, total = await svc.list_customers(
            session, offset=(page - 1) * page_size, limit=page_size,
        )
        return PaginatedResponse[CustomerResponse](
            items=[_customer_response(c) for c in customers],
            total=total, page=page, page_size=page_size,
        )


@router.get("/{customer_ref}", response_model=CustomerResponse)
async def get_customer(customer_ref: str, _=Depends(require_api_key)):
    """Look up by id or slug."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customer = await svc.resolve_customer(session, customer_ref)
        return _customer_response(customer)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str, body: CustomerUpdate, _=Depends(require_api_key)
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        customer = await svc.update_customer(
            session, customer_id, **body.model_dump(exclude_none=True)
        )
        return _customer_response(customer)


@router.delete("/{customer_id}", status_code=204)
async def delete_customer(customer_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_customer(session, customer_id)
        if not deleted:
            raise CustomerNotFoundError()


# ── Agent links ──

@router.post("/{customer_id}/agents", response_model=LinkCreateResponse, status_code=201)
async def link_agent(customer_id: str, body: LinkCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.link_agent(
            session, customer_id, body.agent_id,
            billing_anchor_day=body.billing_anchor_day,
            billing_timezone=body.billing_timezone,
        )
        return LinkCreateResponse(
            id=result.link.id,
            customer_id=result.link.customer_id,
            agent_id=result.link.agent_id,
            created_at=result.link.created_at,
            fee_transactions=[transaction_response(tx) for tx in result.fee_transactions],
        )


@router.get("/{customer_id}/agents", response_model=list[LinkResponse])
async def list_links(customer_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        links = await svc.list_links_for_customer(session, customer_id)
        return [LinkResponse.model_validate(link) for link in links]


@router.delete("/{customer_id}/agents/{agent_id}", status_code=204)
async def unlink_agent(customer_id: str, agent_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        removed = await svc.unlink_agent(session, customer_id, agent_id)
        if not removed:
            raise NotFoundError("Customer is not linked to this agent")
