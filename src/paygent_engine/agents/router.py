"""Agent and signal API router."""

from fastapi import APIRouter, Depends

from paygent_engine.agents.schemas import (
    AgentCreate,
    AgentResponse,
    AgentUpdate,
    SignalCreate,
    SignalResponse,
    SignalUpdate,
)
from paygent_engine.common.exceptions import AgentNotFoundError, SignalNotFoundError
from paygent_engine.common.security import require_api_key

router = APIRouter(tags=["agents"])


def _get_service():
    from paygent_engine.deps import get_agent_service
    return get_agent_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


def _agent_response(agent) -> AgentResponse:
    return AgentResponse(
        id=agent.id,
        name=agent.name,
        slug=agent.slug,
        setup_fee_enabled=agent.setup_fee_enabled,
        setup_fee_cents=agent.setup_fee_cents,
        platform_fee_enabled=agent.platform_fee_enabled,
        platform_fee_cents=agent.platform_fee_cents,
        platform_fee_billing_cycle=agent.platform_fee_billing_cycle,
        is_restricted=agent.is_restricted,
        metadata=agent.metadata_ or {},
        created_at=agent.created_at,
    )


# ── Agents ──

@router.post("/agents", response_model=AgentResponse, status_code=201)
async def create_agent(body: AgentCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        fields = body.model_dump()
        agent = await svc.create_agent(
            session,
            name=fields.pop("name"),
            slug=fields.pop("slug"),
            metadata=fields.pop("metadata"),
            **fields,
        )
        return _agent_response(agent)


@router.get("/agents", response_model=list[AgentResponse])
async def list_agents(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        agents = await svc.list_agents(session)
        return [_agent_response(a) for a in agents]


@router.get("/agents/{agent_ref}", response_model=AgentResponse)
async def get_agent(agent_ref: str, _=Depends(require_api_key)):
    """Look up by id or slug."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        agent = await svc.resolve_agent(session, agent_ref)
        return _agent_response(agent)


@router.patch("/agents/{agent_id}", response_model=AgentResponse)
async def update_agent(agent_id: str, body: AgentUpdate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        agent = await svc.update_agent(
            session, agent_id, **body.model_dump(exclude_none=True)
        )
        return _agent_response(agent)


@router.delete("/agents/{agent_id}", status_code=204)
async def delete_agent(agent_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_agent(session, agent_id)
        if not deleted:
            raise AgentNotFoundError()


# ── Signals ──

@router.post("/agents/{agent_id}/signals", response_model=SignalResponse, status_code=201)
async def create_signal(agent_id: str, body: SignalCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        agent = await svc.resolve_agent(session, agent_id)
        fields = body.model_dump()
        signal = await svc.create_signal(
            session,
            agent.id,
            name=fields.pop("name"),
            slug=fields.pop("slug"),
            signal_type=fields.pop("signal_type"),
            **fields,
        )
        return SignalResponse.model_validate(signal)


@router.get("/agents/{agent_id}/signals", response_model=list[SignalResponse])
async def list_signals(agent_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        agent = await svc.resolve_agent(session, agent_id)
        signals = await svc.list_signals(session, agent.id)
        return [SignalResponse.model_validate(s) for s in signals]


@router.get("/signals/{signal_ref}", response_model=SignalResponse)
async def get_signal(signal_ref: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        signal = await svc.resolve_signal(session, signal_ref)
        return SignalResponse.model_validate(signal)


@router.patch("/signals/{signal_id}", response_model=SignalResponse)
async def update_signal(signal_id: str, body: SignalUpdate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        signal = await svc.update_signal(
            session, signal_id, **body.model_dump(exclude_none=True)
        )
        return SignalResponse.model_validate(signal)


@router.delete("/signals/{signal_id}", status_code=204)
async def delete_signal(signal_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_signal(session, signal_id)
        if not deleted:
            raise SignalNotFoundError()
