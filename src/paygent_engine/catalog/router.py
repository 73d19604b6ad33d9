"""Pricing catalog API router."""

from fastapi import APIRouter, Depends

from paygent_engine.catalog.schemas import ModelCreate, ModelResponse, ModelUpdate
from paygent_engine.common.exceptions import ModelNotFoundError
from paygent_engine.common.security import require_api_key

router = APIRouter(prefix="/models", tags=["catalog"])


def _get_service():
    from paygent_engine.deps import get_catalog_service
    return get_catalog_service()


def _get_db():
    from paygent_engine.deps import get_db
    return get_db()


@router.post("", response_model=ModelResponse, status_code=201)
async def create_model(body: ModelCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.create_model(session, **body.model_dump())
        return ModelResponse.model_validate(model)


@router.get("", response_model=list[ModelResponse])
async def list_models(active_only: bool = False, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        models = await svc.list_models(session, active_only=active_only)
        return [ModelResponse.model_validate(m) for m in models]


@router.get("/{model_id}", response_model=ModelResponse)
async def get_model(model_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.get_model(session, model_id)
        if model is None:
            raise ModelNotFoundError()
        return ModelResponse.model_validate(model)


@router.patch("/{model_id}", response_model=ModelResponse)
async def update_model(model_id: str, body: ModelUpdate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.update_model(
            session, model_id, **body.model_dump(exclude_none=True)
        )
        return ModelResponse.model_validate(model)


@router.delete("/{model_id}", response_model=ModelResponse)
async def deactivate_model(model_id: str, _=Depends(require_api_key)):
    """Models are deactivated, never deleted; usage rows reference them."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.deactivate_model(session, model_id)
        return ModelResponse.model_validate(model)
