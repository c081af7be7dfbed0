from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from chat_gateway.schemas import ModelPublic, ModelsPublic
from chat_gateway.services import registry

router = APIRouter(prefix="/models", tags=["models"])


def _to_public(spec: registry.ModelSpec) -> ModelPublic:
    return ModelPublic(
        id=spec.id,
        name=spec.name,
        provider=spec.provider,
        description=spec.description,
        max_tokens=spec.max_tokens,
        capabilities=list(spec.capabilities),
        is_latest=spec.is_latest,
    )


@router.get("/", response_model=ModelsPublic)
async def list_models(
    provider: Optional[str] = Query(default=None),
    latest: bool = Query(default=False),
):
    """
    List the models the gateway can route to.
    """
    if provider is not None and provider not in registry.PROVIDERS:
        raise HTTPException(status_code=400, detail="Unknown provider")
    data = [_to_public(m) for m in registry.list_models(provider=provider, latest_only=latest)]
    return ModelsPublic(data=data, count=len(data))


@router.get("/default", response_model=ModelPublic)
async def get_default_model():
    return _to_public(registry.default_model())


@router.get("/{model_id:path}", response_model=ModelPublic)
async def get_model(model_id: str):
    spec = registry.get_model(model_id)
    if spec is None:
        raise HTTPException(status_code=404, detail="Model not found")
    return _to_public(spec)
