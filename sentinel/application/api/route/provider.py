from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from sentinel.domain.models.errors import ProviderError, SessionError
from sentinel.domain.provider.provider_manager import ProviderManager
from sentinel.infrastructure.observability.logging import metrics

router = APIRouter(prefix="/api/v1")


class ProviderInfo(BaseModel):
    provider: str
    description: str
    available: List[str]
    details: Dict[str, Any]


class ProviderSwitchRequest(BaseModel):
    name: str


class ProviderSwitchResponse(BaseModel):
    provider: str
    description: str
    persisted: bool
    warning: Optional[str] = None
    message: str


def _providers(request: Request) -> ProviderManager:
    return request.app.state.providers


@router.get("/provider", response_model=ProviderInfo)
async def get_provider(request: Request):
    providers = _providers(request)
    current = await providers.current()
    return ProviderInfo(
        provider=current.name,
        description=current.describe(),
        available=providers.known_providers(),
        details=current.get_info()
    )


@router.put("/provider/active", response_model=ProviderSwitchResponse)
async def set_active_provider(body: ProviderSwitchRequest, request: Request):
    """Switch the process-wide provider"""
    try:
        result = await _providers(request).set_provider(body.name)
    except SessionError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return ProviderSwitchResponse(
        provider=result.provider,
        description=result.description,
        persisted=result.persisted,
        warning=result.warning,
        message=result.message
    )


class ProviderSettingsRequest(BaseModel):
    model: Optional[str] = None
    endpoint: Optional[str] = None
    credential: Optional[str] = Field(default=None, repr=False)


@router.put("/provider/{name}/settings", response_model=ProviderSwitchResponse)
async def update_provider_settings(name: str, body: ProviderSettingsRequest, request: Request):
    """Change a provider's model, endpoint or credential; rebinds it when active"""
    try:
        result = await _providers(request).update_settings(
            name, model=body.model, endpoint=body.endpoint, credential=body.credential
        )
    except SessionError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return ProviderSwitchResponse(
        provider=result.provider,
        description=result.description,
        persisted=result.persisted,
        warning=result.warning,
        message=result.message
    )


@router.get("/provider/models")
async def list_provider_models(request: Request):
    try:
        models = await _providers(request).list_models()
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=f"Failed to list models: {e.message}")
    return {"models": models}


@router.get("/metrics")
async def get_metrics():
    return metrics.get_metrics_summary()
