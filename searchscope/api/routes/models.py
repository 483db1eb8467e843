from __future__ import annotations

from fastapi import APIRouter, Depends

from searchscope.api.deps import Services, get_services
from searchscope.llm_client import available_models

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("")
async def list_models(services: Services = Depends(get_services)):
    """List models on the enabled generation platforms."""
    return {
        "models": available_models(services.settings),
        "default": services.settings.default_model,
    }
